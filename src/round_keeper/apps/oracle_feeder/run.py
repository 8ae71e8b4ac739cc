"""CLI entry point for the oracle price feeder."""

from round_keeper.apps.cli import feeder_app

__all__ = ["main"]


def main() -> None:
    """Run the oracle feeder CLI application."""
    feeder_app()


if __name__ == "__main__":
    main()
