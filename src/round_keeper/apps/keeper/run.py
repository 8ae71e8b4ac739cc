"""CLI entry point for the prediction round keeper."""

from round_keeper.apps.cli import keeper_app

__all__ = ["main"]


def main() -> None:
    """Run the round keeper CLI application."""
    keeper_app()


if __name__ == "__main__":
    main()
