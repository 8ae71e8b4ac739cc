"""Shared helpers for the keeper and feeder CLI commands.

Centralise logging setup, configuration loading, and the error exit so
both commands report startup failures the same way.
"""

import logging
from pathlib import Path
from typing import NoReturn

import typer

from round_keeper.core.config import ConfigLoader, get_config

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(*, verbose: bool) -> None:
    """Configure root logging for a long-running agent.

    Args:
        verbose: Log at DEBUG instead of INFO.

    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=_LOG_FORMAT,
        datefmt=_DATE_FORMAT,
    )
    # web3 and httpx are chatty at DEBUG; keep them at INFO.
    for noisy in ("web3", "httpx", "httpcore", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.INFO)


def load_config(config_dir: Path | None) -> ConfigLoader:
    """Return a loader for ``config_dir``, or the shared default loader."""
    if config_dir is None:
        return get_config()
    return ConfigLoader(config_dir)


def fail(message: str) -> NoReturn:
    """Print ``message`` to stderr and exit with status 1."""
    typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(code=1)
