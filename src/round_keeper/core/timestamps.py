"""Timestamp helpers for round bookkeeping and log output."""

import time
from datetime import UTC, datetime


def now_seconds() -> int:
    """Return the current Unix time in whole seconds."""
    return int(time.time())


def format_timestamp(value: int) -> str:
    """Render a Unix timestamp as a readable UTC string.

    A zero timestamp is the contract's "not set" sentinel and is rendered
    as ``"unset"`` rather than the 1970 epoch.

    Args:
        value: Unix timestamp in seconds.

    Returns:
        A string such as ``"2024-01-01 12:00:00 UTC"``.

    """
    if value <= 0:
        return "unset"
    return datetime.fromtimestamp(value, tz=UTC).strftime("%Y-%m-%d %H:%M:%S UTC")
