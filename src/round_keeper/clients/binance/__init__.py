"""Binance public API client used as the oracle feeder's price source."""

from round_keeper.clients.binance.client import BinanceClient
from round_keeper.clients.binance.exceptions import (
    BinanceAPIError,
    BinanceError,
    BinanceRateLimitError,
)

__all__ = [
    "BinanceAPIError",
    "BinanceClient",
    "BinanceError",
    "BinanceRateLimitError",
]
