"""Errors raised by the Binance price client."""


class BinanceError(Exception):
    """Root of all Binance client errors."""


class BinanceAPIError(BinanceError):
    """Error response from Binance, or a response with no usable data.

    Args:
        code: Binance error code (negative, e.g. ``-1121``) or the HTTP status.
        msg: Message text from the response body.

    """

    def __init__(self, code: int, msg: str) -> None:
        """Initialize the error."""
        super().__init__(f"[{code}] {msg}")
        self.code = code
        self.msg = msg


class BinanceRateLimitError(BinanceAPIError):
    """Request weight exceeded (HTTP 429) or IP temporarily banned (HTTP 418)."""
