"""HTTP client for the Binance public ticker API."""

from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

from round_keeper.clients.binance.exceptions import BinanceAPIError, BinanceRateLimitError

_HTTP_BAD_REQUEST = 400
_RATE_LIMIT_STATUSES = frozenset({418, 429})
_TICKER_PRICE_PATH = "/api/v3/ticker/price"


def _error_details(response: httpx.Response) -> tuple[int, str]:
    """Extract Binance's ``code``/``msg`` pair, falling back to the HTTP status."""
    fallback = (response.status_code, f"HTTP {response.status_code}")
    try:
        body = response.json()
    except ValueError:
        return fallback
    if not isinstance(body, dict):
        return fallback
    return body.get("code", fallback[0]), body.get("msg", fallback[1])


class BinanceClient:
    """Read-only client for Binance market data.

    Only unauthenticated endpoints are used. The default host is Binance.US,
    which lists the ``BTCUSD`` pair the oracle is priced in.

    Args:
        base_url: API host, with or without a trailing slash.
        timeout: Request timeout in seconds.

    """

    BASE_URL = "https://api.binance.us"

    def __init__(self, base_url: str = BASE_URL, timeout: float = 30.0) -> None:
        """Initialize the client and its connection pool."""
        self.base_url = base_url.rstrip("/")
        self._http_client = httpx.AsyncClient(timeout=timeout)

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """Fetch ``path`` and decode the JSON body.

        Raises:
            BinanceRateLimitError: On HTTP 418 or 429.
            BinanceAPIError: On any other 4xx/5xx status.

        """
        url = f"{self.base_url}/{path.lstrip('/')}"
        response = await self._http_client.request("GET", url, params=params)
        if response.status_code >= _HTTP_BAD_REQUEST:
            code, msg = _error_details(response)
            if response.status_code in _RATE_LIMIT_STATUSES:
                raise BinanceRateLimitError(code=code, msg=msg)
            raise BinanceAPIError(code=code, msg=msg)
        return response.json()

    async def get_spot_price(self, symbol: str) -> Decimal:
        """Return the last traded price for ``symbol``.

        Args:
            symbol: Trading pair such as ``"BTCUSD"``.

        Returns:
            A finite, positive ``Decimal`` price.

        Raises:
            BinanceRateLimitError: When the request is rate limited.
            BinanceAPIError: When the response carries no usable price.

        """
        ticker = await self.get(_TICKER_PRICE_PATH, params={"symbol": symbol})
        raw = ticker.get("price") if isinstance(ticker, dict) else None
        try:
            price = Decimal(str(raw))
        except InvalidOperation:
            price = None
        if price is None or not price.is_finite() or price <= 0:
            raise BinanceAPIError(code=0, msg=f"Price not found for {symbol}")
        return price

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._http_client.aclose()

    async def __aenter__(self) -> "BinanceClient":
        """Enter async context manager."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context manager."""
        await self.close()
