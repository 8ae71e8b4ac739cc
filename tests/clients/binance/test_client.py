"""Tests for Binance HTTP client."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from round_keeper.clients.binance.client import BinanceClient
from round_keeper.clients.binance.exceptions import BinanceAPIError, BinanceRateLimitError

_BINANCE_ERROR_CODE = -1121
_RATE_LIMIT_CODE = -1003


def _make_response(status_code: int, payload: object) -> MagicMock:
    """Create a mock httpx response.

    Args:
        status_code: HTTP status code.
        payload: Value returned by ``response.json()``.

    Returns:
        MagicMock configured as an httpx response.

    """
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    return response


class TestBinanceClient:
    """Test suite for Binance HTTP client."""

    @pytest.fixture
    def client(self) -> BinanceClient:
        """Create a BinanceClient instance."""
        return BinanceClient(base_url="https://api.binance.us")

    def test_client_defaults_to_binance_us(self) -> None:
        """Test the default host serves the BTCUSD pair."""
        client = BinanceClient()
        assert client.base_url == "https://api.binance.us"

    def test_trailing_slash_stripped(self) -> None:
        """Test trailing slash is stripped from base URL."""
        client = BinanceClient(base_url="https://api.binance.us/")
        assert client.base_url == "https://api.binance.us"

    @pytest.mark.asyncio
    async def test_get_prepends_slash(self, client: BinanceClient) -> None:
        """Test that a missing leading slash is added to the path."""
        with patch.object(
            client._http_client, "request", new=AsyncMock(return_value=_make_response(200, {}))
        ) as mock_request:
            await client.get("api/v3/ticker/price")
        assert mock_request.call_args.args[1] == "https://api.binance.us/api/v3/ticker/price"

    @pytest.mark.asyncio
    async def test_get_spot_price(self, client: BinanceClient) -> None:
        """Test the ticker price is parsed as a Decimal."""
        response = _make_response(200, {"symbol": "BTCUSD", "price": "65000.12"})
        with patch.object(
            client._http_client, "request", new=AsyncMock(return_value=response)
        ) as mock_request:
            price = await client.get_spot_price("BTCUSD")
        assert price == Decimal("65000.12")
        assert mock_request.call_args.kwargs["params"] == {"symbol": "BTCUSD"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [{"symbol": "BTCUSD"}, {"price": "0"}, {"price": "abc"}, []])
    async def test_missing_or_invalid_price(self, client: BinanceClient, payload: object) -> None:
        """Test unusable price payloads raise BinanceAPIError."""
        with (
            patch.object(
                client._http_client, "request", new=AsyncMock(return_value=_make_response(200, payload))
            ),
            pytest.raises(BinanceAPIError, match="Price not found for BTCUSD"),
        ):
            await client.get_spot_price("BTCUSD")

    @pytest.mark.asyncio
    async def test_error_response_raises_api_error(self, client: BinanceClient) -> None:
        """Test that a Binance error response raises BinanceAPIError."""
        response = _make_response(400, {"code": _BINANCE_ERROR_CODE, "msg": "Invalid symbol."})
        with (
            patch.object(client._http_client, "request", new=AsyncMock(return_value=response)),
            pytest.raises(BinanceAPIError, match="Invalid symbol") as exc_info,
        ):
            await client.get_spot_price("BAD")
        assert exc_info.value.code == _BINANCE_ERROR_CODE
        assert not isinstance(exc_info.value, BinanceRateLimitError)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [418, 429])
    async def test_rate_limit_statuses(self, client: BinanceClient, status: int) -> None:
        """Test 418 and 429 raise the distinguishable rate-limit error."""
        response = _make_response(status, {"code": _RATE_LIMIT_CODE, "msg": "Too many requests"})
        with (
            patch.object(client._http_client, "request", new=AsyncMock(return_value=response)),
            pytest.raises(BinanceRateLimitError, match="Too many requests"),
        ):
            await client.get_spot_price("BTCUSD")

    @pytest.mark.asyncio
    async def test_non_json_error_body(self, client: BinanceClient) -> None:
        """Test an error without a JSON body falls back to the HTTP status."""
        response = _make_response(502, None)
        response.json.side_effect = ValueError("not json")
        with (
            patch.object(client._http_client, "request", new=AsyncMock(return_value=response)),
            pytest.raises(BinanceAPIError, match="HTTP 502"),
        ):
            await client.get("/api/v3/ping")

    @pytest.mark.asyncio
    async def test_context_manager_closes(self) -> None:
        """Test exiting the context closes the HTTP client."""
        client = BinanceClient()
        with patch.object(client._http_client, "aclose", new=AsyncMock()) as mock_close:
            async with client:
                pass
        mock_close.assert_awaited_once()
