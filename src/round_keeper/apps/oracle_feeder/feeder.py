"""Periodic price push from an exchange API to the on-chain oracle.

Each tick fetches the spot price (backing off on rate limits), scales it
to the oracle's fixed-point integer, picks a nonce, and submits
``updatePrice`` through the shared ``TxSubmitter``. When a prediction
contract reader is available the push is skipped while the oracle already
holds a fresh answer the contract has not consumed, and optionally outside
the window around the current round's lock time.
"""

import asyncio
import logging
import signal
from collections.abc import Awaitable, Callable
from decimal import ROUND_HALF_UP, Decimal

from round_keeper.apps.keeper.actions import UpdatePrice
from round_keeper.apps.keeper.protocols import ChainStateReader, OracleReader, PriceSource
from round_keeper.apps.keeper.submitter import TxSubmitter
from round_keeper.apps.keeper.window_policy import WindowPolicy
from round_keeper.apps.oracle_feeder.models import FeederConfig
from round_keeper.apps.oracle_feeder.nonce import resolve_nonce
from round_keeper.clients.binance.exceptions import BinanceRateLimitError
from round_keeper.clients.chain.exceptions import ChainError
from round_keeper.clients.chain.models import ConfirmedReceipt
from round_keeper.core.retry import retry_async
from round_keeper.core.timestamps import now_seconds

logger = logging.getLogger(__name__)

_SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class InvalidPriceError(Exception):
    """Raise when the price source returns a non-positive price."""


def scale_price(price: Decimal, decimals: int) -> int:
    """Convert a decimal price to the oracle's integer representation.

    Args:
        price: Spot price in quote currency.
        decimals: Number of fixed-point decimals.

    Returns:
        ``price * 10**decimals`` rounded half-up to an integer.

    """
    scaled = (price * (Decimal(10) ** decimals)).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return int(scaled)


def _is_rate_limited(exc: Exception) -> bool:
    return isinstance(exc, BinanceRateLimitError)


class PriceFeeder:
    """Push exchange prices to the oracle contract.

    Args:
        source: Spot price API.
        submitter: Transaction submitter bound to the oracle contract.
        config: Feeder configuration.
        oracle: Optional oracle reader for the decimals and freshness checks.
        prediction: Optional prediction contract reader for the freshness
            check and window gating.
        time_source: Callable returning Unix seconds, injectable for tests.
        sleep: Awaitable sleep used between ticks and backoffs.

    """

    def __init__(  # noqa: PLR0913
        self,
        source: PriceSource,
        submitter: TxSubmitter,
        config: FeederConfig,
        *,
        oracle: OracleReader | None = None,
        prediction: ChainStateReader | None = None,
        time_source: Callable[[], int] = now_seconds,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the feeder."""
        self._source = source
        self._submitter = submitter
        self._config = config
        self._oracle = oracle
        self._prediction = prediction
        self._time_source = time_source
        self._sleep = sleep
        self._window = WindowPolicy(buffer_seconds=config.buffer_seconds)
        self._pushes = 0
        self._shutdown = False

    @property
    def pushes(self) -> int:
        """Return how many prices have been confirmed on chain."""
        return self._pushes

    async def run(self, *, max_ticks: int | None = None) -> None:
        """Push prices until a shutdown signal arrives or ``max_ticks`` is reached.

        Args:
            max_ticks: Stop after this many ticks (``None`` for unlimited).

        """
        loop = asyncio.get_running_loop()
        for sig in _SHUTDOWN_SIGNALS:
            loop.add_signal_handler(sig, self._handle_shutdown)

        logger.info(
            "Starting oracle feeder for %s (%s) every %.1fs",
            self._config.asset,
            self._config.symbol,
            self._config.interval_seconds,
        )
        await self.check_configuration()
        tick_count = 0
        try:
            while not self._shutdown:
                await self.safe_tick()
                tick_count += 1
                if max_ticks is not None and tick_count >= max_ticks:
                    break
                await self._sleep(self._config.interval_seconds)
        finally:
            for sig in _SHUTDOWN_SIGNALS:
                loop.remove_signal_handler(sig)
            logger.info("Oracle feeder stopped after %d ticks (%d pushes)", tick_count, self._pushes)

    async def check_configuration(self) -> None:
        """Log an error when the oracle's decimals differ from ``price_decimals``."""
        if self._oracle is None:
            return
        try:
            decimals = await self._oracle.get_decimals()
        except ChainError as exc:
            logger.error("Oracle decimals check failed: %s", exc)
            return
        if decimals != self._config.price_decimals:
            logger.error(
                "PRICE_DECIMALS mismatch: local=%d oracle=%d (prices will be mis-scaled)",
                self._config.price_decimals,
                decimals,
            )
        else:
            logger.info("Oracle decimals: %d", decimals)

    def _handle_shutdown(self) -> None:
        """Set the shutdown flag for graceful exit on SIGINT/SIGTERM."""
        logger.info("Shutdown signal received")
        self._shutdown = True

    async def safe_tick(self) -> ConfirmedReceipt | None:
        """Run one tick, logging and swallowing any failure."""
        try:
            return await self.tick()
        except Exception:
            logger.exception("Price push failed")
            return None

    async def tick(self) -> ConfirmedReceipt | None:
        """Fetch, scale, and push one price.

        Returns:
            The confirmed receipt, or ``None`` when the push was skipped.

        Raises:
            RetryExhaustedError: When the price API stays rate limited.
            InvalidPriceError: When the price is not positive.
            TransactionFailedError: When the push could not be confirmed.

        """
        if not await self._should_push():
            return None

        price = await self._fetch_price()
        if price <= 0:
            msg = f"Invalid price for {self._config.symbol}: {price}"
            raise InvalidPriceError(msg)
        scaled = scale_price(price, self._config.price_decimals)
        logger.info("%s price: %s (scaled %d)", self._config.symbol, price, scaled)

        nonce = await self._next_nonce()
        receipt = await self._submitter.submit(UpdatePrice(scaled).to_call(), nonce=nonce)
        self._pushes += 1
        logger.info("Oracle price updated on-chain (%s)", receipt.tx_hash)
        return receipt

    async def _fetch_price(self) -> Decimal:
        policy = self._config.rate_limit_policy

        def on_retry(attempt: int, exc: Exception, delay: float) -> None:
            logger.warning(
                "Rate limited by price API (%s), retrying in %.0fs (attempt %d/%d)",
                exc,
                delay,
                attempt + 1,
                policy.max_attempts,
            )

        async def fetch(_attempt: int) -> Decimal:
            return await self._source.get_spot_price(self._config.symbol)

        return await retry_async(
            fetch,
            policy,
            retry_on=_is_rate_limited,
            on_retry=on_retry,
            sleep=self._sleep,
        )

    async def _next_nonce(self) -> int:
        sender = self._submitter.sender
        pending = await sender.get_transaction_count("pending")
        confirmed = await sender.get_transaction_count("latest")
        return resolve_nonce(pending, confirmed, self._config.max_nonce_gap)

    async def _should_push(self) -> bool:
        """Return whether a new price is useful right now."""
        if self._prediction is None:
            return True

        now = self._time_source()
        if self._config.window_gated:
            epoch = await self._prediction.get_current_epoch()
            state = await self._prediction.get_round(epoch)
            if not self._window.push_window_open(now, state, self._config.push_lead_seconds):
                logger.debug("Outside push window for epoch %d, skipping", epoch)
                return False

        if self._oracle is not None:
            latest = await self._oracle.get_latest_round_data()
            consumed = await self._prediction.get_oracle_latest_round_id()
            age = now - latest.updated_at
            if latest.round_id > consumed and age < self._config.max_price_age_seconds:
                logger.info(
                    "Oracle round %d (age %ds) not yet consumed (contract at %d), skipping push",
                    latest.round_id,
                    age,
                    consumed,
                )
                return False
        return True
