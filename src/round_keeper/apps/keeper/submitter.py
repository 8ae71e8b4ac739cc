"""Submit contract calls with bounded retries and confirmation waits.

Turn a ``ContractCall`` into a fee-priced transaction, log its hash as soon
as it is broadcast and again once it is confirmed, and retry transient chain
failures up to a fixed number of attempts. An underpriced replacement makes
the next attempt pay a higher fee. A used nonce first checks whether an
earlier attempt was mined after all, and otherwise resends at the pending
nonce. The caller either gets a confirmed, successful receipt or a
``TransactionFailedError``; there is no "maybe sent" outcome.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from decimal import Decimal

from round_keeper.apps.keeper.protocols import PendingTransaction, TransactionSender
from round_keeper.clients.chain.exceptions import (
    ChainError,
    NonceTooLowError,
    TransactionRevertedError,
    UnderpricedTransactionError,
)
from round_keeper.clients.chain.models import (
    ConfirmedReceipt,
    ContractCall,
    FeeSpec,
    FixedGasPrice,
    TxOverrides,
    gwei_to_wei,
)
from round_keeper.core.retry import RetryExhaustedError, RetryPolicy, retry_async

logger = logging.getLogger(__name__)

_DEFAULT_GAS_LIMIT = 500_000
_DEFAULT_GAS_PRICE = FixedGasPrice(gwei_to_wei(1000))
_DEFAULT_MAX_ATTEMPTS = 5
_DEFAULT_RETRY_DELAY = 1.0
_DEFAULT_CONFIRMATIONS = 2
_DEFAULT_FEE_BUMP_PERCENT = Decimal(15)


class TransactionFailedError(Exception):
    """Raise when a call could not be confirmed within the attempt budget.

    Args:
        call: The contract call that failed.
        attempts: Number of attempts made.

    """

    def __init__(self, call: ContractCall, attempts: int) -> None:
        """Initialize the error."""
        super().__init__(f"{call.function_name} failed after {attempts} attempts")
        self.call = call
        self.attempts = attempts


@dataclass(frozen=True)
class SubmitterConfig:
    """Transaction pricing and retry settings.

    Args:
        gas_limit: Gas limit for every transaction.
        fee: Base fee specification (fixed price or dynamic cap).
        max_attempts: Maximum send attempts per call.
        retry_delay_seconds: Flat delay between attempts.
        confirmations: Blocks to wait for, counting the inclusion block.
        fee_bump_percent: Fee increase applied per nonce-contention failure.

    """

    gas_limit: int = _DEFAULT_GAS_LIMIT
    fee: FeeSpec = _DEFAULT_GAS_PRICE
    max_attempts: int = _DEFAULT_MAX_ATTEMPTS
    retry_delay_seconds: float = _DEFAULT_RETRY_DELAY
    confirmations: int = _DEFAULT_CONFIRMATIONS
    fee_bump_percent: Decimal = _DEFAULT_FEE_BUMP_PERCENT

    def __post_init__(self) -> None:
        """Validate the settings."""
        if self.gas_limit <= 0:
            msg = f"gas_limit must be positive, got {self.gas_limit}"
            raise ValueError(msg)
        if self.max_attempts < 1:
            msg = f"max_attempts must be at least 1, got {self.max_attempts}"
            raise ValueError(msg)
        if self.retry_delay_seconds < 0:
            msg = f"retry_delay_seconds must be non-negative, got {self.retry_delay_seconds}"
            raise ValueError(msg)
        if self.confirmations < 1:
            msg = f"confirmations must be at least 1, got {self.confirmations}"
            raise ValueError(msg)
        if self.fee_bump_percent < 0:
            msg = f"fee_bump_percent must be non-negative, got {self.fee_bump_percent}"
            raise ValueError(msg)

    @property
    def retry_policy(self) -> RetryPolicy:
        """Return the flat retry schedule for submissions."""
        return RetryPolicy(max_attempts=self.max_attempts, base_delay=self.retry_delay_seconds)


def _is_chain_error(exc: Exception) -> bool:
    return isinstance(exc, ChainError)


class TxSubmitter:
    """Send one contract call at a time through a ``TransactionSender``.

    Args:
        sender: Signs and broadcasts calls to the target contract.
        config: Pricing and retry settings.
        label: Prefix for log lines (e.g. ``"keeper"`` or ``"feeder"``).
        sleep: Awaitable sleep used between attempts, injectable for tests.

    """

    def __init__(
        self,
        sender: TransactionSender,
        config: SubmitterConfig,
        *,
        label: str = "keeper",
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the submitter."""
        self._sender = sender
        self._config = config
        self._label = label
        self._sleep = sleep

    @property
    def config(self) -> SubmitterConfig:
        """Return the submitter configuration."""
        return self._config

    @property
    def sender(self) -> TransactionSender:
        """Return the underlying transaction sender."""
        return self._sender

    async def submit(self, call: ContractCall, *, nonce: int | None = None) -> ConfirmedReceipt:
        """Send ``call`` and wait for it to be confirmed.

        Args:
            call: Contract function and arguments.
            nonce: Explicit nonce, or ``None`` to use the pending count on
                every attempt. Once the node reports it used, later attempts
                fall back to the pending count.

        Returns:
            The receipt of the successful, confirmed transaction.

        Raises:
            TransactionFailedError: When every attempt failed with a chain
                error. Non-chain errors propagate unchanged.

        """
        fee = self._config.fee
        broadcast: list[PendingTransaction] = []
        nonce_used = False

        async def attempt(number: int) -> ConfirmedReceipt:
            nonlocal nonce, nonce_used
            if nonce_used:
                nonce_used = False
                explicit, nonce = nonce, None
                landed = await self._find_landed(broadcast)
                if landed is not None:
                    broadcast.clear()
                    return self._accept(call, landed)
                if explicit is not None:
                    logger.info(
                        "[%s] Nonce %d already used, switching to the pending count",
                        self._label,
                        explicit,
                    )
            overrides = TxOverrides(gas_limit=self._config.gas_limit, fee=fee, nonce=nonce)
            pending = await self._sender.send(call, overrides)
            broadcast.append(pending)
            logger.info(
                "[%s] Tx sent: %s %s (attempt %d/%d, %s)",
                self._label,
                call,
                pending.tx_hash,
                number,
                self._config.max_attempts,
                fee,
            )
            return self._accept(call, await pending.wait_confirmed(self._config.confirmations))

        def on_retry(number: int, exc: Exception, delay: float) -> None:
            nonlocal fee, nonce_used
            logger.warning(
                "[%s] Tx %s failed (try %d/%d): %s",
                self._label,
                call.function_name,
                number,
                self._config.max_attempts,
                exc,
            )
            if isinstance(exc, NonceTooLowError):
                nonce_used = True
            elif isinstance(exc, UnderpricedTransactionError):
                fee = fee.bumped(self._config.fee_bump_percent)
                logger.info("[%s] Replacement underpriced, raising fee to %s", self._label, fee)
            if delay > 0:
                logger.debug("[%s] Retrying in %.1fs", self._label, delay)

        try:
            return await retry_async(
                attempt,
                self._config.retry_policy,
                retry_on=_is_chain_error,
                on_retry=on_retry,
                sleep=self._sleep,
            )
        except RetryExhaustedError as exc:
            logger.warning(
                "[%s] Max retries reached for %s: %s",
                self._label,
                call.function_name,
                exc.last_error,
            )
            raise TransactionFailedError(call, exc.attempts) from exc.last_error

    def _accept(self, call: ContractCall, receipt: ConfirmedReceipt) -> ConfirmedReceipt:
        if not receipt.succeeded:
            raise TransactionRevertedError(f"{call.function_name} reverted", receipt.tx_hash)
        logger.info(
            "[%s] Tx confirmed: %s block=%d gas_used=%d",
            self._label,
            receipt.tx_hash,
            receipt.block_number,
            receipt.gas_used,
        )
        return receipt

    async def _find_landed(self, broadcast: list[PendingTransaction]) -> ConfirmedReceipt | None:
        """Return the receipt of an earlier attempt that was mined after all, newest first."""
        for pending in reversed(broadcast):
            try:
                receipt = await pending.wait_confirmed(self._config.confirmations)
            except ChainError as exc:
                logger.debug("[%s] Earlier tx %s not mined: %s", self._label, pending.tx_hash, exc)
                continue
            logger.info("[%s] Earlier tx %s was mined", self._label, receipt.tx_hash)
            return receipt
        return None
