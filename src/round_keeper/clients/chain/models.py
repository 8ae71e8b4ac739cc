"""Typed models for prediction and oracle contract data.

Convert the raw tuples returned by contract calls into frozen dataclasses,
and describe outgoing transactions (call, fee, overrides) independently of
web3.py so the scheduler never touches library types.
"""

import math
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

_HUNDRED = Decimal(100)
_GWEI = 10**9
_ROUND_FIELDS = 14


def gwei_to_wei(gwei: Decimal | int | str) -> int:
    """Convert a gwei amount to an integer number of wei."""
    return int(Decimal(str(gwei)) * _GWEI)


def _bump(value: int, percent: Decimal) -> int:
    bumped = math.ceil(Decimal(value) * (_HUNDRED + percent) / _HUNDRED)
    return max(bumped, value + 1)


@dataclass(frozen=True)
class RoundState:
    """Immutable snapshot of one round read from the prediction contract.

    Timestamps are Unix seconds and ``0`` means "not set yet".
    ``close_timestamp`` is only meaningful once ``lock_timestamp > 0``.

    Args:
        epoch: Round identifier, strictly increasing across rounds.
        start_timestamp: When the round was started.
        lock_timestamp: When the round locks (bets close).
        close_timestamp: When the round closes and can be settled.
        lock_price: Oracle price recorded at lock.
        close_price: Oracle price recorded at close.
        lock_oracle_id: Oracle round id used for the lock price.
        close_oracle_id: Oracle round id used for the close price.
        oracle_called: Whether price data has been attached to the round.

    """

    epoch: int
    start_timestamp: int = 0
    lock_timestamp: int = 0
    close_timestamp: int = 0
    lock_price: int = 0
    close_price: int = 0
    lock_oracle_id: int = 0
    close_oracle_id: int = 0
    oracle_called: bool = False

    @classmethod
    def from_contract(cls, raw: Sequence[Any]) -> "RoundState":
        """Build a snapshot from the ``rounds(epoch)`` return tuple.

        The tuple layout is ``(epoch, startTimestamp, lockTimestamp,
        closeTimestamp, lockPrice, closePrice, lockOracleId, closeOracleId,
        totalAmount, bullAmount, bearAmount, rewardBaseCalAmount,
        rewardAmount, oracleCalled)``. Amount fields are ignored.

        Raises:
            ValueError: If the tuple is shorter than expected.

        """
        if len(raw) < _ROUND_FIELDS:
            msg = f"Expected {_ROUND_FIELDS} round fields, got {len(raw)}"
            raise ValueError(msg)
        return cls(
            epoch=int(raw[0]),
            start_timestamp=int(raw[1]),
            lock_timestamp=int(raw[2]),
            close_timestamp=int(raw[3]),
            lock_price=int(raw[4]),
            close_price=int(raw[5]),
            lock_oracle_id=int(raw[6]),
            close_oracle_id=int(raw[7]),
            oracle_called=bool(raw[13]),
        )


@dataclass(frozen=True)
class GenesisFlags:
    """The two one-time genesis flags of the prediction contract."""

    start_done: bool
    lock_done: bool

    @property
    def complete(self) -> bool:
        """Return whether both genesis steps have been performed."""
        return self.start_done and self.lock_done


@dataclass(frozen=True)
class OracleRoundData:
    """Result of the oracle's ``latestRoundData()`` call."""

    round_id: int
    answer: int
    started_at: int
    updated_at: int
    answered_in_round: int

    @classmethod
    def from_contract(cls, raw: Sequence[Any]) -> "OracleRoundData":
        """Build from the five-element ``latestRoundData()`` tuple."""
        return cls(
            round_id=int(raw[0]),
            answer=int(raw[1]),
            started_at=int(raw[2]),
            updated_at=int(raw[3]),
            answered_in_round=int(raw[4]),
        )


@dataclass(frozen=True)
class ContractCall:
    """A state-changing contract function and its arguments."""

    function_name: str
    args: tuple[Any, ...] = ()

    def __str__(self) -> str:
        """Render as ``name(arg, ...)`` for log lines."""
        return f"{self.function_name}({', '.join(str(a) for a in self.args)})"


@dataclass(frozen=True)
class FixedGasPrice:
    """Legacy pricing with a single ``gasPrice`` in wei."""

    gas_price_wei: int

    def bumped(self, percent: Decimal) -> "FixedGasPrice":
        """Return a copy with the gas price raised by ``percent``."""
        return FixedGasPrice(_bump(self.gas_price_wei, percent))

    def __str__(self) -> str:
        """Render the price in gwei."""
        return f"gasPrice={Decimal(self.gas_price_wei) / _GWEI} gwei"


@dataclass(frozen=True)
class DynamicFee:
    """EIP-1559 pricing with a fee cap and a priority tip, both in wei."""

    max_fee_per_gas_wei: int
    max_priority_fee_per_gas_wei: int

    def __post_init__(self) -> None:
        """Validate that the tip does not exceed the cap."""
        if self.max_priority_fee_per_gas_wei > self.max_fee_per_gas_wei:
            msg = "max priority fee cannot exceed max fee per gas"
            raise ValueError(msg)

    def bumped(self, percent: Decimal) -> "DynamicFee":
        """Return a copy with both the cap and the tip raised by ``percent``."""
        return DynamicFee(
            _bump(self.max_fee_per_gas_wei, percent),
            _bump(self.max_priority_fee_per_gas_wei, percent),
        )

    def __str__(self) -> str:
        """Render the cap and tip in gwei."""
        return (
            f"maxFee={Decimal(self.max_fee_per_gas_wei) / _GWEI} gwei "
            f"tip={Decimal(self.max_priority_fee_per_gas_wei) / _GWEI} gwei"
        )


type FeeSpec = FixedGasPrice | DynamicFee


@dataclass(frozen=True)
class TxOverrides:
    """Per-transaction parameters supplied by the submitter.

    Args:
        gas_limit: Gas limit for the transaction.
        fee: Fee pricing (fixed gas price or dynamic cap).
        nonce: Explicit nonce, or ``None`` to use the pending count.

    """

    gas_limit: int
    fee: FeeSpec
    nonce: int | None = None


@dataclass(frozen=True)
class ConfirmedReceipt:
    """Receipt of a transaction that reached the requested confirmation depth."""

    tx_hash: str
    block_number: int
    gas_used: int
    status: int

    @property
    def succeeded(self) -> bool:
        """Return whether the transaction executed without reverting."""
        return self.status == 1
