"""Structural protocols for the keeper's external collaborators.

Define the capability interfaces the scheduler and feeder depend on: a
chain state reader, an oracle reader, a transaction sender with its
pending-transaction handle, and a price source. The concrete web3 and
httpx clients satisfy these by shape, and tests substitute mocks.
"""

from decimal import Decimal
from typing import Protocol, runtime_checkable

from round_keeper.clients.chain.models import (
    ConfirmedReceipt,
    ContractCall,
    GenesisFlags,
    OracleRoundData,
    RoundState,
    TxOverrides,
)


@runtime_checkable
class ChainStateReader(Protocol):
    """Point-in-time reads of the prediction contract."""

    async def get_current_epoch(self) -> int:
        """Return the current epoch."""
        ...

    async def get_round(self, epoch: int) -> RoundState:
        """Return a snapshot of ``epoch``."""
        ...

    async def get_genesis_flags(self) -> GenesisFlags:
        """Return the genesis one-time flags."""
        ...

    async def is_paused(self) -> bool:
        """Return whether the contract is paused."""
        ...

    async def get_operator_address(self) -> str:
        """Return the operator address."""
        ...

    async def get_buffer_seconds(self) -> int:
        """Return the contract's buffer seconds."""
        ...

    async def get_interval_seconds(self) -> int:
        """Return the contract's round interval."""
        ...

    async def get_oracle_update_allowance(self) -> int:
        """Return the oracle staleness allowance."""
        ...

    async def get_oracle_latest_round_id(self) -> int:
        """Return the last oracle round id consumed by the contract."""
        ...


@runtime_checkable
class OracleReader(Protocol):
    """Reads of the price oracle contract."""

    async def get_latest_round_data(self) -> OracleRoundData:
        """Return the oracle's latest answer."""
        ...

    async def get_decimals(self) -> int:
        """Return the number of decimals in oracle answers."""
        ...


@runtime_checkable
class PendingTransaction(Protocol):
    """A broadcast transaction that can be awaited to a confirmation depth."""

    tx_hash: str

    async def wait_confirmed(self, depth: int) -> ConfirmedReceipt:
        """Return the receipt once ``depth`` blocks deep, or raise."""
        ...


@runtime_checkable
class TransactionSender(Protocol):
    """Signs and broadcasts calls to one contract."""

    @property
    def signer_address(self) -> str:
        """Return the signing account's address."""
        ...

    async def send(self, call: ContractCall, overrides: TxOverrides) -> PendingTransaction:
        """Broadcast ``call`` and return its pending handle."""
        ...

    async def get_transaction_count(self, block_identifier: str) -> int:
        """Return the signer's nonce at ``"pending"`` or ``"latest"``."""
        ...


@runtime_checkable
class PriceSource(Protocol):
    """External spot price API."""

    async def get_spot_price(self, symbol: str) -> Decimal:
        """Return the latest price for ``symbol``."""
        ...
