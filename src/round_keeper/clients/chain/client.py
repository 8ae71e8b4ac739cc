"""Typed async facade over the prediction and oracle contracts.

Wrap the blocking web3 adapter in ``asyncio.to_thread()`` so contract reads
and transaction submission never block the event loop. Each client
serialises its own calls through an ``asyncio.Lock`` because the underlying
HTTP provider session is not shared safely between threads.
"""

import asyncio
import logging
from dataclasses import replace
from typing import Any

from round_keeper.clients.chain import _abi, _web3_adapter
from round_keeper.clients.chain.models import (
    ConfirmedReceipt,
    ContractCall,
    GenesisFlags,
    OracleRoundData,
    RoundState,
    TxOverrides,
)

logger = logging.getLogger(__name__)

_DEFAULT_RECEIPT_TIMEOUT = 120.0
_DEFAULT_POLL_INTERVAL = 1.0


def connect(rpc_url: str, *, timeout: float = 30.0) -> Any:
    """Open a JSON-RPC connection shared by the clients below.

    Raises:
        ChainRPCError: When the endpoint does not answer.

    """
    return _web3_adapter.connect(rpc_url, timeout=timeout)


class PredictionContractClient:
    """Read-only async client for the prediction round contract.

    Args:
        w3: Connection returned by ``connect()``.
        address: Prediction contract address.

    """

    def __init__(self, w3: Any, address: str) -> None:
        """Bind the prediction contract."""
        self.address = _web3_adapter.checksum(address)
        self._contract = _web3_adapter.contract(w3, address, _abi.PREDICTION_ABI)
        self._lock = asyncio.Lock()

    async def _call(self, function_name: str, *args: Any) -> Any:
        async with self._lock:
            return await asyncio.to_thread(
                _web3_adapter.call_view, self._contract, function_name, *args
            )

    async def get_current_epoch(self) -> int:
        """Return the contract's current epoch."""
        return int(await self._call("currentEpoch"))

    async def get_round(self, epoch: int) -> RoundState:
        """Return a snapshot of the given round.

        Rounds that were never started come back with every field zeroed
        except ``epoch`` which is also ``0``; the requested epoch is kept so
        callers can still correlate the snapshot.
        """
        raw = await self._call("rounds", epoch)
        state = RoundState.from_contract(raw)
        if state.epoch != epoch:
            state = replace(state, epoch=epoch)
        return state

    async def get_genesis_flags(self) -> GenesisFlags:
        """Return the ``genesisStartOnce`` / ``genesisLockOnce`` pair."""
        start_done = await self._call("genesisStartOnce")
        lock_done = await self._call("genesisLockOnce")
        return GenesisFlags(start_done=bool(start_done), lock_done=bool(lock_done))

    async def is_paused(self) -> bool:
        """Return whether the contract is paused."""
        return bool(await self._call("paused"))

    async def get_operator_address(self) -> str:
        """Return the address allowed to drive rounds."""
        return _web3_adapter.checksum(str(await self._call("operatorAddress")))

    async def get_buffer_seconds(self) -> int:
        """Return the contract's configured buffer in seconds."""
        return int(await self._call("bufferSeconds"))

    async def get_interval_seconds(self) -> int:
        """Return the contract's round interval in seconds."""
        return int(await self._call("intervalSeconds"))

    async def get_oracle_update_allowance(self) -> int:
        """Return how stale an oracle answer may be, in seconds."""
        return int(await self._call("oracleUpdateAllowance"))

    async def get_oracle_latest_round_id(self) -> int:
        """Return the last oracle round id the prediction contract consumed."""
        return int(await self._call("oracleLatestRoundId"))


class OracleContractClient:
    """Read-only async client for the price oracle contract.

    Args:
        w3: Connection returned by ``connect()``.
        address: Oracle contract address.

    """

    def __init__(self, w3: Any, address: str) -> None:
        """Bind the oracle contract."""
        self.address = _web3_adapter.checksum(address)
        self._contract = _web3_adapter.contract(w3, address, _abi.ORACLE_ABI)
        self._lock = asyncio.Lock()

    async def get_latest_round_data(self) -> OracleRoundData:
        """Return the oracle's most recent answer."""
        async with self._lock:
            raw = await asyncio.to_thread(
                _web3_adapter.call_view, self._contract, "latestRoundData"
            )
        return OracleRoundData.from_contract(raw)

    async def get_decimals(self) -> int:
        """Return the number of decimals in oracle answers."""
        async with self._lock:
            return int(
                await asyncio.to_thread(_web3_adapter.call_view, self._contract, "decimals")
            )


class SubmittedTransaction:
    """Handle for a broadcast transaction awaiting confirmation.

    Args:
        sender: The sender that broadcast the transaction.
        tx_hash: Hex transaction hash.
        nonce: Nonce the transaction was sent with.

    """

    def __init__(self, sender: "ContractTransactionSender", tx_hash: str, nonce: int) -> None:
        """Store the broadcast details."""
        self._sender = sender
        self.tx_hash = tx_hash
        self.nonce = nonce

    async def wait_confirmed(self, depth: int) -> ConfirmedReceipt:
        """Wait until the transaction is ``depth`` blocks deep.

        Raises:
            TransactionTimeoutError: When confirmation takes too long.
            TransactionError: When polling fails.

        """
        return await self._sender.wait_for_receipt(self.tx_hash, depth)


class ContractTransactionSender:
    """Sign and broadcast state-changing calls to one contract.

    Args:
        w3: Connection returned by ``connect()``.
        address: Target contract address.
        abi: Contract ABI containing the functions to call.
        private_key: Hex private key of the signing account.
        receipt_timeout: Seconds to wait for a receipt before giving up.
        poll_interval: Seconds between receipt and block-number polls.

    """

    def __init__(  # noqa: PLR0913
        self,
        w3: Any,
        address: str,
        abi: list[dict[str, Any]],
        private_key: str,
        *,
        receipt_timeout: float = _DEFAULT_RECEIPT_TIMEOUT,
        poll_interval: float = _DEFAULT_POLL_INTERVAL,
    ) -> None:
        """Bind the contract and load the signing account."""
        self._w3 = w3
        self._contract = _web3_adapter.contract(w3, address, abi)
        self._account = _web3_adapter.load_account(private_key)
        self._receipt_timeout = receipt_timeout
        self._poll_interval = poll_interval
        self._lock = asyncio.Lock()

    @classmethod
    def for_prediction(
        cls, w3: Any, address: str, private_key: str, **kwargs: float
    ) -> "ContractTransactionSender":
        """Build a sender for the prediction contract's operator calls."""
        return cls(w3, address, _abi.PREDICTION_ABI, private_key, **kwargs)

    @classmethod
    def for_oracle(
        cls, w3: Any, address: str, private_key: str, **kwargs: float
    ) -> "ContractTransactionSender":
        """Build a sender for the oracle's ``updatePrice`` call."""
        return cls(w3, address, _abi.ORACLE_ABI, private_key, **kwargs)

    @property
    def signer_address(self) -> str:
        """Return the checksummed address of the signing account."""
        return str(self._account.address)

    async def send(self, call: ContractCall, overrides: TxOverrides) -> SubmittedTransaction:
        """Sign and broadcast ``call``.

        Raises:
            NonceTooLowError: When the nonce is already used.
            UnderpricedTransactionError: When a pending transaction outbids this one.
            TransactionError: For any other submission failure.

        """
        async with self._lock:
            tx_hash, nonce = await asyncio.to_thread(
                _web3_adapter.send_transaction,
                self._w3,
                self._account,
                self._contract,
                call,
                overrides,
            )
        logger.debug("Broadcast %s as %s (nonce %d)", call, tx_hash, nonce)
        return SubmittedTransaction(self, tx_hash, nonce)

    async def wait_for_receipt(self, tx_hash: str, depth: int) -> ConfirmedReceipt:
        """Wait for ``tx_hash`` to reach ``depth`` confirmations."""
        return await asyncio.to_thread(
            _web3_adapter.wait_for_confirmations,
            self._w3,
            tx_hash,
            depth,
            timeout=self._receipt_timeout,
            poll_interval=self._poll_interval,
        )

    async def get_transaction_count(self, block_identifier: str) -> int:
        """Return the signer's nonce at ``"pending"`` or ``"latest"``."""
        async with self._lock:
            return await asyncio.to_thread(
                _web3_adapter.get_transaction_count,
                self._w3,
                self.signer_address,
                block_identifier,
            )
