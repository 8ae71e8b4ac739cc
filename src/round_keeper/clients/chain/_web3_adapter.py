"""Isolated bridge to the synchronous ``web3`` and ``eth_account`` libraries.

This is the **only** module that imports from ``web3`` or ``eth_account``.
Every function is blocking and is meant to be called through
``asyncio.to_thread()`` by the async facade in ``client.py``. Library
exceptions are translated into the ``ChainError`` hierarchy here so callers
never see web3.py types.
"""

import logging
import time
from typing import Any

from eth_account import Account  # type: ignore[import-untyped]
from web3 import Web3
from web3.exceptions import TimeExhausted, Web3Exception
from web3.types import Nonce, TxParams, Wei

from round_keeper.clients.chain.exceptions import (
    ChainRPCError,
    NonceTooLowError,
    TransactionError,
    TransactionTimeoutError,
    UnderpricedTransactionError,
)
from round_keeper.clients.chain.models import (
    ConfirmedReceipt,
    ContractCall,
    DynamicFee,
    FixedGasPrice,
    TxOverrides,
)

_logger = logging.getLogger(__name__)

# Node error fragments, checked against the lower-cased message
_UNDERPRICED_MARKERS = ("replacement transaction underpriced", "transaction underpriced")
_NONCE_USED_MARKERS = ("nonce too low", "already known", "known transaction")

_TRANSPORT_ERRORS = (Web3Exception, ValueError, OSError)


def connect(rpc_url: str, *, timeout: float = 30.0) -> Any:
    """Create a ``Web3`` instance for an HTTP JSON-RPC endpoint.

    Args:
        rpc_url: JSON-RPC endpoint URL.
        timeout: Per-request transport timeout in seconds.

    Returns:
        A connected ``Web3`` instance.

    Raises:
        ChainRPCError: When the endpoint does not answer.

    """
    w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))
    if not w3.is_connected():
        raise ChainRPCError(f"Cannot connect to RPC at {rpc_url}")
    return w3


def load_account(private_key: str) -> Any:
    """Return a local signing account for a hex private key.

    Raises:
        ValueError: If the key is malformed.

    """
    return Account.from_key(private_key)


def checksum(address: str) -> str:
    """Return the EIP-55 checksummed form of an address."""
    return str(Web3.to_checksum_address(address))


def contract(w3: Any, address: str, abi: list[dict[str, Any]]) -> Any:
    """Bind a contract instance at ``address`` with the given ABI."""
    return w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)


def call_view(bound: Any, function_name: str, *args: Any) -> Any:
    """Call a view function against the latest block.

    Raises:
        ChainRPCError: When the call fails for any transport or node reason.

    """
    try:
        return getattr(bound.functions, function_name)(*args).call(block_identifier="latest")
    except _TRANSPORT_ERRORS as exc:
        raise ChainRPCError(f"Failed to call {function_name}: {exc}") from exc


def get_transaction_count(w3: Any, address: str, block_identifier: str) -> int:
    """Return the account nonce at ``"pending"`` or ``"latest"``.

    Raises:
        ChainRPCError: When the RPC call fails.

    """
    try:
        return int(w3.eth.get_transaction_count(address, block_identifier))
    except _TRANSPORT_ERRORS as exc:
        raise ChainRPCError(f"Failed to read {block_identifier} nonce: {exc}") from exc


def _fee_params(overrides: TxOverrides) -> TxParams:
    fee = overrides.fee
    if isinstance(fee, FixedGasPrice):
        return {"gasPrice": Wei(fee.gas_price_wei)}
    if isinstance(fee, DynamicFee):
        return {
            "maxFeePerGas": Wei(fee.max_fee_per_gas_wei),
            "maxPriorityFeePerGas": Wei(fee.max_priority_fee_per_gas_wei),
        }
    msg = f"Unsupported fee specification: {fee!r}"
    raise TypeError(msg)


def _translate_send_error(call: ContractCall, exc: Exception) -> TransactionError:
    text = str(exc).lower()
    if any(marker in text for marker in _NONCE_USED_MARKERS):
        return NonceTooLowError(f"{call.function_name} rejected: {exc}")
    if any(marker in text for marker in _UNDERPRICED_MARKERS):
        return UnderpricedTransactionError(f"{call.function_name} rejected: {exc}")
    return TransactionError(f"Failed to send {call.function_name}: {exc}")


def send_transaction(
    w3: Any,
    account: Any,
    bound: Any,
    call: ContractCall,
    overrides: TxOverrides,
) -> tuple[str, int]:
    """Build, sign, and broadcast a contract transaction.

    When ``overrides.nonce`` is ``None`` the account's pending transaction
    count is used.

    Args:
        w3: ``Web3`` instance.
        account: Local signing account.
        bound: Contract instance to call.
        call: Function name and arguments.
        overrides: Gas limit, fee, and optional nonce.

    Returns:
        Tuple of ``(tx_hash_hex, nonce_used)``.

    Raises:
        NonceTooLowError: When the nonce is already used or the transaction is known.
        UnderpricedTransactionError: When a pending replacement outbids this one.
        TransactionError: For any other submission failure.

    """
    try:
        nonce = (
            overrides.nonce
            if overrides.nonce is not None
            else int(w3.eth.get_transaction_count(account.address, "pending"))
        )
        params: TxParams = {
            "from": account.address,
            "gas": overrides.gas_limit,
            "nonce": Nonce(nonce),
            **_fee_params(overrides),
        }
        function = getattr(bound.functions, call.function_name)(*call.args)
        tx = function.build_transaction(params)
        signed = account.sign_transaction(tx)
        tx_hash = w3.eth.send_raw_transaction(signed.raw_transaction)
    except _TRANSPORT_ERRORS as exc:
        raise _translate_send_error(call, exc) from exc
    return Web3.to_hex(tx_hash), nonce


def wait_for_confirmations(
    w3: Any,
    tx_hash: str,
    confirmations: int,
    *,
    timeout: float,
    poll_interval: float,
) -> ConfirmedReceipt:
    """Block until the transaction is mined and buried ``confirmations`` deep.

    The block containing the transaction counts as the first confirmation.

    Raises:
        TransactionTimeoutError: When the deadline passes first.
        TransactionError: When the node fails while polling.

    """
    deadline = time.monotonic() + timeout
    try:
        receipt = w3.eth.wait_for_transaction_receipt(
            tx_hash, timeout=timeout, poll_latency=poll_interval
        )
        mined_block = int(receipt["blockNumber"])
        while int(w3.eth.block_number) - mined_block + 1 < confirmations:
            if time.monotonic() >= deadline:
                raise TransactionTimeoutError(
                    f"Fewer than {confirmations} confirmations before timeout", tx_hash
                )
            time.sleep(poll_interval)
    except TimeExhausted as exc:
        raise TransactionTimeoutError(f"No receipt within {timeout:.0f}s", tx_hash) from exc
    except _TRANSPORT_ERRORS as exc:
        raise TransactionError(f"Failed while waiting for receipt: {exc}", tx_hash) from exc

    _logger.debug("Receipt for %s at block %d", tx_hash, mined_block)
    return ConfirmedReceipt(
        tx_hash=tx_hash,
        block_number=mined_block,
        gas_used=int(receipt["gasUsed"]),
        status=int(receipt["status"]),
    )
