"""Exception hierarchy for chain client errors.

Follow the same pattern as the Binance client: a base exception class with
specialised subclasses. Every subclass of ``ChainError`` is considered
transient by the transaction submitter and may be retried.
"""


class ChainError(Exception):
    """Base exception for all chain client errors."""


class ChainRPCError(ChainError):
    """A JSON-RPC read or transport call failed.

    Args:
        msg: Human-readable description of the failure.

    """

    def __init__(self, msg: str) -> None:
        """Initialize chain RPC error."""
        super().__init__(msg)
        self.msg = msg


class TransactionError(ChainError):
    """A transaction could not be submitted or confirmed.

    Args:
        msg: Human-readable description of the failure.
        tx_hash: Hash of the transaction when it was broadcast, else ``None``.

    """

    def __init__(self, msg: str, tx_hash: str | None = None) -> None:
        """Initialize transaction error."""
        super().__init__(msg if tx_hash is None else f"{msg} (tx: {tx_hash})")
        self.msg = msg
        self.tx_hash = tx_hash


class UnderpricedTransactionError(TransactionError):
    """A pending transaction with the same nonce outbids this one (replacement underpriced)."""


class NonceTooLowError(TransactionError):
    """The nonce is already mined, or this exact transaction is already in the pool."""


class TransactionRevertedError(TransactionError):
    """The transaction was mined but its receipt reports failure."""


class TransactionTimeoutError(TransactionError):
    """No receipt, or not enough confirmations, before the deadline."""
