"""Async clients for the prediction round and price oracle contracts."""

from round_keeper.clients.chain.client import (
    ContractTransactionSender,
    OracleContractClient,
    PredictionContractClient,
    SubmittedTransaction,
    connect,
)
from round_keeper.clients.chain.exceptions import (
    ChainError,
    ChainRPCError,
    NonceTooLowError,
    TransactionError,
    TransactionRevertedError,
    TransactionTimeoutError,
    UnderpricedTransactionError,
)
from round_keeper.clients.chain.models import (
    ConfirmedReceipt,
    ContractCall,
    DynamicFee,
    FixedGasPrice,
    GenesisFlags,
    OracleRoundData,
    RoundState,
    TxOverrides,
)

__all__ = [
    "ChainError",
    "ChainRPCError",
    "ConfirmedReceipt",
    "ContractCall",
    "ContractTransactionSender",
    "DynamicFee",
    "NonceTooLowError",
    "FixedGasPrice",
    "GenesisFlags",
    "OracleContractClient",
    "OracleRoundData",
    "PredictionContractClient",
    "RoundState",
    "SubmittedTransaction",
    "TransactionError",
    "TransactionRevertedError",
    "TransactionTimeoutError",
    "TxOverrides",
    "UnderpricedTransactionError",
    "connect",
]
