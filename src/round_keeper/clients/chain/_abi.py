"""Minimal ABIs for the prediction and oracle contracts.

Only the functions the agents call are listed. The prediction ABI follows
the PancakeSwap ``PancakePredictionV3`` interface; ``lockRound`` is included
for deployments whose rounds lock through a separate call.
"""

from typing import Any


def _view(name: str, outputs: list[dict[str, Any]], inputs: list[dict[str, Any]] | None = None) -> dict[str, Any]:
    return {
        "name": name,
        "type": "function",
        "stateMutability": "view",
        "inputs": inputs or [],
        "outputs": outputs,
    }


def _write(name: str, inputs: list[dict[str, Any]] | None = None) -> dict[str, Any]:
    return {
        "name": name,
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": inputs or [],
        "outputs": [],
    }


_UINT256 = {"name": "", "type": "uint256"}
_BOOL = {"name": "", "type": "bool"}

PREDICTION_ABI: list[dict[str, Any]] = [
    _view("currentEpoch", [_UINT256]),
    _view(
        "rounds",
        [
            {"name": "epoch", "type": "uint256"},
            {"name": "startTimestamp", "type": "uint256"},
            {"name": "lockTimestamp", "type": "uint256"},
            {"name": "closeTimestamp", "type": "uint256"},
            {"name": "lockPrice", "type": "int256"},
            {"name": "closePrice", "type": "int256"},
            {"name": "lockOracleId", "type": "uint256"},
            {"name": "closeOracleId", "type": "uint256"},
            {"name": "totalAmount", "type": "uint256"},
            {"name": "bullAmount", "type": "uint256"},
            {"name": "bearAmount", "type": "uint256"},
            {"name": "rewardBaseCalAmount", "type": "uint256"},
            {"name": "rewardAmount", "type": "uint256"},
            {"name": "oracleCalled", "type": "bool"},
        ],
        inputs=[{"name": "", "type": "uint256"}],
    ),
    _view("genesisStartOnce", [_BOOL]),
    _view("genesisLockOnce", [_BOOL]),
    _view("paused", [_BOOL]),
    _view("operatorAddress", [{"name": "", "type": "address"}]),
    _view("bufferSeconds", [_UINT256]),
    _view("intervalSeconds", [_UINT256]),
    _view("oracleUpdateAllowance", [_UINT256]),
    _view("oracleLatestRoundId", [_UINT256]),
    _write("genesisStartRound"),
    _write("genesisLockRound"),
    _write("executeRound"),
    _write("lockRound"),
    _write("unpause"),
]

ORACLE_ABI: list[dict[str, Any]] = [
    _view(
        "latestRoundData",
        [
            {"name": "roundId", "type": "uint80"},
            {"name": "answer", "type": "int256"},
            {"name": "startedAt", "type": "uint256"},
            {"name": "updatedAt", "type": "uint256"},
            {"name": "answeredInRound", "type": "uint80"},
        ],
    ),
    _view("decimals", [{"name": "", "type": "uint8"}]),
    _write("updatePrice", [{"name": "_price", "type": "int256"}]),
]
