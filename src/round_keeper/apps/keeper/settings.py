"""Build typed keeper settings from the YAML/env configuration.

Every value is read through ``ConfigLoader`` so that ``settings.yaml``,
``settings.local.yaml``, ``.env`` and the process environment all apply.
Missing required values and malformed numbers surface as ``ConfigError``
before any network connection is made.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum

from round_keeper.apps.keeper.models import (
    KeeperConfig,
    PriceCondition,
    RoundCall,
    ScanMode,
    WindowAnchor,
)
from round_keeper.apps.keeper.submitter import SubmitterConfig
from round_keeper.clients.chain.models import DynamicFee, FeeSpec, FixedGasPrice, gwei_to_wei
from round_keeper.core.config import ConfigError, ConfigLoader

_MS_PER_SECOND = 1000
_FEE_MODE_FIXED = "fixed"
_FEE_MODE_DYNAMIC = "dynamic"


@dataclass(frozen=True)
class ChainSettings:
    """Connection settings shared by both agents.

    Args:
        rpc_url: JSON-RPC endpoint.
        request_timeout_seconds: Per-request RPC timeout.
        receipt_timeout_seconds: Maximum wait for a transaction receipt.

    """

    rpc_url: str
    request_timeout_seconds: float
    receipt_timeout_seconds: float


@dataclass(frozen=True)
class KeeperSettings:
    """Everything the keeper CLI needs to wire up a ``RoundKeeper``."""

    chain: ChainSettings
    prediction_address: str
    operator_key: str
    oracle_address: str | None
    keeper: KeeperConfig
    submitter: SubmitterConfig


def parse_enum[E: Enum](loader: ConfigLoader, key: str, enum_cls: type[E], default: E) -> E:
    """Parse a lower-case enum value.

    Raises:
        ConfigError: If the value is not one of the enum's values.

    """
    raw = loader.get_str(key, default.value).lower()
    try:
        return enum_cls(raw)
    except ValueError as exc:
        allowed = ", ".join(str(member.value) for member in enum_cls)
        msg = f"{key} must be one of: {allowed}; got {raw!r}"
        raise ConfigError(msg) from exc


def _get_decimal(loader: ConfigLoader, key: str, default: str) -> Decimal:
    raw = loader.get_str(key, default) or default
    try:
        return Decimal(raw)
    except InvalidOperation as exc:
        msg = f"{key} must be a number, got {raw!r}"
        raise ConfigError(msg) from exc


def load_chain_settings(loader: ConfigLoader) -> ChainSettings:
    """Read the ``chain`` section and receipt timeout.

    Raises:
        ConfigError: If ``chain.rpc_url`` is missing.

    """
    return ChainSettings(
        rpc_url=loader.require("chain.rpc_url"),
        request_timeout_seconds=loader.get_float("chain.request_timeout_seconds", 30.0),
        receipt_timeout_seconds=loader.get_float("transactions.receipt_timeout_seconds", 120.0),
    )


def load_fee_spec(loader: ConfigLoader) -> FeeSpec:
    """Read the fee mode and its gwei prices.

    ``fixed`` sends legacy transactions at ``gas_price_gwei``; ``dynamic``
    sends EIP-1559 transactions capped at ``max_fee_gwei``.

    Raises:
        ConfigError: If the mode is unknown or a price is not a number.

    """
    mode = loader.get_str("transactions.fee_mode", _FEE_MODE_FIXED).lower()
    if mode == _FEE_MODE_FIXED:
        return FixedGasPrice(gwei_to_wei(_get_decimal(loader, "transactions.gas_price_gwei", "1000")))
    if mode == _FEE_MODE_DYNAMIC:
        return DynamicFee(
            max_fee_per_gas_wei=gwei_to_wei(_get_decimal(loader, "transactions.max_fee_gwei", "1000")),
            max_priority_fee_per_gas_wei=gwei_to_wei(
                _get_decimal(loader, "transactions.priority_fee_gwei", "2")
            ),
        )
    msg = f"transactions.fee_mode must be '{_FEE_MODE_FIXED}' or '{_FEE_MODE_DYNAMIC}', got {mode!r}"
    raise ConfigError(msg)


def load_submitter_config(loader: ConfigLoader, gas_limit_key: str, gas_limit_default: int) -> SubmitterConfig:
    """Read the ``transactions`` section plus an agent-specific gas limit.

    Raises:
        ConfigError: If any value is malformed or out of range.

    """
    try:
        return SubmitterConfig(
            gas_limit=loader.get_int(gas_limit_key, gas_limit_default),
            fee=load_fee_spec(loader),
            max_attempts=loader.get_int("transactions.max_attempts", 5),
            retry_delay_seconds=loader.get_float("transactions.retry_delay_seconds", 1.0),
            confirmations=loader.get_int("transactions.confirmations", 2),
            fee_bump_percent=_get_decimal(loader, "transactions.fee_bump_percent", "15"),
        )
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc


def load_keeper_config(loader: ConfigLoader) -> KeeperConfig:
    """Read the ``keeper`` section into a ``KeeperConfig``.

    Raises:
        ConfigError: If any value is malformed or out of range.

    """
    try:
        return KeeperConfig(
            poll_interval_seconds=loader.get_int("keeper.check_interval_ms", 1000) / _MS_PER_SECOND,
            buffer_seconds=loader.get_int("keeper.buffer_seconds", 30),
            safe_delay_seconds=loader.get_int("keeper.safe_delay_seconds", 0),
            window_anchor=parse_enum(loader, "keeper.window_anchor", WindowAnchor, WindowAnchor.LOCK),
            price_condition=parse_enum(
                loader, "keeper.price_condition", PriceCondition, PriceCondition.ORACLE_CALLED
            ),
            round_call=parse_enum(loader, "keeper.round_call", RoundCall, RoundCall.EXECUTE),
            scan_mode=parse_enum(loader, "keeper.scan_mode", ScanMode, ScanMode.WIDE),
            scan_lookback=loader.get_int("keeper.scan_lookback", 3),
            retry_cooldown_seconds=loader.get_int("keeper.retry_cooldown_seconds", 5),
            recovery_enabled=loader.get_bool("keeper.recovery_enabled", default=False),
            monitor_interval_seconds=loader.get_int("keeper.monitor_interval_seconds", 10),
        )
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc


def load_keeper_settings(loader: ConfigLoader) -> KeeperSettings:
    """Read and validate all keeper settings.

    Args:
        loader: Configuration source.

    Returns:
        Fully validated keeper settings.

    Raises:
        ConfigError: If a required value is missing or any value is invalid.

    """
    keeper = load_keeper_config(loader)
    if keeper.safe_delay_seconds > keeper.buffer_seconds:
        msg = (
            f"keeper.safe_delay_seconds ({keeper.safe_delay_seconds}) must not exceed "
            f"keeper.buffer_seconds ({keeper.buffer_seconds})"
        )
        raise ConfigError(msg)
    if keeper.buffer_seconds <= 0:
        msg = f"keeper.buffer_seconds must be positive, got {keeper.buffer_seconds}"
        raise ConfigError(msg)

    return KeeperSettings(
        chain=load_chain_settings(loader),
        prediction_address=loader.require("chain.prediction_address"),
        operator_key=loader.require("keeper.operator_key"),
        oracle_address=loader.get_str("chain.oracle_address") or None,
        keeper=keeper,
        submitter=load_submitter_config(loader, "keeper.gas_limit", 500_000),
    )
