"""Build typed feeder settings from the YAML/env configuration."""

from dataclasses import dataclass

from round_keeper.apps.keeper.settings import (
    ChainSettings,
    load_chain_settings,
    load_submitter_config,
)
from round_keeper.apps.keeper.submitter import SubmitterConfig
from round_keeper.apps.oracle_feeder.models import FeederConfig
from round_keeper.core.config import ConfigError, ConfigLoader

_MS_PER_SECOND = 1000


@dataclass(frozen=True)
class FeederSettings:
    """Everything the feeder CLI needs to wire up a ``PriceFeeder``."""

    chain: ChainSettings
    oracle_address: str
    private_key: str
    prediction_address: str | None
    price_api_url: str
    feeder: FeederConfig
    submitter: SubmitterConfig


def load_feeder_config(loader: ConfigLoader) -> FeederConfig:
    """Read the ``feeder`` section into a ``FeederConfig``.

    Raises:
        ConfigError: If any value is malformed or out of range.

    """
    try:
        return FeederConfig(
            symbol=loader.get_str("feeder.symbol", "BTCUSD") or "BTCUSD",
            asset=loader.get_str("feeder.asset", "bitcoin") or "bitcoin",
            interval_seconds=loader.get_int("feeder.interval_ms", 10_000) / _MS_PER_SECOND,
            price_decimals=loader.get_int("feeder.price_decimals", 8),
            max_nonce_gap=loader.get_int("feeder.max_nonce_gap", 10),
            window_gated=loader.get_bool("feeder.window_gated", default=False),
            push_lead_seconds=loader.get_int("feeder.push_lead_seconds", 30),
            buffer_seconds=loader.get_int("keeper.buffer_seconds", 30),
            max_price_age_seconds=loader.get_int("feeder.max_price_age_seconds", 60),
            rate_limit_max_attempts=loader.get_int("feeder.rate_limit_max_attempts", 5),
            rate_limit_base_delay=loader.get_float("feeder.rate_limit_base_delay_seconds", 2.0),
        )
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc


def load_feeder_settings(loader: ConfigLoader) -> FeederSettings:
    """Read and validate all feeder settings.

    Args:
        loader: Configuration source.

    Returns:
        Fully validated feeder settings.

    Raises:
        ConfigError: If a required value is missing or any value is invalid.

    """
    feeder = load_feeder_config(loader)
    if feeder.window_gated and not loader.get_str("chain.prediction_address"):
        msg = "feeder.window_gated requires chain.prediction_address"
        raise ConfigError(msg)

    return FeederSettings(
        chain=load_chain_settings(loader),
        oracle_address=loader.require("chain.oracle_address"),
        private_key=loader.require("feeder.private_key"),
        prediction_address=loader.get_str("chain.prediction_address") or None,
        price_api_url=loader.get_str("feeder.price_api_url", "https://api.binance.us")
        or "https://api.binance.us",
        feeder=feeder,
        submitter=load_submitter_config(loader, "feeder.gas_limit", 200_000),
    )
