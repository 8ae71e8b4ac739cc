"""Shared test configuration and fixtures."""

import os
from collections.abc import Iterator
from unittest.mock import patch

import pytest

import round_keeper.core.config as config_module

# Environment variables referenced by settings.yaml; a developer's shell or
# .env must not leak into tests that load the real configuration.
_CONFIG_ENV_VARS = (
    "RPC_URL",
    "PREDICTION_ADDRESS",
    "ORACLE_ADDRESS",
    "OPERATOR_KEY",
    "PRIVATE_KEY",
    "BUFFER_SECONDS",
    "SAFE_DELAY_SECONDS",
    "CHECK_INTERVAL",
    "INTERVAL",
    "FEE_MODE",
    "GAS_LIMIT",
    "GAS_PRICE_GWEI",
    "WINDOW_ANCHOR",
    "SCAN_MODE",
    "RECOVERY_ENABLED",
    "FEEDER_WINDOW_GATED",
)


@pytest.fixture(autouse=True)
def _isolate_config_env() -> Iterator[None]:  # pyright: ignore[reportUnusedFunction]
    """Remove config-related env vars and reset the config singleton."""
    clean = {k: v for k, v in os.environ.items() if k not in _CONFIG_ENV_VARS}
    with patch.dict(os.environ, clean, clear=True), patch(
        "round_keeper.core.config.load_dotenv"
    ):
        config_module._config = None  # pyright: ignore[reportPrivateUsage]
        yield
        config_module._config = None  # pyright: ignore[reportPrivateUsage]
