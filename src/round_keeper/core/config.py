"""Configuration management for the round keeper agents."""

import os
import re
from pathlib import Path
from typing import Any, cast

import yaml
from dotenv import load_dotenv

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off", ""})
_BASE_FILE = "settings.yaml"
_LOCAL_FILE = "settings.local.yaml"
_WHOLE_REF = re.compile(r"\$\{(?P<name>[^}:]+)(?::(?P<default>[^}]*))?\}")
_ANY_REF = re.compile(r"\$\{[^}]+\}")


class ConfigError(Exception):
    """Raise when configuration loading or validation fails."""


class ConfigLoader:
    """Layered YAML settings with `${VAR}` references resolved from the environment."""

    def __init__(self, config_dir: Path | None = None) -> None:
        """Read settings from ``config_dir`` after loading ``.env`` into the environment.

        Args:
            config_dir: Directory containing config files. Defaults to src/round_keeper/config.

        """
        load_dotenv()
        if config_dir is None:
            config_dir = Path(__file__).parent.parent / "config"
        self.config_dir = Path(config_dir)
        self._config: dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        """Read ``settings.yaml``, overlay ``settings.local.yaml``, then resolve env refs."""
        merged: dict[str, Any] = {}
        for name in (_BASE_FILE, _LOCAL_FILE):
            path = self.config_dir / name
            if not path.exists():
                continue
            with path.open() as f:
                layer = cast("dict[str, Any]", yaml.safe_load(f) or {})
            _deep_merge(merged, layer)
        self._config = _resolve(merged)

    def get(self, key: str, default: Any = None) -> Any:
        """Look up a dotted key such as ``keeper.buffer_seconds``.

        Returns:
            The raw value, or ``default`` when any segment is missing.

        """
        node: Any = self._config
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = cast("dict[str, Any]", node)[part]
        return default if node is None else node

    def require(self, key: str) -> str:
        """Return a non-empty string value or fail.

        Args:
            key: Configuration key in dot notation.

        Returns:
            The configured value with surrounding whitespace removed.

        Raises:
            ConfigError: If the key is missing or blank.

        """
        value = self.get(key)
        if value is None or not str(value).strip():
            msg = f"Missing required configuration value: {key}"
            raise ConfigError(msg)
        return str(value).strip()

    def get_str(self, key: str, default: str = "") -> str:
        """Return a string value, falling back to ``default`` when unset."""
        value = self.get(key)
        if value is None:
            return default
        return str(value).strip()

    def get_int(self, key: str, default: int) -> int:
        """Return an integer value.

        Raises:
            ConfigError: If the value cannot be parsed as an integer.

        """
        value = self.get(key)
        if value is None or value == "":
            return default
        try:
            return int(str(value).strip())
        except ValueError as exc:
            msg = f"{key} must be an integer, got {value!r}"
            raise ConfigError(msg) from exc

    def get_float(self, key: str, default: float) -> float:
        """Return a float value.

        Raises:
            ConfigError: If the value cannot be parsed as a number.

        """
        value = self.get(key)
        if value is None or value == "":
            return default
        try:
            return float(str(value).strip())
        except ValueError as exc:
            msg = f"{key} must be a number, got {value!r}"
            raise ConfigError(msg) from exc

    def get_bool(self, key: str, *, default: bool) -> bool:
        """Return a boolean value parsed from YAML or an env-style string.

        Raises:
            ConfigError: If the value is not a recognised boolean literal.

        """
        value = self.get(key)
        if value is None:
            return default
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE_VALUES:
            return True
        if text in _FALSE_VALUES:
            return False
        msg = f"{key} must be a boolean, got {value!r}"
        raise ConfigError(msg)



def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> None:
    """Merge ``override`` into ``base`` in place, recursing into nested sections."""
    for key, value in override.items():
        current = base.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            _deep_merge(cast("dict[str, Any]", current), cast("dict[str, Any]", value))
        else:
            base[key] = value


def _resolve(node: Any) -> Any:
    """Replace ``${VAR}`` and ``${VAR:default}`` values with environment lookups.

    Only whole-value references are substituted. A reference embedded in a
    longer string is rejected.

    Raises:
        ConfigError: If a variable without a default is unset, or a
            reference is embedded in a longer string.

    """
    if isinstance(node, dict):
        return {
            key: _resolve(value)
            for key, value in node.items()  # pyright: ignore[reportUnknownVariableType]
        }
    if isinstance(node, list):
        return [_resolve(item) for item in node]  # pyright: ignore[reportUnknownVariableType]
    if not isinstance(node, str):
        return node

    match = _WHOLE_REF.fullmatch(node)
    if match is not None:
        name, default = match.group("name"), match.group("default")
        value = os.getenv(name, default)
        if value is None:
            msg = f"Required environment variable ${{{name}}} is not set and has no default"
            raise ConfigError(msg)
        return value
    if _ANY_REF.search(node):
        msg = f"Unresolved environment variable reference in: {node}"
        raise ConfigError(msg)
    return node


_config: ConfigLoader | None = None


def get_config() -> ConfigLoader:
    """Return the process-wide loader, building it on the first call."""
    global _config  # noqa: PLW0603
    if _config is None:
        _config = ConfigLoader()
    return _config
