"""Process-wide application configuration.

Configuration is read from a YAML file whose nested mappings are flattened to
dotted keys, so that

    endpoint:
      thumbnailer:
        format: png

is available as ``endpoint.thumbnailer.format``. Keys may also be written
already dotted at the top level.

Values are never cached by readers; every ``get_*`` call is a point-in-time
read, so a changed property takes effect on the next request.
"""

from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import Any

import yaml

from thumbnailer.exceptions import ConfigurationError

CONFIG_ENV_VAR = "THUMBNAILER_CONFIG"

_TRUE_VALUES = {"true", "yes", "on", "1"}
_FALSE_VALUES = {"false", "no", "off", "0"}


def _flatten(data: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    """Flatten nested mappings into a single level of dotted keys."""
    flat: dict[str, Any] = {}
    for key, value in data.items():
        full_key = f"{prefix}{key}"
        if isinstance(value, dict):
            flat.update(_flatten(value, f"{full_key}."))
        else:
            flat[full_key] = value
    return flat


class Configuration:
    """Thread-safe key/value configuration backed by an optional YAML file."""

    _application: Configuration | None = None
    _application_lock = threading.Lock()

    def __init__(
        self,
        properties: dict[str, Any] | None = None,
        path: Path | None = None,
    ) -> None:
        self.path = path
        self._lock = threading.Lock()
        self._properties: dict[str, Any] = _flatten(properties or {})

    @classmethod
    def from_yaml(cls, path: Path | str) -> Configuration:
        """Load a configuration from a YAML file."""
        path = Path(path)
        return cls(cls._read_yaml(path), path=path)

    @classmethod
    def for_application(cls) -> Configuration:
        """Get or create the process-wide configuration.

        On first use the file named by the ``THUMBNAILER_CONFIG`` environment
        variable is loaded, if set. Otherwise the configuration starts empty.
        """
        with cls._application_lock:
            if cls._application is None:
                env_path = os.getenv(CONFIG_ENV_VAR)
                cls._application = cls.from_yaml(env_path) if env_path else cls()
            return cls._application

    @classmethod
    def set_application(cls, config: Configuration | None) -> None:
        """Replace the process-wide configuration (None resets it)."""
        with cls._application_lock:
            cls._application = config

    @staticmethod
    def _read_yaml(path: Path) -> dict[str, Any]:
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise ConfigurationError(f"Cannot read configuration file {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration file {path} must contain a mapping")
        return data

    def reload(self) -> None:
        """Re-read the backing file, replacing all properties."""
        if self.path is None:
            return
        properties = _flatten(self._read_yaml(self.path))
        with self._lock:
            self._properties = properties

    # --- Reading ---

    def keys(self) -> set[str]:
        """All keys that currently have a value."""
        with self._lock:
            return set(self._properties)

    def has(self, key: str) -> bool:
        with self._lock:
            return key in self._properties

    def get(self, key: str, default: Any = None) -> Any:
        """Get the raw value of a key."""
        with self._lock:
            return self._properties.get(key, default)

    def get_string(self, key: str, default: str | None = None) -> str | None:
        value = self.get(key)
        if value is None:
            return default
        return str(value)

    def get_int(self, key: str, default: int | None = None) -> int | None:
        value = self.get(key)
        if value is None:
            return default
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"{key} must be an integer, got {value!r}") from e

    def get_float(self, key: str, default: float | None = None) -> float | None:
        value = self.get(key)
        if value is None:
            return default
        try:
            return float(value)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"{key} must be a number, got {value!r}") from e

    def get_bool(self, key: str, default: bool = False) -> bool:
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
        raise ConfigurationError(f"{key} must be a boolean, got {value!r}")

    # --- Writing ---

    def set_property(self, key: str, value: Any) -> None:
        with self._lock:
            self._properties[key] = value

    def clear_property(self, key: str) -> None:
        with self._lock:
            self._properties.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._properties.clear()
