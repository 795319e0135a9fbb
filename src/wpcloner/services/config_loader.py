"""YAML defaults file for the clone-wordpress CLI."""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from wpcloner.errors import ClonerError

_FLOAT_KEYS = ("command_timeout", "transfer_timeout", "ready_timeout", "ready_interval")
_INT_KEYS = ("retry_count", "lsapi_children")
_STRING_KEYS = ("folder", "log_file", "production_user", "ssh_config", "infrastructure_root")


class ConfigLoader:
    """Reads `.wpcloner.yml`-style files into a dict of CLI option defaults."""

    SUPPORTED_KEYS = set(_FLOAT_KEYS + _INT_KEYS + _STRING_KEYS) | {"verbose"}

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path).expanduser()
        if not path.is_file():
            raise ClonerError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise ClonerError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise ClonerError("Config file must contain a YAML mapping at the root.")

        unknown = sorted(str(key) for key in set(parsed) - self.SUPPORTED_KEYS)
        if unknown:
            raise ClonerError(f"Unknown configuration keys: {', '.join(unknown)}")

        return {key: self._coerce(config_path, key, value) for key, value in parsed.items()}

    @staticmethod
    def _coerce(config_path: str, key: str, value: Any) -> Any:
        # bool is an int subclass; `retry_count: yes` must not read as 1
        if key in _FLOAT_KEYS + _INT_KEYS and isinstance(value, bool):
            raise ClonerError(f"'{key}' in {config_path} must be a number, got {value!r}")
        if key in _FLOAT_KEYS:
            if not isinstance(value, (int, float)) or value <= 0:
                raise ClonerError(f"'{key}' in {config_path} must be a positive number, got {value!r}")
            return float(value)
        if key in _INT_KEYS:
            if not isinstance(value, int) or value < 0:
                raise ClonerError(f"'{key}' in {config_path} must be a non-negative integer, got {value!r}")
            return value
        if key == "verbose":
            if not isinstance(value, bool):
                raise ClonerError(f"'verbose' in {config_path} must be true or false, got {value!r}")
            return value
        if not isinstance(value, str) or not value:
            raise ClonerError(f"'{key}' in {config_path} must be a non-empty string, got {value!r}")
        return value
