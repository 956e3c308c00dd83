"""
wpmcp settings.

Every setting (WP_ROOT, the API credentials, the remote WordPress
credentials, HOST/PORT/LOG_LEVEL ...) is declared once in
Config.schema and resolved in this order:

1. the process environment, after .env is loaded with python-dotenv
2. data/config.json, written by Config.set()
3. the schema default

Passwords are never written to data/config.json and are masked by get_all().
"""

import json
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from dotenv import load_dotenv

from wpmcp.shared.gate import GateLogger, PathUtils

from wpmcp.Config.schema import (
    CONFIG_SCHEMA,
    ConfigField,
    ConfigType,
    ConfigCategory,
    get_schema_by_key,
    schema_to_dict,
)

_log = GateLogger.get("Config")


PROJECT_ROOT = Path(__file__).resolve().parents[2]
ENV_FILE = PROJECT_ROOT / ".env"
CONFIG_JSON = PROJECT_ROOT / "data" / "config.json"

_TRUTHY = ("true", "1", "yes", "on")


def _coerce(value: Any, config_type: ConfigType) -> Any:
    """Turn an env string or JSON value into the field's type; unparseable values pass through."""
    if value is None:
        return None

    try:
        if config_type == ConfigType.INTEGER:
            return int(value)
        if config_type == ConfigType.BOOLEAN:
            return value if isinstance(value, bool) else str(value).lower() in _TRUTHY
        if config_type == ConfigType.LIST:
            if isinstance(value, list):
                return value
            return [item.strip() for item in str(value).split(",") if item.strip()]
        return str(value) if value else None
    except (ValueError, TypeError):
        return value


def _mask(value: Any) -> Optional[str]:
    # long secrets keep their last four characters
    if not value:
        return None
    text = str(value)
    return "***" + text[-4:] if len(text) > 12 else "****"


def _field_errors(field: ConfigField, value: Any) -> List[str]:
    if value is None or value == "":
        return [f"Required config missing: {field.key}"] if field.required else []
    if not value:
        return []

    errors = []
    if field.validation and not re.match(field.validation, str(value)):
        errors.append(f"Invalid format for {field.key}")
    if field.options and value not in field.options:
        errors.append(f"Invalid option for {field.key}: {value}")
    return errors


class ConfigManager:
    """
    Resolved settings for one process.

    The env file and the JSON file can be pointed elsewhere, which the
    tests do to keep away from the real data/config.json.
    """

    def __init__(
        self,
        env_file: Optional[Union[str, Path]] = None,
        config_json: Optional[Union[str, Path]] = None,
    ):
        self.env_file = Path(env_file) if env_file else ENV_FILE
        self.config_json = Path(config_json) if config_json else CONFIG_JSON
        self._cache: Dict[str, Any] = {}
        self._loaded = False
        self._load()

    def _read_saved(self) -> Dict[str, Any]:
        if not self.config_json.exists():
            return {}
        try:
            with open(self.config_json, encoding="utf-8") as f:
                return json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            _log.warning(f"Ignoring unreadable {self.config_json}: {e}")
            return {}

    def _load(self):
        load_dotenv(self.env_file)
        saved = self._read_saved()

        for field in CONFIG_SCHEMA:
            value = os.environ.get(field.env_var)
            if value is None:
                value = saved.get(field.key)
            if value is None:
                value = field.default
            self._cache[field.key] = _coerce(value, field.config_type)

        self._loaded = True

    def get(self, key: str, default: Any = None) -> Any:
        """Resolved value of key, or default when it is unset."""
        if not self._loaded:
            self._load()
        value = self._cache.get(key)
        return default if value is None else value

    def set(self, key: str, value: Any, persist: bool = True) -> bool:
        """
        Override a setting for this process.

        With persist the non-secret overrides are written to
        data/config.json. Returns False for keys the schema does not know.
        """
        field = get_schema_by_key(key)
        if not field:
            return False

        self._cache[key] = _coerce(value, field.config_type)
        if persist:
            self._save_json()
        return True

    def _save_json(self):
        overrides = {
            field.key: self._cache[field.key]
            for field in CONFIG_SCHEMA
            if not field.sensitive
            and self._cache.get(field.key) is not None
            and self._cache[field.key] != field.default
        }

        PathUtils.ensure_dirs(self.config_json)
        with open(self.config_json, "w", encoding="utf-8") as f:
            json.dump(overrides, f, indent=2)

    def get_all(self, include_secrets: bool = False) -> Dict[str, Any]:
        """Every setting by key; passwords masked unless include_secrets."""
        values = {}
        for field in CONFIG_SCHEMA:
            value = self._cache.get(field.key)
            if field.sensitive and not include_secrets:
                value = _mask(value)
            values[field.key] = value
        return values

    def validate(self) -> Tuple[bool, List[str]]:
        """(ok, errors); run at startup before the gates initialize."""
        errors = []
        for field in CONFIG_SCHEMA:
            errors.extend(_field_errors(field, self._cache.get(field.key)))
        return not errors, errors

    def create_env_template(self) -> str:
        """Text of a .env.example covering every setting, grouped by category."""
        lines = [
            "# wpmcp Configuration",
            "# Copy this file to .env and fill in your values",
            "",
        ]

        category = None
        for field in CONFIG_SCHEMA:
            if field.category != category:
                category = field.category
                lines += [f"# === {category.value.title()} ===", ""]

            lines.append(f"# {field.description}")
            if field.required:
                lines.append("# (REQUIRED)")
            if field.options:
                lines.append(f"# Options: {', '.join(field.options)}")

            shown = "" if field.sensitive or field.default is None else field.default
            lines += [f"{field.env_var}={shown}", ""]

        return "\n".join(lines)


_manager: Optional[ConfigManager] = None


def get_manager() -> ConfigManager:
    """The process-wide ConfigManager, created on first use."""
    global _manager
    if _manager is None:
        _manager = ConfigManager()
    return _manager


def reload():
    """Re-read .env and data/config.json."""
    global _manager
    _manager = ConfigManager()


def get(key: str, default: Any = None) -> Any:
    return get_manager().get(key, default)


def set(key: str, value: Any, persist: bool = True) -> bool:
    return get_manager().set(key, value, persist)


def get_all(include_secrets: bool = False) -> Dict:
    return get_manager().get_all(include_secrets)


def validate() -> Tuple[bool, List[str]]:
    return get_manager().validate()


def get_schema() -> Dict:
    """Settings grouped by category."""
    return schema_to_dict()


__all__ = [
    "ConfigManager",
    "ConfigField",
    "ConfigType",
    "ConfigCategory",
    "CONFIG_SCHEMA",
    "get_manager",
    "reload",
    "get",
    "set",
    "get_all",
    "validate",
    "get_schema",
]
