"""
Configuration schema for wpmcp.

Defines all configurable options with metadata for validation
and documentation.
"""

from enum import Enum
from typing import Optional, List, Any
from dataclasses import dataclass


class ConfigType(Enum):
    """Configuration value types."""
    STRING = "string"
    SECRET = "secret"      # Masked in listings, never logged
    INTEGER = "integer"
    BOOLEAN = "boolean"
    PATH = "path"          # File system path
    URL = "url"
    LIST = "list"          # Comma-separated values


class ConfigCategory(Enum):
    """Configuration categories for grouping."""
    WORDPRESS = "wordpress"
    CREDENTIALS = "credentials"
    PATHS = "paths"
    SERVER = "server"


@dataclass
class ConfigField:
    """Definition of a configuration field."""
    key: str
    description: str
    config_type: ConfigType
    category: ConfigCategory
    required: bool = False
    default: Any = None
    env_var: str = None          # Override env var name (defaults to key)
    validation: str = None       # Regex pattern
    options: List[str] = None    # For enumerated types
    sensitive: bool = False

    def __post_init__(self):
        if self.env_var is None:
            self.env_var = self.key
        if self.config_type == ConfigType.SECRET:
            self.sensitive = True


# ==================== Schema Definition ====================

CONFIG_SCHEMA: List[ConfigField] = [
    # === Paths ===
    ConfigField(
        key="WP_ROOT",
        description="WordPress installation root (the directory holding wp-content)",
        config_type=ConfigType.PATH,
        category=ConfigCategory.PATHS,
        required=True,
    ),
    ConfigField(
        key="WPMCP_FS_CONFIG_PATH",
        description="Optional JSON file overriding allowed roots, extensions and size limit",
        config_type=ConfigType.PATH,
        category=ConfigCategory.PATHS,
    ),

    # === Credentials (server side) ===
    ConfigField(
        key="WPMCP_API_USER",
        description="Username accepted by the file endpoints (HTTP Basic)",
        config_type=ConfigType.STRING,
        category=ConfigCategory.CREDENTIALS,
    ),
    ConfigField(
        key="WPMCP_API_PASSWORD",
        description="Password accepted by the file endpoints (HTTP Basic)",
        config_type=ConfigType.SECRET,
        category=ConfigCategory.CREDENTIALS,
    ),
    ConfigField(
        key="WPMCP_API_USER_ID",
        description="User id recorded in backup metadata for authenticated calls",
        config_type=ConfigType.INTEGER,
        category=ConfigCategory.CREDENTIALS,
        default=1,
    ),

    # === WordPress (client side) ===
    ConfigField(
        key="WORDPRESS_URL",
        description="Base URL of the WordPress site running the file endpoints",
        config_type=ConfigType.URL,
        category=ConfigCategory.WORDPRESS,
        validation=r"^https?://.*",
    ),
    ConfigField(
        key="WORDPRESS_USERNAME",
        description="WordPress username for application password auth",
        config_type=ConfigType.STRING,
        category=ConfigCategory.WORDPRESS,
    ),
    ConfigField(
        key="WORDPRESS_PASSWORD",
        description="WordPress application password",
        config_type=ConfigType.SECRET,
        category=ConfigCategory.WORDPRESS,
    ),

    # === Server ===
    ConfigField(
        key="HOST",
        description="Server bind address",
        config_type=ConfigType.STRING,
        category=ConfigCategory.SERVER,
        default="127.0.0.1",
    ),
    ConfigField(
        key="PORT",
        description="Server port",
        config_type=ConfigType.INTEGER,
        category=ConfigCategory.SERVER,
        default=8000,
    ),
    ConfigField(
        key="LOG_LEVEL",
        description="Logging level for the wpmcp loggers",
        config_type=ConfigType.STRING,
        category=ConfigCategory.SERVER,
        default="INFO",
        options=["DEBUG", "INFO", "WARNING", "ERROR"],
    ),
]


def get_schema_by_key(key: str) -> Optional[ConfigField]:
    """Get schema field by key."""
    for field in CONFIG_SCHEMA:
        if field.key == key:
            return field
    return None


def get_schema_by_category(category: ConfigCategory) -> List[ConfigField]:
    """Get all fields in a category."""
    return [f for f in CONFIG_SCHEMA if f.category == category]


def schema_to_dict() -> dict:
    """Convert schema to dict for API."""
    result = {}
    for cat in ConfigCategory:
        result[cat.value] = [
            {
                "key": f.key,
                "description": f.description,
                "type": f.config_type.value,
                "required": f.required,
                "default": f.default,
                "options": f.options,
                "sensitive": f.sensitive,
            }
            for f in get_schema_by_category(cat)
        ]
    return result
