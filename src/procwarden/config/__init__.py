"""procwarden configuration.

This module provides the public API for procwarden configuration management,
including loading, validation, and typed access to configuration values.

Example:
    >>> from procwarden.config import Config
    >>> config = Config.load()
    >>> config.service.port
    6379
"""

from procwarden.exceptions import (
    ConfigError,
    ConfigLoadError,
    ConfigValidationError,
)

from ._defaults import DEFAULT_CONFIG
from ._discovery import discover_sources, get_project_config_path, get_user_config_path
from ._load import safe_load_config
from ._loader import (
    ENV_PREFIX,
    copy_value,
    deep_merge,
    parse_env_vars,
    parse_string_value,
    read_toml_file,
    set_nested_key,
)
from ._models import (
    Config,
    ConfigSource,
    ConfigSourceName,
    LogFormat,
    LoggingConfig,
    LogLevel,
    ServiceConfig,
    SupervisorConfig,
)

__all__ = [
    "DEFAULT_CONFIG",
    "ENV_PREFIX",
    "Config",
    "ConfigError",
    "ConfigLoadError",
    "ConfigSource",
    "ConfigSourceName",
    "ConfigValidationError",
    "LogFormat",
    "LogLevel",
    "LoggingConfig",
    "ServiceConfig",
    "SupervisorConfig",
    "copy_value",
    "deep_merge",
    "discover_sources",
    "get_project_config_path",
    "get_user_config_path",
    "parse_env_vars",
    "parse_string_value",
    "read_toml_file",
    "safe_load_config",
    "set_nested_key",
]
