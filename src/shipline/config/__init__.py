"""Configuration loading for shipline."""

from shipline.config.exceptions import (
    ConfigError,
    ConfigFileNotFoundError,
    ConfigFormatError,
    ShiplineError,
)
from shipline.config.loader import (
    CONFIG_ENV_VAR,
    DEFAULT_CONFIG_FILENAME,
    load_config,
    load_from_string,
    resolve_config_path,
)

__all__ = [
    "CONFIG_ENV_VAR",
    "DEFAULT_CONFIG_FILENAME",
    "ConfigError",
    "ConfigFileNotFoundError",
    "ConfigFormatError",
    "ShiplineError",
    "load_config",
    "load_from_string",
    "resolve_config_path",
]
