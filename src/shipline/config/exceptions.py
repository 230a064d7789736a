"""Exceptions raised while loading shipline configuration files.

Exception hierarchy::

    ShiplineError (root of every shipline error)
        ConfigError
            ConfigFileNotFoundError
            ConfigFormatError
"""

from __future__ import annotations


class ShiplineError(Exception):
    """Base exception for every error raised by shipline."""


class ConfigError(ShiplineError):
    """Base exception for configuration loading errors."""


class ConfigFileNotFoundError(ConfigError, FileNotFoundError):
    """The requested configuration file does not exist.

    Attributes:
        path: Path that was looked up.
    """

    def __init__(self, path: str) -> None:
        """Initialize ConfigFileNotFoundError.

        Args:
            path: Path that was looked up.
        """
        super().__init__(f"Configuration file not found: {path}")
        self.path = path


class ConfigFormatError(ConfigError, ValueError):
    """The configuration file cannot be parsed or has the wrong shape."""


__all__ = [
    "ConfigError",
    "ConfigFileNotFoundError",
    "ConfigFormatError",
    "ShiplineError",
]
