"""YAML configuration loader.

Pipeline definitions live in YAML files. The loader parses them with
``yaml.safe_load``, expands ``${env:VAR}`` / ``${VAR:-default}`` references to
process environment variables in string values, and returns a ``Box`` so
callers can use attribute access (``config.pipeline.name``).

The file is located in this order:

1. The explicit ``path`` argument.
2. The ``SHIPLINE_CONFIG`` environment variable.
3. ``shipline.yml`` in the current working directory.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from box import Box

from shipline.config.exceptions import ConfigFileNotFoundError, ConfigFormatError

logger = logging.getLogger(__name__)

#: Default configuration filename searched in the working directory.
DEFAULT_CONFIG_FILENAME = "shipline.yml"

#: Environment variable naming an explicit configuration file.
CONFIG_ENV_VAR = "SHIPLINE_CONFIG"

# ${VAR:-default} or ${env:VAR}; a bare ${VAR} is left for step templates
_ENV_VAR_PATTERN = re.compile(r"\$\{([a-zA-Z_][a-zA-Z0-9_]*):-([^}]*)\}|\$\{env:([a-zA-Z_][a-zA-Z0-9_]*)\}")


def _expand_env_vars(value: str) -> str:
    """Expand process environment references in a string value.

    Only two forms are expanded so that pipeline templates such as
    ``${IMAGE_NAME}`` survive loading untouched:

    - ``${env:VAR}`` - required variable, raises ConfigFormatError if not set
    - ``${VAR:-default}`` - optional variable with default value

    Args:
        value: String potentially containing references.

    Returns:
        String with the references expanded.

    Raises:
        ConfigFormatError: If a required variable is not set.

    Examples:
        >>> os.environ["SHIPLINE_DOC_VAR"] = "hello"
        >>> _expand_env_vars("${env:SHIPLINE_DOC_VAR} world")
        'hello world'
        >>> _expand_env_vars("${SHIPLINE_DOC_MISSING:-fallback}")
        'fallback'
        >>> _expand_env_vars("docker build -t ${IMAGE_NAME} .")
        'docker build -t ${IMAGE_NAME} .'
    """

    def _replace(match: re.Match[str]) -> str:
        optional_name, default, required_name = match.groups()
        if required_name is not None:
            if required_name not in os.environ:
                raise ConfigFormatError(f"Environment variable '{required_name}' is not set")
            return os.environ[required_name]
        return os.environ.get(optional_name, default)

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _expand_tree(data: Any) -> Any:
    """Recursively expand environment references in a parsed YAML tree."""
    if isinstance(data, str):
        return _expand_env_vars(data)
    if isinstance(data, dict):
        return {key: _expand_tree(value) for key, value in data.items()}
    if isinstance(data, list):
        return [_expand_tree(item) for item in data]
    return data


def resolve_config_path(path: str | os.PathLike[str] | None = None) -> Path:
    """Return the configuration file path to load.

    Args:
        path: Explicit path, takes precedence over everything else.

    Returns:
        Path to the configuration file.

    Raises:
        ConfigFileNotFoundError: If the resolved file does not exist.
    """
    if path is not None:
        candidate = Path(path).expanduser()
    elif os.getenv(CONFIG_ENV_VAR):
        candidate = Path(os.environ[CONFIG_ENV_VAR]).expanduser()
    else:
        candidate = Path.cwd() / DEFAULT_CONFIG_FILENAME

    if not candidate.is_file():
        raise ConfigFileNotFoundError(str(candidate))
    return candidate


def load_from_string(text: str, *, source: str = "<string>") -> Box:
    """Parse YAML text into a Box.

    Args:
        text: YAML document.
        source: Label used in error messages.

    Returns:
        Parsed configuration as a Box (empty Box for an empty document).

    Raises:
        ConfigFormatError: If the YAML is invalid or not a mapping.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigFormatError(f"Invalid YAML in {source}: {exc}") from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigFormatError(f"Top level of {source} must be a mapping, got {type(data).__name__}")

    return Box(_expand_tree(data), default_box=False, frozen_box=False)


def load_config(path: str | os.PathLike[str] | None = None) -> Box:
    """Load a shipline configuration file.

    Args:
        path: Optional explicit path (see module docstring for lookup order).

    Returns:
        Parsed configuration as a Box.

    Raises:
        ConfigFileNotFoundError: If no configuration file can be found.
        ConfigFormatError: If the file cannot be parsed.
    """
    config_path = resolve_config_path(path)
    logger.debug("Loading configuration from %s", config_path)
    text = config_path.read_text(encoding="utf-8")
    return load_from_string(text, source=str(config_path))


__all__ = [
    "CONFIG_ENV_VAR",
    "DEFAULT_CONFIG_FILENAME",
    "load_config",
    "load_from_string",
    "resolve_config_path",
]
