"""Logging setup for shipline.

Console output goes through ``rich.logging.RichHandler``; an optional
file handler writes plain text. Two extra levels are registered:
``TRACE`` (5) below DEBUG and ``SUCCESS`` (25) between INFO and WARNING.

Presets:

- ``dev``: console at INFO with rich tracebacks
- ``debug``: console at TRACE, file at DEBUG when a path is configured
- ``prod``: console at WARNING, file at INFO when a path is configured
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.logging import RichHandler

#: Custom level below DEBUG for very chatty diagnostics.
TRACE_LEVEL = 5

#: Custom level between INFO and WARNING for completed operations.
SUCCESS_LEVEL = 25

#: Root logger name of the package.
ROOT_LOGGER_NAME = "shipline"

logging.addLevelName(TRACE_LEVEL, "TRACE")
logging.addLevelName(SUCCESS_LEVEL, "SUCCESS")

PRESETS: dict[str, dict[str, Any]] = {
    "dev": {
        "console": {"level": "INFO", "rich_tracebacks": True},
        "file": None,
    },
    "debug": {
        "console": {"level": "TRACE", "rich_tracebacks": True},
        "file": {"level": "DEBUG", "path": None},
    },
    "prod": {
        "console": {"level": "WARNING", "rich_tracebacks": False},
        "file": {"level": "INFO", "path": None},
    },
}

FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

_root_logger: ShiplineLogger | None = None


def _level(value: str | int) -> int:
    """Resolve a level name (including TRACE and SUCCESS) to its number."""
    if isinstance(value, int):
        return value
    resolved = logging.getLevelName(value.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {value!r}")
    return resolved


def _merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class ShiplineLogger(logging.Logger):
    """Logger with ``trace()`` and ``success()`` for the two extra levels.

    Only loggers under the ``shipline`` namespace use this class;
    ``logging.Logger`` itself is left untouched.

    Examples:
        >>> log = get_logger("docs")
        >>> isinstance(log, ShiplineLogger)
        True
        >>> hasattr(logging.Logger, "trace")
        False
    """

    def trace(self, msg: object, *args: Any, **kwargs: Any) -> None:
        """Log ``msg`` at TRACE level."""
        if self.isEnabledFor(TRACE_LEVEL):
            self._log(TRACE_LEVEL, msg, args, **kwargs)

    def success(self, msg: object, *args: Any, **kwargs: Any) -> None:
        """Log ``msg`` at SUCCESS level."""
        if self.isEnabledFor(SUCCESS_LEVEL):
            self._log(SUCCESS_LEVEL, msg, args, **kwargs)


def _namespace_logger(name: str) -> ShiplineLogger:
    """Return the logger ``name`` as a ``ShiplineLogger``.

    Module loggers created with ``logging.getLogger(__name__)`` before
    this call are promoted in place. The subclass adds methods only, so
    the instance state stays valid.
    """
    logger = logging.getLogger(name)
    if not isinstance(logger, ShiplineLogger):
        logger.__class__ = ShiplineLogger
    return logger  # type: ignore[return-value]


def init_logging(
    preset: str = "dev",
    config: Mapping[str, Any] | None = None,
    *,
    console: Console | None = None,
) -> ShiplineLogger:
    """Configure the ``shipline`` logger.

    Calling it again replaces the handlers installed by the previous call.

    Args:
        preset: One of ``dev``, ``debug`` or ``prod``.
        config: Overrides merged over the preset, e.g.
            ``{"console": {"level": "DEBUG"}, "file": {"path": "run.log"}}``.
        console: Rich console for the console handler (stderr by default).

    Returns:
        The configured ``shipline`` logger.

    Raises:
        ValueError: If the preset or a level name is unknown.
    """
    global _root_logger  # pylint: disable=global-statement

    if preset not in PRESETS:
        raise ValueError(f"Unknown logging preset {preset!r} (expected one of: {', '.join(sorted(PRESETS))})")
    settings = _merge(PRESETS[preset], config or {})

    logger = _namespace_logger(ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    # Handlers filter; the logger lets everything through
    logger.setLevel(TRACE_LEVEL)
    logger.propagate = False

    console_settings = settings.get("console")
    if console_settings:
        rich_handler = RichHandler(
            console=console or Console(stderr=True),
            rich_tracebacks=bool(console_settings.get("rich_tracebacks", False)),
            show_path=False,
            markup=False,
        )
        rich_handler.setLevel(_level(console_settings.get("level", "INFO")))
        logger.addHandler(rich_handler)

    file_settings = settings.get("file")
    if file_settings and file_settings.get("path"):
        path = Path(file_settings["path"]).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setLevel(_level(file_settings.get("level", "INFO")))
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(file_handler)

    _root_logger = logger
    return logger


def get_logger(name: str | None = None) -> ShiplineLogger:
    """Return a logger under the ``shipline`` namespace.

    Args:
        name: Child name; ``None`` returns the package logger.

    Examples:
        >>> get_logger("deploy").name
        'shipline.deploy'
        >>> get_logger("shipline.pipeline").name
        'shipline.pipeline'
    """
    if name is None:
        return _root_logger or _namespace_logger(ROOT_LOGGER_NAME)
    if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
        return _namespace_logger(name)
    return _namespace_logger(f"{ROOT_LOGGER_NAME}.{name}")


# ============================================================================
# Secret redaction
# ============================================================================


class SecretRedactingFilter(logging.Filter):
    """Mask secret values in log records before they are emitted.

    The record message is rendered, passed through ``redact`` and stored
    back with its arguments cleared, so formatters only see masked text.

    Args:
        redact: Function masking secrets in a string (usually ``CredentialVault.redact``).
    """

    def __init__(self, redact: Callable[[str], str]) -> None:
        super().__init__()
        self._redact = redact

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = self._redact(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        if record.exc_info and not record.exc_text:
            record.exc_text = self._redact(logging.Formatter().formatException(record.exc_info))
        return True


def _reachable_handlers(logger: logging.Logger) -> list[logging.Handler]:
    """Return every handler a record logged on ``logger`` can reach."""
    handlers: list[logging.Handler] = []
    current: logging.Logger | None = logger
    while current is not None:
        handlers.extend(handler for handler in current.handlers if handler not in handlers)
        if not current.propagate:
            break
        current = current.parent
    return handlers


@contextmanager
def redact_secrets(
    redact: Callable[[str], str],
    logger_name: str = ROOT_LOGGER_NAME,
) -> Iterator[SecretRedactingFilter]:
    """Install a ``SecretRedactingFilter`` on every reachable handler.

    Args:
        redact: Function masking secrets in a string.
        logger_name: Logger whose handler chain is covered.

    Yields:
        The installed filter.
    """
    secret_filter = SecretRedactingFilter(redact)
    handlers = _reachable_handlers(logging.getLogger(logger_name))
    for handler in handlers:
        handler.addFilter(secret_filter)
    try:
        yield secret_filter
    finally:
        for handler in handlers:
            handler.removeFilter(secret_filter)


__all__ = [
    "PRESETS",
    "ROOT_LOGGER_NAME",
    "SUCCESS_LEVEL",
    "TRACE_LEVEL",
    "SecretRedactingFilter",
    "ShiplineLogger",
    "get_logger",
    "init_logging",
    "redact_secrets",
]
