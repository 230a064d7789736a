"""Logging helpers for shipline (rich console output, secret redaction)."""

from shipline.logging import manager
from shipline.logging.manager import (
    PRESETS,
    ROOT_LOGGER_NAME,
    SUCCESS_LEVEL,
    TRACE_LEVEL,
    SecretRedactingFilter,
    ShiplineLogger,
    get_logger,
    init_logging,
    redact_secrets,
)

__all__ = [
    "PRESETS",
    "ROOT_LOGGER_NAME",
    "SUCCESS_LEVEL",
    "TRACE_LEVEL",
    "SecretRedactingFilter",
    "ShiplineLogger",
    "get_logger",
    "init_logging",
    "manager",
    "redact_secrets",
]
