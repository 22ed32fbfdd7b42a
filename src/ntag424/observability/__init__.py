"""Observability for ntag424: logging configuration and formatters."""

from ntag424.observability.config import LoggingConfig
from ntag424.observability.logging import (
    LoggerManager,
    StructuredFormatter,
    TextFormatter,
    get_logger,
    redact_fields,
)

__all__ = [
    "LoggingConfig",
    "LoggerManager",
    "StructuredFormatter",
    "TextFormatter",
    "get_logger",
    "redact_fields",
]
