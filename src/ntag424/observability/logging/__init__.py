"""Structured logging for the codec and CLI."""

from ntag424.observability.logging.manager import LoggerManager, get_logger
from ntag424.observability.logging.structured import (
    StructuredFormatter,
    TextFormatter,
    redact_fields,
)

__all__ = [
    "LoggerManager",
    "StructuredFormatter",
    "TextFormatter",
    "get_logger",
    "redact_fields",
]
