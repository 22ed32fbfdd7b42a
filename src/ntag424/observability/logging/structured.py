"""Log formatters that never emit key material.

Both formatters mask record attributes named like keys (``master_key``,
``enc_key``, ``mac_key``...) before rendering, so callers can pass context
through ``extra=`` without leaking secrets.
"""

import json
import logging
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ntag424.sdm.exceptions import REDACTED, SENSITIVE_FIELDS


def redact_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Mask sensitive entries in a mapping of log fields (recursively)."""
    masked: Dict[str, Any] = {}
    for key, value in fields.items():
        if key in SENSITIVE_FIELDS or key.lower().endswith("_key"):
            masked[key] = REDACTED
        elif isinstance(value, dict):
            masked[key] = redact_fields(value)
        else:
            masked[key] = value
    return masked


class StructuredFormatter(logging.Formatter):
    """JSON log formatter.

    Example output:
        {
            "timestamp": "2024-01-15T10:30:45.123456+00:00",
            "level": "WARNING",
            "logger": "ntag424.sdm.codec",
            "message": "SDM decode failed (DECRYPTION_ERROR): ...",
            "profile": "uidCounter"
        }
    """

    # LogRecord attributes that are not user-supplied extras
    STANDARD_FIELDS = {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
    }

    def __init__(
        self,
        include_source_location: bool = False,
        extra_fields: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize the structured formatter.

        Args:
            include_source_location: Include file, function, and line number.
            extra_fields: Static fields to include in every log entry.
        """
        super().__init__()
        self.include_source_location = include_source_location
        self.extra_fields = extra_fields or {}

    def format(self, record: logging.LogRecord) -> str:
        return json.dumps(self._build_log_entry(record), default=self._json_serializer)

    def _build_log_entry(self, record: logging.LogRecord) -> Dict[str, Any]:
        entry: Dict[str, Any] = {
            "timestamp": self._format_timestamp(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if self.include_source_location:
            entry["source"] = {
                "file": record.filename,
                "function": record.funcName,
                "line": record.lineno,
            }

        if record.exc_info:
            entry["exception"] = self._format_exception(record)

        entry.update(self.extra_fields)

        extras = {
            key: value
            for key, value in record.__dict__.items()
            if key not in self.STANDARD_FIELDS and not key.startswith("_")
        }
        entry.update(redact_fields(extras))
        return entry

    def _format_timestamp(self, record: logging.LogRecord) -> str:
        dt = datetime.fromtimestamp(record.created, tz=timezone.utc)
        return dt.isoformat(timespec="microseconds")

    def _format_exception(self, record: logging.LogRecord) -> Dict[str, Any]:
        exc_type, exc_value, exc_tb = record.exc_info
        exception: Dict[str, Any] = {
            "type": exc_type.__name__ if exc_type else None,
            "message": str(exc_value) if exc_value else None,
            "traceback": traceback.format_exception(exc_type, exc_value, exc_tb)
            if exc_tb
            else None,
        }
        # Codec errors carry a machine code and already-redacted details
        code = getattr(exc_value, "code", None)
        if code is not None:
            exception["code"] = code
            exception["details"] = getattr(exc_value, "details", None)
        return exception

    def _json_serializer(self, obj: Any) -> str:
        if isinstance(obj, (bytes, bytearray)):
            return obj.hex().upper()
        return str(obj)


class TextFormatter(logging.Formatter):
    """Human-readable text formatter.

    Produces entries like:
        2024-01-15T10:30:45.123Z WARNING  [ntag424.sdm.codec] CMAC verification failed
    """

    def __init__(self, include_source_location: bool = False) -> None:
        super().__init__()
        self.include_source_location = include_source_location

    def format(self, record: logging.LogRecord) -> str:
        dt = datetime.fromtimestamp(record.created, tz=timezone.utc)
        timestamp = dt.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"

        parts = [timestamp, record.levelname.ljust(8), f"[{record.name}]"]
        if self.include_source_location:
            parts.append(f"[{record.filename}:{record.lineno}]")
        parts.append(record.getMessage())

        extras = {
            key: value
            for key, value in record.__dict__.items()
            if key not in StructuredFormatter.STANDARD_FIELDS and not key.startswith("_")
        }
        if extras:
            parts.append(" ".join(f"{k}={v}" for k, v in redact_fields(extras).items()))

        result = " ".join(parts)
        if record.exc_info:
            result += "\n" + self.formatException(record.exc_info)
        return result
