"""Logging configuration.

Settings are read from ``NTAG424_`` prefixed environment variables or set
programmatically.
"""

import os
from dataclasses import dataclass
from typing import Optional

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("json", "text")


@dataclass
class LoggingConfig:
    """Configuration for structured logging.

    Example:
        >>> config = LoggingConfig.from_env()
        >>> config = LoggingConfig(level="DEBUG", format="text")
        >>> config.validate()
    """

    level: str = "INFO"
    format: str = "json"  # or "text"
    output_file: Optional[str] = None
    include_source_location: bool = False

    @classmethod
    def from_env(cls) -> "LoggingConfig":
        """Create configuration from environment variables.

        Environment Variables:
            NTAG424_LOG_LEVEL: Log level (default: INFO)
            NTAG424_LOG_FORMAT: json or text (default: json)
            NTAG424_LOG_FILE: Write logs to this file instead of stderr
            NTAG424_LOG_SOURCE: Include file:line in entries (default: false)
        """
        return cls(
            level=os.getenv("NTAG424_LOG_LEVEL", "INFO").upper(),
            format=os.getenv("NTAG424_LOG_FORMAT", "json").lower(),
            output_file=os.getenv("NTAG424_LOG_FILE"),
            include_source_location=os.getenv("NTAG424_LOG_SOURCE", "false").lower()
            == "true",
        )

    def validate(self) -> list:
        """Validate configuration.

        Returns:
            List of validation error messages (empty if valid).
        """
        errors = []
        if self.level.upper() not in LOG_LEVELS:
            errors.append(f"Invalid log level: {self.level}")
        if self.format not in LOG_FORMATS:
            errors.append(f"Invalid log format: {self.format} (must be 'json' or 'text')")
        return errors
