"""Logger manager for the ``ntag424`` logger tree."""

import logging
import sys
from typing import Optional

from ntag424.observability.config import LoggingConfig
from ntag424.observability.logging.structured import StructuredFormatter, TextFormatter

ROOT_LOGGER_NAME = "ntag424"


class LoggerManager:
    """Attaches a structured or text handler to the ``ntag424`` root logger.

    Example:
        >>> manager = LoggerManager(LoggingConfig(level="DEBUG", format="json"))
        >>> manager.configure()
        >>> get_logger("sdm.codec").info("ready", extra={"profile": "full"})
        >>> manager.shutdown()
    """

    def __init__(self, config: LoggingConfig) -> None:
        self.config = config
        self._handler: Optional[logging.Handler] = None
        self._formatter: Optional[logging.Formatter] = None
        self._configured = False

    def configure(self) -> None:
        """Install the handler. Calling twice is a no-op.

        Raises:
            ValueError: If the configuration is invalid.
        """
        if self._configured:
            return

        errors = self.config.validate()
        if errors:
            raise ValueError(f"Invalid logging configuration: {'; '.join(errors)}")

        if self.config.format == "json":
            self._formatter = StructuredFormatter(
                include_source_location=self.config.include_source_location,
            )
        else:
            self._formatter = TextFormatter(
                include_source_location=self.config.include_source_location,
            )

        if self.config.output_file:
            self._handler = logging.FileHandler(self.config.output_file)
        else:
            self._handler = logging.StreamHandler(sys.stderr)
        self._handler.setFormatter(self._formatter)

        root_logger = logging.getLogger(ROOT_LOGGER_NAME)
        root_logger.setLevel(self.config.level.upper())
        root_logger.addHandler(self._handler)
        root_logger.propagate = False

        self._configured = True

    def shutdown(self) -> None:
        """Remove and close the handler."""
        if not self._configured:
            return

        root_logger = logging.getLogger(ROOT_LOGGER_NAME)
        if self._handler:
            root_logger.removeHandler(self._handler)
            self._handler.close()
            self._handler = None
        root_logger.propagate = True
        self._configured = False

    def set_level(self, level: str) -> None:
        """Change the level of the whole ``ntag424`` tree."""
        logging.getLogger(ROOT_LOGGER_NAME).setLevel(level.upper())

    @property
    def is_configured(self) -> bool:
        """Whether the handler is installed."""
        return self._configured

    @property
    def handler(self) -> Optional[logging.Handler]:
        """The installed handler, if any."""
        return self._handler


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the ``ntag424`` root.

    Example:
        >>> get_logger("sdm.codec").name
        'ntag424.sdm.codec'
    """
    if not name.startswith(ROOT_LOGGER_NAME):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)
