"""
Shared logging utilities for sitterforge.
"""

import sys
import logging
import logging.handlers
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union
import structlog
from pythonjsonlogger import jsonlogger


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with additional fields."""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        """Add custom fields to the log record."""
        super().add_fields(log_record, record, message_dict)

        log_record['timestamp'] = datetime.now(timezone.utc).isoformat()
        log_record['level'] = record.levelname
        log_record['logger'] = record.name

        log_record['process'] = record.process

        log_record['file'] = record.filename
        log_record['line'] = record.lineno
        log_record['function'] = record.funcName


def setup_structlog(json_output: bool = False) -> None:
    """Configure structlog on top of the stdlib logger.

    Console output is rendered by structlog itself; JSON output hands the
    event dict to the stdlib formatter as ``extra`` fields.
    """
    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if json_output:
        processors.append(structlog.stdlib.render_to_log_kwargs)
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


class LogManager:
    """Manager for logging configuration."""

    def __init__(
        self,
        name: str = "sitterforge",
        log_level: str = "INFO",
        log_file: Optional[Union[str, Path]] = None,
        log_format: str = "%(message)s",
        log_rotation: str = "D",
        log_retention: int = 7,
        enable_json: bool = False,
        enable_console: bool = True,
    ):
        """Initialize logging manager.

        Args:
            name: Logger name
            log_level: Logging level
            log_file: Optional path of a rotating log file
            log_format: Log format string for plain output
            log_rotation: Log rotation interval
            log_retention: Number of rotated files to keep
            enable_json: Enable JSON formatting
            enable_console: Enable console logging on stderr
        """
        self.name = name
        self.log_level = getattr(logging, log_level.upper())
        self.log_file = Path(log_file) if log_file else None
        self.log_format = log_format
        self.log_rotation = log_rotation
        self.log_retention = log_retention
        self.enable_json = enable_json
        self.enable_console = enable_console

        self.logger = self._setup_logger()

    def _formatter(self) -> logging.Formatter:
        if self.enable_json:
            return CustomJsonFormatter('%(timestamp)s %(level)s %(name)s %(message)s')
        return logging.Formatter(self.log_format)

    def _setup_logger(self) -> logging.Logger:
        """Set up the logger with handlers."""
        logger = logging.getLogger(self.name)
        logger.setLevel(self.log_level)
        logger.propagate = False

        # Remove existing handlers
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()

        if self.enable_console:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setFormatter(self._formatter())
            logger.addHandler(console_handler)

        if self.log_file:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.TimedRotatingFileHandler(
                self.log_file,
                when=self.log_rotation,
                backupCount=self.log_retention
            )
            file_handler.setFormatter(self._formatter())
            logger.addHandler(file_handler)

        setup_structlog(json_output=self.enable_json)

        return logger

    def get_logger(self) -> logging.Logger:
        """Get the configured logger."""
        return self.logger

    def set_level(self, level: str) -> None:
        """Set the logging level."""
        self.log_level = getattr(logging, level.upper())
        self.logger.setLevel(self.log_level)
