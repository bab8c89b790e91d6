"""Centralized logging configuration for the negotiation middleware.

This module provides:
- A TRACE level below DEBUG for per-request negotiation diagnostics
- Unified logger setup with console and optional rotating file handlers
- Structured JSON logging with contextual fields
- Negotiated format context propagation via contextvars
"""

import logging
import sys
from contextvars import ContextVar, Token
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from pythonjsonlogger.json import JsonFormatter

from negotiate.core.config import get_settings

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

# Context variable for the format negotiated for the in-flight request
_negotiated_format: ContextVar[str | None] = ContextVar("negotiated_format", default=None)

# Standard log format for console/file
CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def get_negotiated_format_context() -> str | None:
    """Get the negotiated format of the current request from context."""
    return _negotiated_format.get()


def set_negotiated_format_context(format_name: str | None) -> Token[str | None]:
    """Set the negotiated format in context.

    Returns:
        Token to pass to reset_negotiated_format_context() once the request is done
    """
    return _negotiated_format.set(format_name)


def reset_negotiated_format_context(token: Token[str | None]) -> None:
    """Restore the negotiated format context to its value before set."""
    _negotiated_format.reset(token)


class ContextFilter(logging.Filter):
    """Filter that adds contextual information to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Add negotiated_format to the log record."""
        record.negotiated_format = get_negotiated_format_context()  # type: ignore[attr-defined]
        return True


class CustomJsonFormatter(JsonFormatter):
    """Custom JSON formatter with ISO timestamp and extra fields."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        """Add custom fields to the JSON log record."""
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = datetime.now(UTC).isoformat()
        log_record["level"] = record.levelname
        log_record["component"] = record.name

        if getattr(record, "negotiated_format", None):
            log_record["negotiated_format"] = record.negotiated_format  # type: ignore[attr-defined]


def _resolve_level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging() -> None:
    """Configure logging for the negotiate package.

    Sets up:
    - Console handler (StreamHandler), plain text or JSON
    - File handler (RotatingFileHandler) when a log file path is configured

    When the trace setting is on, the logger and handlers are lowered to
    TRACE regardless of the configured log level.
    """
    settings = get_settings()
    log_level = _resolve_level(settings.log_level)
    if settings.trace:
        # Trace diagnostics are logged at TRACE
        log_level = min(log_level, TRACE)

    package_logger = logging.getLogger("negotiate")
    package_logger.setLevel(log_level)

    # Clear existing handlers so repeated calls do not duplicate output
    package_logger.handlers.clear()
    # Handler-level filter so records from child loggers get the context too
    context_filter = ContextFilter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.addFilter(context_filter)
    if settings.log_json:
        console_handler.setFormatter(CustomJsonFormatter("%(message)s"))
    else:
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    package_logger.addHandler(console_handler)

    if settings.log_file_path:
        try:
            log_path = Path(settings.log_file_path)
            log_path.parent.mkdir(parents=True, exist_ok=True)

            file_handler = RotatingFileHandler(
                filename=str(log_path),
                maxBytes=settings.log_file_max_bytes,
                backupCount=settings.log_file_backup_count,
                encoding="utf-8",
            )
            file_handler.setLevel(log_level)
            file_handler.addFilter(context_filter)
            file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
            package_logger.addHandler(file_handler)
        except OSError as e:
            package_logger.warning(f"Could not set up file logging: {e}")

    package_logger.debug(
        f"Logging configured: level={settings.log_level}, "
        f"json={settings.log_json}, file={settings.log_file_path}"
    )


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the given name.

    Args:
        name: Logger name, typically __name__ of the calling module

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)
