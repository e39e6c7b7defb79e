"""
Logging configuration for tiercache.

This module provides the centralized logger used by every cache component.
It wraps the standard library ``logging`` module with a small facade that
writes plain or JSON lines and adds a few domain-specific helpers for the
events the cache layer cares about (fetch failures, persistence failures,
sweeps).

Classes:
    LogLevel: Available log levels
    LogFormat: Available output formats
    CacheLogger: Logger facade with console and rotating file handlers
    JsonFormatter: One JSON object per record (serialized with orjson)

Functions:
    get_logger: Return the process-wide logger, creating it on first use
    configure_logging: Replace the process-wide logger with a new configuration
    disable_logging: Silence all output
    enable_debug_logging: Switch the global logger to DEBUG
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from enum import Enum
from pathlib import Path
from typing import Any

import orjson

_RESERVED_RECORD_FIELDS = frozenset(
    [
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "getMessage",
        "exc_info",
        "exc_text",
        "stack_info",
        "asctime",
        "message",
    ]
)


class LogLevel(str, Enum):
    """Available log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Available log formats."""

    SIMPLE = "simple"
    JSON = "json"


class CacheLogger:
    """
    Centralized logging for tiercache with multiple output formats
    and configurable levels.
    """

    def __init__(
        self,
        name: str = "tiercache",
        level: LogLevel = LogLevel.INFO,
        format_type: LogFormat = LogFormat.SIMPLE,
        log_file: Path | None = None,
        max_file_size: int = 10 * 1024 * 1024,  # 10MB
        backup_count: int = 5,
        enable_console: bool = True,
        enable_file: bool = False,
    ):
        self.name = name
        self.level = level
        self.format_type = format_type
        self.log_file = log_file
        self.max_file_size = max_file_size
        self.backup_count = backup_count
        self.enable_console = enable_console
        self.enable_file = enable_file

        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, level.value))

        # Clear existing handlers
        self.logger.handlers.clear()

        self._setup_handlers()

    def _setup_handlers(self) -> None:
        """Setup logging handlers based on configuration."""
        if self.enable_console:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setLevel(getattr(logging, self.level.value))
            console_handler.setFormatter(self._get_formatter())
            self.logger.addHandler(console_handler)

        if self.enable_file and self.log_file:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)

            file_handler = logging.handlers.RotatingFileHandler(
                self.log_file,
                maxBytes=self.max_file_size,
                backupCount=self.backup_count,
                encoding="utf-8",
            )
            file_handler.setLevel(getattr(logging, self.level.value))
            file_handler.setFormatter(self._get_formatter())
            self.logger.addHandler(file_handler)

    def _get_formatter(self) -> logging.Formatter:
        """Get formatter based on format type."""
        if self.format_type == LogFormat.JSON:
            return JsonFormatter()
        return logging.Formatter("%(levelname)s: %(message)s")

    def debug(self, message: str, **kwargs: Any) -> None:
        """Log debug message."""
        self.logger.debug(message, extra=kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        """Log info message."""
        self.logger.info(message, extra=kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        """Log warning message."""
        self.logger.warning(message, extra=kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        """Log error message."""
        self.logger.error(message, extra=kwargs)

    def critical(self, message: str, **kwargs: Any) -> None:
        """Log critical message."""
        self.logger.critical(message, extra=kwargs)

    def exception(self, message: str, **kwargs: Any) -> None:
        """Log exception with traceback."""
        self.logger.exception(message, extra=kwargs)

    def log_fetch_error(self, resource_key: str, error: str, **kwargs: Any) -> None:
        """Log a failed data-access fetch."""
        self.error(
            f"Fetch failed for '{resource_key}': {error}",
            operation="fetch_error",
            resource_key=resource_key,
            error=error,
            **kwargs,
        )

    def log_persistence_error(self, key: str, operation: str, error: str, **kwargs: Any) -> None:
        """Log a contained durable-storage failure."""
        self.warning(
            f"Persistence {operation} failed for '{key}': {error}",
            operation=f"persistence_{operation}",
            key=key,
            error=error,
            **kwargs,
        )

    def log_sweep(self, expired: int, evicted: int, elapsed_ms: float, **kwargs: Any) -> None:
        """Log cache sweep statistics."""
        self.debug(
            f"Sweep removed expired={expired}, evicted={evicted}, time={elapsed_ms:.2f}ms",
            operation="sweep",
            expired=expired,
            evicted=evicted,
            elapsed_ms=elapsed_ms,
            **kwargs,
        )


class JsonFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": record.created,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        log_entry.update(
            (key, value)
            for key, value in record.__dict__.items()
            if key not in _RESERVED_RECORD_FIELDS and not key.startswith("_")
        )

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return orjson.dumps(log_entry, default=str).decode("utf-8")


# Global logger instance
_global_logger: CacheLogger | None = None


def get_logger() -> CacheLogger:
    """Get the global logger instance."""
    global _global_logger
    if _global_logger is None:
        _global_logger = CacheLogger()
    return _global_logger


def configure_logging(
    level: LogLevel = LogLevel.INFO,
    format_type: LogFormat = LogFormat.SIMPLE,
    log_file: Path | None = None,
    enable_console: bool = True,
    enable_file: bool = False,
    **kwargs: Any,
) -> CacheLogger:
    """Configure global logging settings."""
    global _global_logger
    _global_logger = CacheLogger(
        level=level,
        format_type=format_type,
        log_file=log_file,
        enable_console=enable_console,
        enable_file=enable_file,
        **kwargs,
    )
    return _global_logger


def disable_logging() -> None:
    """Disable all logging."""
    get_logger().logger.setLevel(logging.CRITICAL + 1)


def enable_debug_logging() -> None:
    """Enable debug logging for troubleshooting."""
    logger = get_logger()
    logger.level = LogLevel.DEBUG
    logger.logger.setLevel(logging.DEBUG)
    for handler in logger.logger.handlers:
        handler.setLevel(logging.DEBUG)
