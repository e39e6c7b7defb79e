"""
Error taxonomy and error collection for tiercache.

The cache layer distinguishes failures that must reach the caller from
failures that are contained inside the layer:

    - Fetch failures from the data-access collaborator propagate to the
      caller of ``RequestCache.request`` (wrapped in ``FetchError``).
    - Cancellation of superseded or timed-out requests surfaces as
      ``RequestCancelled``; it is not an error condition and is not logged
      above DEBUG.
    - Persistence and serialization failures are caught at the adapter
      boundary, logged, recorded in an ``ErrorCollector`` and never raised.
    - Configuration errors are raised at start-up by ``validate()``.

Classes:
    ErrorSeverity: Error severity levels (LOW, MEDIUM, HIGH, CRITICAL)
    ErrorCategory: Error classification categories
    ErrorInfo: Detailed error information container
    CacheError: Base exception class for tiercache errors
    FetchError, RequestCancelled, PersistenceError, SerializationError,
    ConfigurationError: Concrete error types
    ErrorCollector: Bounded collection of contained errors

Functions:
    handle_persistence_error: Classify, collect and log a durable-storage failure
"""

from __future__ import annotations

import sys
import time
import traceback
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorSeverity(str, Enum):
    """Error severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """Error categories for classification."""

    NETWORK = "network"
    CANCELLATION = "cancellation"
    PERSISTENCE = "persistence"
    SERIALIZATION = "serialization"
    CONFIGURATION = "configuration"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


@dataclass
class ErrorInfo:
    """Detailed error information."""

    category: ErrorCategory
    severity: ErrorSeverity
    message: str
    key: str | None = None
    exception_type: str | None = None
    traceback_str: str | None = None
    timestamp: float = field(default_factory=time.time)
    context: dict[str, Any] = field(default_factory=dict)
    suggestions: list[str] = field(default_factory=list)


class CacheError(Exception):
    """Base exception for cache-related errors."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        key: str | None = None,
        suggestions: list[str] | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message: str = message
        self.category: ErrorCategory = category
        self.severity: ErrorSeverity = severity
        self.key: str | None = key
        self.suggestions: list[str] = suggestions or []
        self.context: dict[str, Any] = context or {}
        self.timestamp: float = time.time()


class FetchError(CacheError):
    """The data-access collaborator failed; never cached."""

    def __init__(
        self, message: str, key: str | None = None, context: dict[str, Any] | None = None
    ) -> None:
        super().__init__(
            message,
            category=ErrorCategory.NETWORK,
            severity=ErrorSeverity.MEDIUM,
            key=key,
            suggestions=["Retry the request", "Check backend connectivity"],
            context=context,
        )


class RequestCancelled(CacheError):
    """A request was superseded, aborted or timed out."""

    def __init__(
        self, message: str, key: str | None = None, context: dict[str, Any] | None = None
    ) -> None:
        super().__init__(
            message,
            category=ErrorCategory.CANCELLATION,
            severity=ErrorSeverity.LOW,
            key=key,
            context=context,
        )


class PersistenceError(CacheError):
    """Durable storage read or write failed."""

    def __init__(
        self, message: str, key: str | None = None, context: dict[str, Any] | None = None
    ) -> None:
        super().__init__(
            message,
            category=ErrorCategory.PERSISTENCE,
            severity=ErrorSeverity.LOW,
            key=key,
            suggestions=[
                "Check that the persistence directory is writable",
                "Free disk space",
            ],
            context=context,
        )


class SerializationError(PersistenceError):
    """Value cannot be represented by the durable storage format."""

    def __init__(
        self, message: str, key: str | None = None, context: dict[str, Any] | None = None
    ) -> None:
        super().__init__(message, key=key, context=context)
        self.category = ErrorCategory.SERIALIZATION
        self.suggestions = ["Store JSON-compatible values only"]


class ConfigurationError(CacheError):
    """Configuration-related errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(
            message,
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.HIGH,
            suggestions=[
                "Check configuration file syntax",
                "Verify all required settings",
                "Use default configuration",
            ],
            context=context,
        )


class ErrorCollector:
    """Collects contained errors for later inspection."""

    def __init__(self, max_errors: int = 100) -> None:
        self.max_errors = max_errors
        self.errors: list[ErrorInfo] = []
        self.error_counts: dict[ErrorCategory, int] = {}

    def add_error(
        self,
        exception: Exception,
        category: ErrorCategory | None = None,
        severity: ErrorSeverity | None = None,
        key: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Add an error to the collection."""
        if isinstance(exception, CacheError):
            error_category = exception.category
            error_severity = exception.severity
            error_key = exception.key or key
            error_suggestions = exception.suggestions
            error_context = {**exception.context, **(context or {})}
        else:
            error_category = category or self._classify_exception(exception)
            error_severity = severity or ErrorSeverity.MEDIUM
            error_key = key
            error_suggestions = []
            error_context = context or {}

        error_info = ErrorInfo(
            category=error_category,
            severity=error_severity,
            message=str(exception),
            key=error_key,
            exception_type=type(exception).__name__,
            traceback_str=traceback.format_exc() if sys.exc_info()[0] else None,
            context=error_context,
            suggestions=error_suggestions,
        )

        if len(self.errors) < self.max_errors:
            self.errors.append(error_info)

        self.error_counts[error_category] = self.error_counts.get(error_category, 0) + 1

    def _classify_exception(self, exception: Exception) -> ErrorCategory:
        """Classify exception into error category."""
        if isinstance(exception, (TypeError, ValueError)):
            return ErrorCategory.SERIALIZATION
        elif isinstance(exception, TimeoutError):
            return ErrorCategory.TIMEOUT
        elif isinstance(exception, OSError):
            return ErrorCategory.PERSISTENCE
        return ErrorCategory.UNKNOWN

    def get_errors_by_category(self, category: ErrorCategory) -> list[ErrorInfo]:
        """Get all errors of a specific category."""
        return [error for error in self.errors if error.category == category]

    def get_summary(self) -> dict[str, Any]:
        """Get error summary statistics."""
        return {
            "total_errors": sum(self.error_counts.values()),
            "by_category": {category.value: count for category, count in self.error_counts.items()},
        }

    def clear(self) -> None:
        """Clear all collected errors."""
        self.errors.clear()
        self.error_counts.clear()


def handle_persistence_error(
    key: str,
    operation: str,
    exception: Exception,
    error_collector: ErrorCollector | None = None,
    logger: Any | None = None,
) -> PersistenceError:
    """
    Classify a durable-storage failure, collect it and log it.

    Args:
        key: Durable key involved
        operation: Operation being performed ("save", "load", "remove", "clear")
        exception: The exception that occurred
        error_collector: Optional collector to record the error
        logger: Optional ``CacheLogger``

    Returns:
        The classified error (never raised by callers)
    """
    error: PersistenceError
    if isinstance(exception, PersistenceError):
        error = exception
        if error.key is None:
            error.key = key
    elif isinstance(exception, (TypeError, ValueError)):
        error = SerializationError(f"Cannot serialize value during {operation}: {exception}", key)
    else:
        error = PersistenceError(f"Storage error during {operation}: {exception}", key)

    if error_collector is not None:
        error_collector.add_error(error)

    if logger is not None:
        logger.log_persistence_error(key, operation, str(exception))

    return error
