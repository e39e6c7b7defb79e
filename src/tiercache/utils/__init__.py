"""
Utility modules shared by every cache component:
- Error taxonomy and contained-error collection
- Logging configuration
- Serialization and size estimation
"""

from .error_handling import (
    CacheError,
    ConfigurationError,
    ErrorCategory,
    ErrorCollector,
    ErrorSeverity,
    FetchError,
    PersistenceError,
    RequestCancelled,
    SerializationError,
    handle_persistence_error,
)
from .logging_config import configure_logging, disable_logging, enable_debug_logging, get_logger
from .serialization import estimate_size, format_bytes, from_json_bytes, to_json_bytes

__all__ = [
    # Error handling
    "CacheError",
    "ConfigurationError",
    "ErrorCategory",
    "ErrorCollector",
    "ErrorSeverity",
    "FetchError",
    "PersistenceError",
    "RequestCancelled",
    "SerializationError",
    "handle_persistence_error",
    # Logging
    "configure_logging",
    "disable_logging",
    "enable_debug_logging",
    "get_logger",
    # Serialization
    "estimate_size",
    "format_bytes",
    "from_json_bytes",
    "to_json_bytes",
]
