"""
Serialization and size helpers.

Functions:
    to_json_bytes: Serialize a value with orjson (raises SerializationError)
    from_json_bytes: Deserialize orjson bytes (raises SerializationError)
    estimate_size: Approximate in-memory footprint of a cached value
    format_bytes: Human-readable byte counts
"""

from __future__ import annotations

from typing import Any

import orjson

from .error_handling import SerializationError

_JSON_OPTIONS = orjson.OPT_NON_STR_KEYS


def to_json_bytes(value: Any, *, sort_keys: bool = False) -> bytes:
    """
    Serialize ``value`` to JSON bytes.

    Raises:
        SerializationError: If the value is not representable as JSON.
    """
    options = _JSON_OPTIONS | (orjson.OPT_SORT_KEYS if sort_keys else 0)
    try:
        return orjson.dumps(value, option=options)
    except orjson.JSONEncodeError as e:
        raise SerializationError(f"Value is not JSON serializable: {e}") from e


def from_json_bytes(data: bytes | str) -> Any:
    """
    Deserialize JSON bytes produced by :func:`to_json_bytes`.

    Raises:
        SerializationError: If the payload is not valid JSON.
    """
    try:
        return orjson.loads(data)
    except orjson.JSONDecodeError as e:
        raise SerializationError(f"Corrupted JSON payload: {e}") from e


def estimate_size(value: Any) -> int:
    """
    Estimate the size of a value in bytes.

    The serialized length is doubled to account for encoding overhead. This is
    only an estimate used by the eviction policy.
    """
    try:
        return len(orjson.dumps(value, option=_JSON_OPTIONS)) * 2
    except (orjson.JSONEncodeError, TypeError):
        # Fallback estimation
        return len(repr(value)) * 2


def format_bytes(size: int) -> str:
    """Format a byte count as ``'1.5 KB'``."""
    if size <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    index = 0
    scaled = float(size)
    while scaled >= 1024 and index < len(units) - 1:
        scaled /= 1024
        index += 1
    scaled = round(scaled, 2)
    if scaled == int(scaled):
        scaled = int(scaled)
    return f"{scaled} {units[index]}"
