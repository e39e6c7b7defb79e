"""
Durable record envelope.

Values mirrored to a persistence adapter are wrapped with the time they were
written and their TTL, so a cold start can check freshness before trusting
them.
"""

from __future__ import annotations

from typing import Any


def make_record(value: Any, timestamp: float, ttl: float) -> dict[str, Any]:
    return {"value": value, "timestamp": timestamp, "ttl": ttl}


def is_record(data: Any) -> bool:
    return isinstance(data, dict) and "value" in data and "timestamp" in data and "ttl" in data


def remaining_ttl(record: dict[str, Any], now: float) -> float:
    """Milliseconds until the record expires (<= 0 once expired)."""
    return float(record["ttl"]) - (now - float(record["timestamp"]))


def unwrap_record(data: Any, now: float) -> Any | None:
    """
    Return the wrapped value if ``data`` is an unexpired record.

    Malformed and expired records yield None.
    """
    if not is_record(data):
        return None
    try:
        if remaining_ttl(data, now) <= 0:
            return None
    except (TypeError, ValueError):
        return None
    return data["value"]
