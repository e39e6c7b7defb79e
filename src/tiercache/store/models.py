"""
Cache data models for tiercache.

Classes:
    CacheEntry: A cached value with its timing and eviction metadata
    CacheStats: Cache performance statistics and metrics

Timing is expressed in milliseconds since epoch throughout. An entry is
expired when ``now - timestamp >= ttl``, so a zero TTL expires immediately.
Staleness is a separate, softer axis: an entry can be stale (old enough to
deserve a refresh) while still unexpired and servable.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..core.policy import Priority


@dataclass
class CacheEntry:
    """Represents a cached value with metadata."""

    key: str
    value: Any
    timestamp: float  # ms since epoch of the last write
    ttl: float  # ms
    priority: Priority = Priority.MEDIUM
    size_bytes: int = 0
    access_count: int = 0
    last_accessed: float = 0.0

    def age_ms(self, now: float) -> float:
        """Age of the entry in milliseconds."""
        return now - self.timestamp

    def is_expired(self, now: float) -> bool:
        """Check if the cache entry has expired."""
        return self.age_ms(now) >= self.ttl

    def is_stale(self, now: float, stale_time_ms: float) -> bool:
        """Check if the entry is old enough to warrant a refresh."""
        return self.age_ms(now) >= stale_time_ms

    def touch(self, now: float) -> None:
        """Update last accessed time and increment access count."""
        self.last_accessed = now
        self.access_count += 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "value": self.value,
            "timestamp": self.timestamp,
            "ttl": self.ttl,
            "priority": int(self.priority),
            "size_bytes": self.size_bytes,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CacheEntry:
        return cls(
            key=data["key"],
            value=data.get("value"),
            timestamp=float(data["timestamp"]),
            ttl=float(data["ttl"]),
            priority=Priority(int(data.get("priority", Priority.MEDIUM))),
            size_bytes=int(data.get("size_bytes", 0)),
        )


@dataclass
class CacheStats:
    """Cache performance statistics."""

    hits: int = 0
    misses: int = 0
    evictions: int = 0
    expirations: int = 0
    invalidations: int = 0
    total_entries: int = 0
    total_size_bytes: int = 0
    hit_rate: float = 0.0

    def update_hit_rate(self) -> None:
        """Update the hit rate calculation."""
        total_requests = self.hits + self.misses
        self.hit_rate = self.hits / total_requests if total_requests > 0 else 0.0
