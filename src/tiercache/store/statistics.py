"""
Cache statistics tracking.

Classes:
    CacheStatistics: Counters for hits, misses, expirations, evictions and
        invalidations, plus derived hit rate and reporting helpers.

All store operations run on the event loop thread, so the counters are plain
attributes without locking.
"""

from __future__ import annotations

from typing import Any

from ..utils.serialization import format_bytes
from .models import CacheStats


class CacheStatistics:
    """Manages cache performance statistics and metrics."""

    def __init__(self) -> None:
        self.stats = CacheStats()

    def record_hit(self) -> None:
        self.stats.hits += 1

    def record_miss(self) -> None:
        self.stats.misses += 1

    def record_eviction(self, count: int = 1) -> None:
        self.stats.evictions += count

    def record_expiration(self, count: int = 1) -> None:
        self.stats.expirations += count

    def record_invalidation(self, count: int = 1) -> None:
        self.stats.invalidations += count

    def update_entries(self, count: int, size_bytes: int) -> None:
        """
        Update the current number of entries and their estimated size.

        Args:
            count: Current number of cache entries
            size_bytes: Current estimated size in bytes
        """
        self.stats.total_entries = count
        self.stats.total_size_bytes = max(0, size_bytes)

    def get_hit_rate(self) -> float:
        """
        Calculate and return the current hit rate.

        Returns:
            Hit rate as a fraction (0.0 to 1.0)
        """
        self.stats.update_hit_rate()
        return self.stats.hit_rate

    def get_stats_dict(self, additional_stats: dict[str, Any] | None = None) -> dict[str, Any]:
        """
        Get all statistics as a dictionary.

        Args:
            additional_stats: Additional statistics to include
        """
        self.stats.update_hit_rate()

        stats_dict = {
            "hits": self.stats.hits,
            "misses": self.stats.misses,
            "hit_rate": self.stats.hit_rate,
            "evictions": self.stats.evictions,
            "expirations": self.stats.expirations,
            "invalidations": self.stats.invalidations,
            "total_entries": self.stats.total_entries,
            "total_size_bytes": self.stats.total_size_bytes,
        }

        if additional_stats:
            stats_dict.update(additional_stats)

        return stats_dict

    def reset_stats(self) -> None:
        """Reset all statistics to zero."""
        self.stats = CacheStats()

    def get_performance_summary(self) -> str:
        """Human-readable summary of the key metrics."""
        total_requests = self.stats.hits + self.stats.misses
        return (
            f"Cache Performance: "
            f"{total_requests} requests, "
            f"{self.get_hit_rate() * 100:.1f}% hit rate, "
            f"{self.stats.total_entries} entries, "
            f"{format_bytes(self.stats.total_size_bytes)}"
        )
