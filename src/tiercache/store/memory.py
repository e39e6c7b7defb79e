"""
In-memory cache entry store.

This module provides the process-wide store of cache entries. It is an
explicitly constructed object: components receive the store they should use
instead of reaching for a module-level singleton.

Classes:
    CacheStore: Key-value store with TTL expiration and priority eviction

Features:
    - Per-entry TTL with lazy removal of expired entries on read
    - Staleness checks independent of expiration
    - Substring pattern invalidation
    - Priority-then-age eviction against entry-count and byte budgets
    - TTL and priority defaults resolved from the policy registry
    - Snapshot export/import for durable warm start

All methods are synchronous. Under an asyncio event loop they therefore run
atomically with respect to each other; every entry is fully constructed
before it is inserted.
"""

from __future__ import annotations

import time
from collections.abc import Iterable
from typing import Any

from ..core.config import CacheConfig, Clock, now_ms
from ..core.policy import DEFAULT_TTL_MS, PolicyCategory, PolicyRegistry, Priority
from ..utils.logging_config import get_logger
from ..utils.serialization import estimate_size
from .models import CacheEntry
from .statistics import CacheStatistics


class CacheStore:
    """
    Main cache entry store.

    Expired entries are never returned. They are dropped when read, or by
    :meth:`sweep`, which also enforces the size budgets.
    """

    def __init__(
        self,
        registry: PolicyRegistry | None = None,
        default_ttl_ms: float = DEFAULT_TTL_MS,
        max_entries: int = 1000,
        max_bytes: int = 50 * 1024 * 1024,
        clock: Clock = now_ms,
    ):
        """
        Initialize the store.

        Args:
            registry: Policy registry used to resolve default TTL and priority
            default_ttl_ms: TTL for keys without a matching policy
            max_entries: Entry-count budget
            max_bytes: Estimated byte budget
            clock: Millisecond clock, injectable for tests
        """
        self.registry = registry
        self.default_ttl_ms = default_ttl_ms
        self.max_entries = max_entries
        self.max_bytes = max_bytes
        self.clock = clock
        self.logger = get_logger()
        self.statistics = CacheStatistics()

        self._entries: dict[str, CacheEntry] = {}
        self._size_bytes = 0

    @classmethod
    def from_config(
        cls,
        config: CacheConfig,
        registry: PolicyRegistry | None = None,
        clock: Clock = now_ms,
    ) -> CacheStore:
        return cls(
            registry=registry,
            default_ttl_ms=config.default_ttl_ms,
            max_entries=config.max_entries,
            max_bytes=config.max_bytes,
            clock=clock,
        )

    def _resolve_defaults(self, key: str) -> tuple[float, Priority]:
        if self.registry is None:
            return self.default_ttl_ms, Priority.MEDIUM
        policy = self.registry.get_policy(key)
        ttl = self.default_ttl_ms if policy.category == PolicyCategory.DEFAULT else policy.ttl_ms
        return ttl, policy.priority

    def set(
        self,
        key: str,
        value: Any,
        ttl: float | None = None,
        priority: Priority | None = None,
    ) -> bool:
        """
        Store a value, overwriting any existing entry.

        Args:
            key: Cache key
            value: Value to cache
            ttl: Time-to-live in milliseconds (policy or default if None)
            priority: Eviction priority (policy or MEDIUM if None)

        Returns:
            True once the value is stored
        """
        default_ttl, default_priority = self._resolve_defaults(key)
        if ttl is None:
            ttl = default_ttl
        if ttl < 0:
            raise ValueError(f"TTL must be non-negative, got {ttl}")

        now = self.clock()
        entry = CacheEntry(
            key=key,
            value=value,
            timestamp=now,
            ttl=ttl,
            priority=priority if priority is not None else default_priority,
            size_bytes=estimate_size(value),
            last_accessed=now,
        )

        self._remove(key)
        self._entries[key] = entry
        self._size_bytes += entry.size_bytes

        if self._over_budget():
            evicted = self._evict_to_budget(protect=key)
            if evicted:
                self.statistics.record_eviction(evicted)

        return True

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a cached value.

        Returns:
            The cached value, or ``default`` if absent or expired
        """
        entry = self._entries.get(key)
        if entry is None:
            self.statistics.record_miss()
            return default

        now = self.clock()
        if entry.is_expired(now):
            self._remove(key)
            self.statistics.record_expiration()
            self.statistics.record_miss()
            return default

        entry.touch(now)
        self.statistics.record_hit()
        return entry.value

    def get_entry(self, key: str) -> CacheEntry | None:
        """Return the unexpired entry for ``key`` without touching statistics."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self.clock()):
            self._remove(key)
            self.statistics.record_expiration()
            return None
        return entry

    def delete(self, key: str) -> bool:
        """Delete an entry. Returns False if nothing was stored under ``key``."""
        return self._remove(key) is not None

    def clear(self, pattern: str | None = None) -> int:
        """
        Remove entries.

        Args:
            pattern: If given, only keys containing this substring are removed

        Returns:
            Number of entries removed
        """
        if pattern is None:
            removed = len(self._entries)
            self._entries.clear()
            self._size_bytes = 0
        else:
            keys = [key for key in self._entries if pattern in key]
            for key in keys:
                self._remove(key)
            removed = len(keys)

        if removed:
            self.statistics.record_invalidation(removed)
            self.logger.debug(f"Cleared {removed} cache entries (pattern={pattern!r})")
        return removed

    def is_stale(self, key: str, stale_time_ms: float) -> bool:
        """
        Check whether an entry is old enough to refresh.

        Absent or expired entries are always stale. An unexpired entry is
        stale once its age reaches ``stale_time_ms``.
        """
        entry = self.get_entry(key)
        if entry is None:
            return True
        return entry.is_stale(self.clock(), stale_time_ms)

    def sweep(self) -> int:
        """
        Remove expired entries, then evict down to the size budgets.

        Returns:
            Number of entries removed
        """
        start_time = time.perf_counter()
        now = self.clock()

        expired_keys = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired_keys:
            self._remove(key)
        if expired_keys:
            self.statistics.record_expiration(len(expired_keys))

        evicted = self._evict_to_budget()
        if evicted:
            self.statistics.record_eviction(evicted)

        removed = len(expired_keys) + evicted
        if removed:
            self.logger.log_sweep(
                len(expired_keys), evicted, (time.perf_counter() - start_time) * 1000
            )
        return removed

    def keys(self) -> list[str]:
        """Keys of all unexpired entries."""
        now = self.clock()
        return [key for key, entry in self._entries.items() if not entry.is_expired(now)]

    def items_snapshot(self) -> list[CacheEntry]:
        """Unexpired entries, for durable snapshotting."""
        now = self.clock()
        return [entry for entry in self._entries.values() if not entry.is_expired(now)]

    def load_entries(self, entries: Iterable[CacheEntry]) -> int:
        """
        Seed the store from previously snapshotted entries.

        Expired entries and keys already present in the store are skipped,
        so a warm start never overrides fresher in-memory data.

        Returns:
            Number of entries loaded
        """
        now = self.clock()
        loaded = 0
        for entry in entries:
            if entry.is_expired(now) or entry.key in self._entries:
                continue
            if not entry.size_bytes:
                entry.size_bytes = estimate_size(entry.value)
            self._entries[entry.key] = entry
            self._size_bytes += entry.size_bytes
            loaded += 1

        if self._over_budget():
            self.statistics.record_eviction(self._evict_to_budget())
        return loaded

    @property
    def total_size_bytes(self) -> int:
        return self._size_bytes

    def get_stats(self) -> dict[str, Any]:
        """
        Get cache statistics.

        Returns:
            Dictionary with cache performance statistics
        """
        self.statistics.update_entries(len(self._entries), self._size_bytes)
        return self.statistics.get_stats_dict(
            {"max_entries": self.max_entries, "max_bytes": self.max_bytes}
        )

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get_entry(key) is not None

    def _remove(self, key: str) -> CacheEntry | None:
        entry = self._entries.pop(key, None)
        if entry is not None:
            self._size_bytes -= entry.size_bytes
        return entry

    def _over_budget(self) -> bool:
        return len(self._entries) > self.max_entries or self._size_bytes > self.max_bytes

    def _evict_to_budget(self, protect: str | None = None) -> int:
        """Evict lowest-priority, oldest entries until within budget."""
        if not self._over_budget():
            return 0

        # Highest Priority value (LOW) first, then oldest write
        candidates = sorted(
            (entry for key, entry in self._entries.items() if key != protect),
            key=lambda entry: (-int(entry.priority), entry.timestamp),
        )

        evicted = 0
        for entry in candidates:
            if not self._over_budget():
                break
            self._remove(entry.key)
            evicted += 1

        if evicted:
            self.logger.debug(f"Evicted {evicted} cache entries to respect size budget")
        return evicted
