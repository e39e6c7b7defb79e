"""Tests for tiercache.store.memory module."""

from __future__ import annotations

import pytest

from tiercache.core.config import CacheConfig, MINUTE_MS
from tiercache.core.policy import DEFAULT_TTL_MS, Priority
from tiercache.store.memory import CacheStore
from tiercache.store.models import CacheEntry


class TestBasicOperations:
    def test_set_and_get(self, store):
        assert store.set("data_orders", [1, 2, 3]) is True
        assert store.get("data_orders") == [1, 2, 3]
        assert "data_orders" in store
        assert len(store) == 1

    def test_get_missing_returns_default(self, store):
        assert store.get("missing") is None
        assert store.get("missing", "fallback") == "fallback"

    def test_delete(self, store):
        store.set("k", 1)
        assert store.delete("k") is True
        assert store.delete("k") is False
        assert store.get("k") is None

    def test_negative_ttl_rejected(self, store):
        with pytest.raises(ValueError):
            store.set("k", 1, ttl=-1)

    def test_overwrite_refreshes_timestamp(self, store, clock):
        store.set("k", 1, ttl=1000)
        clock.advance(800)
        store.set("k", 2, ttl=1000)
        clock.advance(800)
        assert store.get("k") == 2
        assert store.get_entry("k").timestamp == clock.now - 800

    def test_total_size_tracks_overwrites_and_deletes(self, store):
        store.set("k", "x" * 100)
        first = store.total_size_bytes
        store.set("k", "x" * 10)
        assert store.total_size_bytes < first
        store.delete("k")
        assert store.total_size_bytes == 0


class TestExpiration:
    def test_entry_expires_at_ttl(self, store, clock):
        store.set("k", "value", ttl=1000)
        clock.advance(999)
        assert store.get("k") == "value"
        clock.advance(1)
        assert store.get("k") is None
        assert "k" not in store

    def test_zero_ttl_expires_immediately(self, store):
        store.set("k", "value", ttl=0)
        assert store.get("k") is None

    def test_expired_read_counts_expiration_and_miss(self, store, clock):
        store.set("k", 1, ttl=10)
        clock.advance(10)
        store.get("k")
        stats = store.get_stats()
        assert stats["expirations"] == 1
        assert stats["misses"] == 1
        assert stats["total_entries"] == 0

    def test_policy_ttl_is_used(self, store, clock):
        store.set("page_state_orders", {"activeTab": "list"})
        assert store.get_entry("page_state_orders").ttl == 5 * MINUTE_MS
        assert store.get_entry("page_state_orders").priority == Priority.HIGH

    def test_default_ttl_without_policy(self, store):
        store.set("unrelated", 1)
        assert store.get_entry("unrelated").ttl == DEFAULT_TTL_MS

    def test_keys_skip_expired(self, store, clock):
        store.set("short", 1, ttl=10)
        store.set("long", 2, ttl=1000)
        clock.advance(10)
        assert store.keys() == ["long"]


class TestStaleness:
    def test_missing_entry_is_stale(self, store):
        assert store.is_stale("missing", 1000) is True

    def test_stale_but_unexpired(self, store, clock):
        store.set("k", 1, ttl=10_000)
        clock.advance(500)
        assert store.is_stale("k", 1000) is False
        clock.advance(500)
        assert store.is_stale("k", 1000) is True
        assert store.get("k") == 1


class TestPatternInvalidation:
    def test_clear_by_substring(self, store):
        store.set("data_orders_1", 1)
        store.set("data_orders_2", 2)
        store.set("data_customers_1", 3)
        assert store.clear("orders") == 2
        assert store.get("data_customers_1") == 3
        assert store.get("data_orders_1") is None

    def test_clear_all(self, store):
        store.set("a", 1)
        store.set("b", 2)
        assert store.clear() == 2
        assert len(store) == 0
        assert store.total_size_bytes == 0
        assert store.get_stats()["invalidations"] == 2

    def test_clear_nothing(self, store):
        assert store.clear("nothing") == 0


class TestEviction:
    def test_lowest_priority_evicted_first(self, registry, clock):
        store = CacheStore(registry=registry, max_entries=2, clock=clock)
        store.set("critical", 1, priority=Priority.CRITICAL)
        clock.advance(1)
        store.set("low", 2, priority=Priority.LOW)
        clock.advance(1)
        store.set("medium", 3, priority=Priority.MEDIUM)
        assert "low" not in store
        assert store.get("critical") == 1
        assert store.get("medium") == 3
        assert store.get_stats()["evictions"] == 1

    def test_oldest_evicted_within_priority(self, clock):
        store = CacheStore(max_entries=2, clock=clock)
        store.set("first", 1)
        clock.advance(1)
        store.set("second", 2)
        clock.advance(1)
        store.set("third", 3)
        assert store.keys() == ["second", "third"]

    def test_new_entry_is_never_evicted_on_insert(self, clock):
        store = CacheStore(max_entries=1, clock=clock)
        store.set("keep", 1, priority=Priority.CRITICAL)
        store.set("new", 2, priority=Priority.LOW)
        assert store.keys() == ["new"]

    def test_byte_budget(self, clock):
        store = CacheStore(max_bytes=300, clock=clock)
        store.set("a", "x" * 100)
        clock.advance(1)
        store.set("b", "y" * 100)
        assert "a" not in store
        assert store.total_size_bytes <= 300


class TestSweep:
    def test_sweep_removes_expired(self, store, clock):
        store.set("short", 1, ttl=100)
        store.set("long", 2, ttl=10_000)
        clock.advance(100)
        assert store.sweep() == 1
        assert store.keys() == ["long"]
        assert store.get_stats()["expirations"] == 1

    def test_sweep_nothing_to_do(self, store):
        store.set("k", 1)
        assert store.sweep() == 0


class TestSnapshots:
    def test_load_entries_skips_expired_and_existing(self, store, clock):
        store.set("existing", "fresh")
        entries = [
            CacheEntry(key="existing", value="old", timestamp=clock.now - 10, ttl=10_000),
            CacheEntry(key="expired", value=1, timestamp=clock.now - 2000, ttl=1000),
            CacheEntry(key="restored", value=2, timestamp=clock.now - 10, ttl=10_000),
        ]
        assert store.load_entries(entries) == 1
        assert store.get("existing") == "fresh"
        assert store.get("restored") == 2
        assert store.get_entry("restored").size_bytes > 0

    def test_items_snapshot(self, store, clock):
        store.set("a", 1, ttl=10)
        store.set("b", 2, ttl=1000)
        clock.advance(10)
        assert [entry.key for entry in store.items_snapshot()] == ["b"]

    def test_entry_dict_round_trip(self):
        entry = CacheEntry(key="k", value={"a": 1}, timestamp=5.0, ttl=10.0, priority=Priority.HIGH)
        restored = CacheEntry.from_dict(entry.to_dict())
        assert restored.key == "k"
        assert restored.priority == Priority.HIGH
        assert restored.value == {"a": 1}


class TestConfiguration:
    def test_from_config(self, registry, clock):
        config = CacheConfig(default_ttl_ms=1234, max_entries=5, max_bytes=999)
        store = CacheStore.from_config(config, registry, clock)
        assert store.default_ttl_ms == 1234
        assert store.max_entries == 5
        assert store.max_bytes == 999
        store.set("unrelated", 1)
        assert store.get_entry("unrelated").ttl == 1234

    def test_stats_include_budgets(self, store):
        store.set("k", 1)
        store.get("k")
        store.get("missing")
        stats = store.get_stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate"] == 0.5
        assert stats["max_entries"] == 1000
        assert stats["total_entries"] == 1
