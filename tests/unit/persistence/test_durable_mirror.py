"""Tests for tiercache.persistence.mirror and records modules."""

from __future__ import annotations

import pytest

from tiercache.persistence.mirror import DurableMirror
from tiercache.persistence.records import is_record, make_record, remaining_ttl, unwrap_record


class TestRecords:
    def test_make_and_unwrap(self):
        record = make_record({"a": 1}, 1000.0, 500.0)
        assert is_record(record)
        assert remaining_ttl(record, 1200.0) == 300.0
        assert unwrap_record(record, 1200.0) == {"a": 1}

    def test_expired_record(self):
        record = make_record("v", 1000.0, 500.0)
        assert unwrap_record(record, 1500.0) is None

    @pytest.mark.parametrize(
        "data",
        [None, "raw", {"value": 1}, {"value": 1, "timestamp": "soon", "ttl": 5}],
    )
    def test_malformed_records(self, data):
        assert unwrap_record(data, 0.0) is None


class TestDurableMirror:
    @pytest.mark.asyncio
    async def test_save_wraps_value(self, persistence, clock):
        mirror = DurableMirror(persistence, clock)
        mirror.save("k", [1, 2], ttl=1000)
        assert mirror.pending == 1
        await mirror.flush()
        assert mirror.pending == 0

        stored = await persistence.load("k")
        assert stored == {"value": [1, 2], "timestamp": clock.now, "ttl": 1000}
        assert await mirror.load("k") == [1, 2]

    @pytest.mark.asyncio
    async def test_load_honours_ttl(self, persistence, clock):
        mirror = DurableMirror(persistence, clock)
        mirror.save("k", "v", ttl=1000)
        await mirror.flush()
        clock.advance(1000)
        assert await mirror.load("k") is None

    @pytest.mark.asyncio
    async def test_save_raw_and_remove(self, persistence, clock):
        mirror = DurableMirror(persistence, clock)
        mirror.save_raw("tab", "details")
        await mirror.flush()
        assert await persistence.load("tab") == "details"
        mirror.remove("tab")
        await mirror.flush()
        assert await persistence.load("tab") is None

    @pytest.mark.asyncio
    async def test_failed_write_retries_and_is_contained(self, failing_persistence, clock):
        mirror = DurableMirror(failing_persistence, clock)
        mirror.save("k", 1, ttl=1000, attempts=3)
        await mirror.flush()
        assert failing_persistence.save_calls == 3
        assert mirror.failed_writes == 1
        assert failing_persistence.errors.get_summary()["total_errors"] == 3

    @pytest.mark.asyncio
    async def test_adapter_exceptions_are_contained(self, clock):
        class RaisingPersistence:
            async def save(self, key, value):
                raise RuntimeError("adapter bug")

            async def load(self, key):
                raise RuntimeError("adapter bug")

            async def remove(self, key):
                raise RuntimeError("adapter bug")

        mirror = DurableMirror(RaisingPersistence(), clock)
        mirror.save("k", 1, ttl=10)
        mirror.remove("k")
        await mirror.flush()
        assert mirror.failed_writes == 1
        assert await mirror.load("k") is None

    def test_without_running_loop_write_is_skipped(self, persistence, clock):
        mirror = DurableMirror(persistence, clock)
        mirror.save("k", 1, ttl=10)
        assert mirror.pending == 0
