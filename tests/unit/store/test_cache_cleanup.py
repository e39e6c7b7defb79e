"""Tests for tiercache.store.cleanup module."""

from __future__ import annotations

import asyncio

import pytest

from tiercache.store.cleanup import CacheCleanup


class TestCacheCleanup:
    @pytest.mark.asyncio
    async def test_manual_cleanup_sync_callback(self):
        cleanup = CacheCleanup(lambda: 3, cleanup_interval=60)
        assert await cleanup.manual_cleanup() == 3
        assert cleanup.runs == 1

    @pytest.mark.asyncio
    async def test_manual_cleanup_async_callback(self):
        async def callback():
            return 2

        cleanup = CacheCleanup(callback)
        assert await cleanup.manual_cleanup() == 2

    @pytest.mark.asyncio
    async def test_callback_errors_are_contained(self):
        def callback():
            raise RuntimeError("boom")

        cleanup = CacheCleanup(callback)
        assert await cleanup.manual_cleanup() == 0
        assert cleanup.runs == 0

    @pytest.mark.asyncio
    async def test_periodic_runs(self):
        calls = []
        cleanup = CacheCleanup(lambda: calls.append(1) or 0, cleanup_interval=0.01)
        cleanup.start()
        assert cleanup.is_running()
        await asyncio.sleep(0.1)
        await cleanup.stop()
        assert not cleanup.is_running()
        assert len(calls) >= 2

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self):
        cleanup = CacheCleanup(lambda: 0, cleanup_interval=60)
        cleanup.start()
        task = cleanup._task
        cleanup.start()
        assert cleanup._task is task
        await cleanup.stop()

    @pytest.mark.asyncio
    async def test_stop_when_not_started(self):
        cleanup = CacheCleanup(lambda: 0)
        await cleanup.stop()
        assert cleanup.get_status() == {
            "name": "CacheCleanup",
            "cleanup_interval": 3600.0,
            "task_running": False,
            "runs": 0,
        }
