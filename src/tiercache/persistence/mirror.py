"""
Fire-and-forget durable mirroring.

Components that write through to the in-memory store use a ``DurableMirror``
to copy the value to a persistence adapter in the background. The caller
never waits for the write and never sees its failure; failures are logged.

Classes:
    DurableMirror: Schedules adapter writes as tasks and tracks them for flush
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any

from ..core.config import Clock, now_ms
from ..utils.logging_config import get_logger
from .adapters import PersistenceAdapter
from .records import make_record, unwrap_record


class DurableMirror:
    """Background writer in front of a persistence adapter."""

    def __init__(self, persistence: PersistenceAdapter, clock: Clock = now_ms):
        self.persistence = persistence
        self.clock = clock
        self.logger = get_logger()
        self.failed_writes = 0

        self._pending: set[asyncio.Task[Any]] = set()

    def save(self, key: str, value: Any, ttl: float, attempts: int = 1) -> None:
        """
        Schedule a durable write of ``value`` wrapped with its freshness.

        Args:
            key: Durable key
            value: Value to write
            ttl: Lifetime of the durable copy in milliseconds
            attempts: Number of tries before the write counts as failed
        """
        record = make_record(value, self.clock(), ttl)
        self._schedule(self._save(key, record, attempts), key)

    def save_raw(self, key: str, value: Any) -> None:
        """Schedule a durable write of ``value`` as is."""
        self._schedule(self._save(key, value), key)

    def remove(self, key: str) -> None:
        self._schedule(self._remove(key), key)

    async def load(self, key: str) -> Any | None:
        """Load an unexpired wrapped value, or None."""
        try:
            data = await self.persistence.load(key)
        except Exception as e:
            self.logger.log_persistence_error(key, "load", str(e))
            return None
        return unwrap_record(data, self.clock())

    async def flush(self) -> None:
        """Wait for every scheduled write to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    @property
    def pending(self) -> int:
        return len(self._pending)

    def _schedule(self, coro: Coroutine[Any, Any, None], key: str) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            self.logger.warning(f"No running event loop; durable write for '{key}' skipped")
            return

        task = loop.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _save(self, key: str, value: Any, attempts: int = 1) -> None:
        for _ in range(max(1, attempts)):
            try:
                if await self.persistence.save(key, value):
                    return
            except Exception as e:
                self.logger.log_persistence_error(key, "save", str(e))
        self.failed_writes += 1
        if attempts > 1:
            self.logger.warning(f"Durable write for '{key}' failed after {attempts} attempts")

    async def _remove(self, key: str) -> None:
        try:
            await self.persistence.remove(key)
        except Exception as e:
            self.logger.log_persistence_error(key, "remove", str(e))
