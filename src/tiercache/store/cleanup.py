"""
Periodic cache maintenance.

This module runs a maintenance callback (sweep, durable snapshot) on a fixed
interval as an asyncio task on the running event loop.

Classes:
    CacheCleanup: Schedules a callback periodically and on demand

Features:
    - Sync or async callbacks
    - Idempotent start, graceful stop with timeout
    - Errors in the callback are logged and never stop the schedule
"""

from __future__ import annotations

import asyncio
import inspect
import time
from collections.abc import Awaitable, Callable
from typing import Any

from ..utils.logging_config import get_logger

logger = get_logger()


class CacheCleanup:
    """
    Manages periodic maintenance for a cache component.

    The callback returns the number of items it processed; the count is only
    used for logging.
    """

    def __init__(
        self,
        cleanup_callback: Callable[[], int | Awaitable[int]],
        cleanup_interval: float = 3600.0,
        name: str = "CacheCleanup",
    ):
        """
        Initialize the maintenance scheduler.

        Args:
            cleanup_callback: Function to call on every tick
            cleanup_interval: Seconds between runs
            name: Task name, used in logs
        """
        self.cleanup_callback = cleanup_callback
        self.cleanup_interval = cleanup_interval
        self.name = name
        self.runs = 0

        self._task: asyncio.Task[None] | None = None

    def start(self) -> None:
        """Start the periodic task on the running event loop."""
        if self.is_running():
            logger.warning(f"{self.name} task is already running")
            return

        self._task = asyncio.get_running_loop().create_task(self._cleanup_worker(), name=self.name)
        logger.debug(f"{self.name} task started with interval {self.cleanup_interval}s")

    async def stop(self, timeout: float = 5.0) -> None:
        """
        Stop the periodic task.

        Args:
            timeout: Maximum time to wait for the task to finish
        """
        task = self._task
        self._task = None
        if task is None or task.done():
            return

        task.cancel()
        try:
            await asyncio.wait_for(task, timeout=timeout)
        except asyncio.CancelledError:
            pass
        except asyncio.TimeoutError:
            logger.warning(f"{self.name} task did not stop within timeout")
        else:
            logger.debug(f"{self.name} task stopped")

    async def _cleanup_worker(self) -> None:
        """Background worker that performs periodic maintenance."""
        while True:
            await asyncio.sleep(self.cleanup_interval)
            await self.manual_cleanup()

    async def manual_cleanup(self) -> int:
        """
        Perform one maintenance run now.

        Returns:
            Number of items processed (0 on error)
        """
        start_time = time.perf_counter()
        try:
            result = self.cleanup_callback()
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            logger.error(f"Error in {self.name}: {e}")
            return 0

        self.runs += 1
        count = int(result or 0)
        if count > 0:
            elapsed = time.perf_counter() - start_time
            logger.debug(f"{self.name} processed {count} entries in {elapsed:.2f}s")
        return count

    def is_running(self) -> bool:
        """Check if the periodic task is running."""
        return self._task is not None and not self._task.done()

    def get_status(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "cleanup_interval": self.cleanup_interval,
            "task_running": self.is_running(),
            "runs": self.runs,
        }
