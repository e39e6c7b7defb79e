"""
Background auto-refresh for resources whose policy enables it.

Each registered resource gets an asyncio task that re-fetches it every
``refresh_interval_ms``. Ticks are skipped while the visibility controller
reports the application as hidden.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

from ..core.keys import request_key
from ..core.policy import PolicyRegistry
from ..utils.error_handling import CacheError, RequestCancelled
from ..utils.logging_config import get_logger
from ..visibility.controller import VisibilityController
from .request_cache import Fetcher, RequestCache


@dataclass
class RefreshJob:
    resource_key: str
    fetcher: Fetcher
    params: Any
    interval_ms: float
    task: asyncio.Task[None] | None = None
    refreshes: int = 0
    skipped: int = 0


class AutoRefreshScheduler:
    """Periodic re-fetching of auto-refresh resources."""

    def __init__(
        self,
        cache: RequestCache,
        registry: PolicyRegistry | None = None,
        visibility: VisibilityController | None = None,
    ):
        self.cache = cache
        self.registry = registry if registry is not None else cache.registry
        self.visibility = visibility
        self.logger = get_logger()

        self._jobs: dict[str, RefreshJob] = {}

    def register(
        self,
        resource_key: str,
        fetcher: Fetcher,
        params: Any = None,
        interval_ms: float | None = None,
    ) -> bool:
        """
        Start refreshing a resource.

        Args:
            resource_key: Logical resource name
            fetcher: Fetcher passed to the request cache
            params: Request parameters
            interval_ms: Override for the policy's refresh interval

        Returns:
            False if the resource has no auto-refresh policy and no interval
            was given
        """
        if interval_ms is None:
            policy = self.registry.get_policy(resource_key)
            if not policy.auto_refresh or not policy.refresh_interval_ms:
                self.logger.debug(f"'{resource_key}' has no auto-refresh policy")
                return False
            interval_ms = policy.refresh_interval_ms

        key = request_key(resource_key, params)
        self.unregister(key)
        job = RefreshJob(resource_key, fetcher, params, interval_ms)
        job.task = asyncio.get_running_loop().create_task(self._run(job), name=f"refresh:{key}")
        self._jobs[key] = job
        return True

    def unregister(self, key: str) -> None:
        job = self._jobs.pop(key, None)
        if job is not None and job.task is not None:
            job.task.cancel()

    @property
    def registered(self) -> list[str]:
        return list(self._jobs)

    def get_job(self, key: str) -> RefreshJob | None:
        return self._jobs.get(key)

    async def refresh_once(self, key: str) -> bool:
        """
        Run one refresh tick for a registered key now.

        Returns:
            True if the resource was re-fetched
        """
        job = self._jobs.get(key)
        if job is None:
            return False
        return await self._tick(job)

    async def stop(self) -> None:
        tasks = [job.task for job in self._jobs.values() if job.task is not None]
        self._jobs.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _run(self, job: RefreshJob) -> None:
        while True:
            await asyncio.sleep(job.interval_ms / 1000)
            await self._tick(job)

    async def _tick(self, job: RefreshJob) -> bool:
        if self.visibility is not None and not self.visibility.is_visible:
            job.skipped += 1
            return False

        try:
            await self.cache.request(job.resource_key, job.fetcher, params=job.params, force=True)
        except RequestCancelled:
            return False
        except CacheError as e:
            self.logger.warning(f"Auto-refresh of '{job.resource_key}' failed: {e}")
            return False

        job.refreshes += 1
        return True
