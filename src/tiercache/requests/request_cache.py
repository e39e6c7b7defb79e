"""
Keyed request cache.

Caches the results of asynchronous fetch operations under a key derived from
a resource name and its parameters. Concurrent requests for the same key
share a single fetch, a subscription's newer request supersedes its older
in-flight fetch, and a superseded or timed-out fetch never writes to the
cache.

Classes:
    PendingRequest: Bookkeeping for one in-flight fetch
    RequestCache: De-duplicating, cancelling read-through cache

Features:
    - At most one fetch in flight per key
    - Cancellation by subscription, by timeout or explicitly
    - Stale-while-revalidate when a ``stale_time`` is given
    - TTL, priority and durability taken from the policy registry
    - Failed fetches propagate to every waiting caller and are never cached

Fetchers are coroutine functions taking one argument, an ``asyncio.Event``
that is set when the fetch is cancelled. The fetch task itself is cancelled
too, so fetchers that simply await I/O stop at their next suspension point.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from ..core.keys import request_key
from ..core.policy import PolicyCategory, PolicyRegistry, Priority
from ..persistence.adapters import NullPersistence, PersistenceAdapter
from ..persistence.mirror import DurableMirror
from ..persistence.records import remaining_ttl, unwrap_record
from ..store.memory import CacheStore
from ..utils.error_handling import FetchError, RequestCancelled
from ..utils.logging_config import get_logger

Fetcher = Callable[[asyncio.Event], Awaitable[Any]]


@dataclass
class PendingRequest:
    key: str
    task: asyncio.Task[Any]
    cancel_event: asyncio.Event
    subscription: str | None = None
    cancelled: bool = False
    started_at: float = 0.0


class RequestCache:
    """
    Read-through cache for asynchronous fetches.

    Example:
        >>> cache = RequestCache(store, registry)
        >>> orders = await cache.request("orders", fetch_orders, params={"status": "open"})
    """

    def __init__(
        self,
        store: CacheStore,
        registry: PolicyRegistry | None = None,
        persistence: PersistenceAdapter | None = None,
    ):
        self.store = store
        self.registry = registry if registry is not None else (store.registry or PolicyRegistry())
        self.persistence = persistence if persistence is not None else NullPersistence()
        self.clock = store.clock
        self.logger = get_logger()
        self.mirror = DurableMirror(self.persistence, self.clock)

        self._pending: dict[str, PendingRequest] = {}
        self._subscriptions: dict[str, PendingRequest] = {}
        self._stats = {"fetches": 0, "deduplicated": 0, "cancelled": 0, "failed": 0}

    async def request(
        self,
        resource_key: str,
        fetcher: Fetcher,
        *,
        params: Any = None,
        ttl: float | None = None,
        subscription: str | None = None,
        timeout: float | None = None,
        stale_time: float | None = None,
        force: bool = False,
    ) -> Any:
        """
        Get a resource from the cache, fetching it on a miss.

        Args:
            resource_key: Logical resource name; selects the policy
            fetcher: ``async (cancel_event) -> value``
            params: Parameters, part of the cache key
            ttl: TTL in milliseconds (policy TTL if None)
            subscription: Caller identity; a newer request supersedes an
                older in-flight one from the same subscription
            timeout: Seconds before the fetch is cancelled
            stale_time: Milliseconds after which a cached value is served
                but refreshed in the background
            force: Skip the cached value

        Returns:
            The cached or fetched value

        Raises:
            FetchError: The fetcher failed
            RequestCancelled: The fetch was superseded, cancelled or timed out
        """
        key = request_key(resource_key, params)

        if subscription is not None:
            self._supersede(subscription, key)

        if not force:
            entry = self.store.get_entry(key)
            if entry is not None:
                value = self.store.get(key)
                if stale_time is not None and entry.is_stale(self.clock(), stale_time):
                    if key not in self._pending:
                        self.logger.debug(f"Serving stale '{key}' while revalidating")
                        self._start_fetch(key, resource_key, fetcher, ttl, None, timeout)
                return value

        pending = self._pending.get(key)
        if pending is not None and not pending.cancelled:
            self._stats["deduplicated"] += 1
        else:
            pending = self._start_fetch(key, resource_key, fetcher, ttl, subscription, timeout)

        return await self._wait(pending, subscription)

    async def refetch(self, resource_key: str, fetcher: Fetcher, **kwargs: Any) -> Any:
        """Drop the cached value for the key, then request it again."""
        self.store.delete(request_key(resource_key, kwargs.get("params")))
        kwargs["force"] = True
        return await self.request(resource_key, fetcher, **kwargs)

    async def hydrate(self, resource_key: str, params: Any = None) -> bool:
        """
        Seed a cold cache from durable storage.

        Returns:
            True if the key is cached afterwards
        """
        key = request_key(resource_key, params)
        if key in self.store:
            return True

        record = await self.persistence.load(key)
        if record is None:
            return False
        now = self.clock()
        value = unwrap_record(record, now)
        if value is None:
            return False

        policy = self.registry.get_policy(resource_key)
        self.store.set(key, value, ttl=remaining_ttl(record, now), priority=policy.priority)
        return True

    def invalidate(self, pattern: str | None = None) -> int:
        """Remove cached values whose key contains ``pattern`` (all if None)."""
        return self.store.clear(pattern)

    def cancel(self, subscription: str) -> bool:
        """Cancel the in-flight fetch of a subscription, if any."""
        pending = self._subscriptions.pop(subscription, None)
        if pending is None or pending.task.done():
            return False
        self._cancel_pending(pending, f"cancelled by subscription '{subscription}'")
        return True

    def in_flight(self) -> list[str]:
        return list(self._pending)

    def get_stats(self) -> dict[str, Any]:
        return {**self._stats, "in_flight": len(self._pending)}

    async def close(self) -> None:
        """Cancel every in-flight fetch and flush durable writes."""
        pendings = list(self._pending.values())
        for pending in pendings:
            self._cancel_pending(pending, "request cache closed")
        if pendings:
            await asyncio.gather(*(p.task for p in pendings), return_exceptions=True)
        self._subscriptions.clear()
        await self.mirror.flush()

    def _supersede(self, subscription: str, key: str) -> None:
        previous = self._subscriptions.pop(subscription, None)
        if previous is None or previous.task.done():
            return
        self._cancel_pending(previous, f"superseded by '{key}'")

    def _start_fetch(
        self,
        key: str,
        resource_key: str,
        fetcher: Fetcher,
        ttl: float | None,
        subscription: str | None,
        timeout: float | None,
    ) -> PendingRequest:
        policy = self.registry.get_policy(resource_key)
        if ttl is None:
            ttl = self.store.default_ttl_ms if policy.category == PolicyCategory.DEFAULT else policy.ttl_ms

        cancel_event = asyncio.Event()
        task = asyncio.get_running_loop().create_task(
            self._run_fetch(key, fetcher, cancel_event, ttl, policy.priority, policy.persist, timeout)
        )
        pending = PendingRequest(
            key=key,
            task=task,
            cancel_event=cancel_event,
            subscription=subscription,
            started_at=self.clock(),
        )
        self._stats["fetches"] += 1
        self._pending[key] = pending
        if subscription is not None:
            self._subscriptions[subscription] = pending
        task.add_done_callback(lambda t: self._fetch_done(pending, t))
        return pending

    async def _run_fetch(
        self,
        key: str,
        fetcher: Fetcher,
        cancel_event: asyncio.Event,
        ttl: float,
        priority: Priority,
        persist: bool,
        timeout: float | None,
    ) -> Any:
        try:
            if timeout is None:
                value = await fetcher(cancel_event)
            else:
                value = await asyncio.wait_for(fetcher(cancel_event), timeout)
        except asyncio.TimeoutError:
            cancel_event.set()
            self.logger.debug(f"Request '{key}' timed out after {timeout}s")
            raise RequestCancelled(f"Request '{key}' timed out", key=key) from None
        except (asyncio.CancelledError, RequestCancelled):
            raise
        except Exception as e:
            self.logger.log_fetch_error(key, str(e))
            raise FetchError(f"Fetch failed for '{key}': {e}", key=key) from e

        # A fetcher may ignore cancellation and still return
        if cancel_event.is_set():
            raise RequestCancelled(f"Request '{key}' was cancelled", key=key)

        self.store.set(key, value, ttl=ttl, priority=priority)
        if persist:
            self.mirror.save(key, value, ttl)
        return value

    async def _wait(self, pending: PendingRequest, subscription: str | None = None) -> Any:
        """
        Await a shared fetch on behalf of one caller.

        When the fetch is superseded by a newer fetch for the same key, callers
        other than the superseded subscription follow the replacement.
        """
        while True:
            try:
                return await asyncio.shield(pending.task)
            except asyncio.CancelledError:
                if not pending.task.cancelled():
                    raise
                replacement = self._pending.get(pending.key)
                superseded = subscription is not None and pending.subscription == subscription
                if superseded or replacement is None or replacement.cancelled:
                    raise RequestCancelled(
                        f"Request '{pending.key}' was cancelled", key=pending.key
                    ) from None
                self.logger.debug(f"Following replacement fetch for '{pending.key}'")
                pending = replacement

    def _cancel_pending(self, pending: PendingRequest, reason: str) -> None:
        if pending.cancelled:
            return
        pending.cancelled = True
        pending.cancel_event.set()
        pending.task.cancel()
        self._forget(pending)
        self._stats["cancelled"] += 1
        self.logger.debug(f"Request '{pending.key}' {reason}")

    def _fetch_done(self, pending: PendingRequest, task: asyncio.Task[Any]) -> None:
        self._forget(pending)
        if task.cancelled():
            return
        error = task.exception()
        if isinstance(error, FetchError):
            self._stats["failed"] += 1
        elif isinstance(error, RequestCancelled) and not pending.cancelled:
            pending.cancelled = True
            self._stats["cancelled"] += 1

    def _forget(self, pending: PendingRequest) -> None:
        if self._pending.get(pending.key) is pending:
            del self._pending[pending.key]
        if pending.subscription is not None and self._subscriptions.get(pending.subscription) is pending:
            del self._subscriptions[pending.subscription]
