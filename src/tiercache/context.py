"""
Application cache context.

``AppCache`` is the composition root of tiercache. It builds one entry
store, policy registry, durable adapter, page state manager and request cache
for an application, warm-starts the store from the last durable snapshot and
runs the periodic maintenance and snapshot tasks.

Classes:
    AppCache: Owns and wires every cache component

Example:
    >>> async with AppCache(CacheConfig(persistence_dir=Path(".cache"))) as cache:
    ...     cache.page_state.save_page_state("orders", {"activeTab": "list"})
    ...     orders = await cache.requests.request("orders", fetch_orders)
"""

from __future__ import annotations

from typing import Any

from .core.config import CacheConfig, Clock, now_ms
from .core.keys import NAMESPACE_PREFIXES, SNAPSHOT_KEY
from .core.policy import PolicyCategory, PolicyRegistry, Priority
from .persistence.adapters import JsonFilePersistence, MemoryPersistence, PersistenceAdapter
from .persistence.records import is_record, remaining_ttl
from .requests.pagination import PageFetcher, PaginatedRequest
from .requests.refresh import AutoRefreshScheduler
from .requests.request_cache import RequestCache
from .state.form_state import FormStateManager
from .state.page_state import PageStateManager
from .state.tab_state import PersistentTabState
from .store.cleanup import CacheCleanup
from .store.memory import CacheStore
from .store.models import CacheEntry
from .utils.error_handling import CacheError
from .utils.logging_config import get_logger
from .utils.serialization import format_bytes, to_json_bytes
from .visibility.controller import VisibilityCallbacks, VisibilityController
from .visibility.signals import SignalSource


class AppCache:
    """
    Application-wide cache.

    Components are plain attributes (``store``, ``registry``, ``persistence``,
    ``page_state``, ``requests``, ``refresh``) so callers can use them
    directly; the accessor methods cover the common cases.
    """

    def __init__(
        self,
        config: CacheConfig | None = None,
        registry: PolicyRegistry | None = None,
        persistence: PersistenceAdapter | None = None,
        clock: Clock = now_ms,
    ):
        """
        Build the cache components.

        Args:
            config: Global settings (defaults if None)
            registry: Policy registry (default table if None)
            persistence: Durable adapter; a ``JsonFilePersistence`` in
                ``config.persistence_dir`` if set, otherwise in-memory
            clock: Millisecond clock shared by every component

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        self.config = config or CacheConfig()
        self.config.validate()
        self.registry = registry or PolicyRegistry(default_ttl_ms=self.config.default_ttl_ms)
        if persistence is None:
            if self.config.persistence_dir is not None:
                persistence = JsonFilePersistence(self.config.persistence_dir)
            else:
                persistence = MemoryPersistence()
        self.persistence = persistence
        self.clock = clock
        self.logger = get_logger()

        self.store = CacheStore.from_config(self.config, self.registry, clock)
        self.page_state = PageStateManager(
            self.store,
            self.registry,
            self.persistence,
            page_state_ttl_ms=self.config.page_state_ttl_ms,
            persisted_data_ttl_ms=self.config.cleanup_max_age_ms,
            clock=clock,
        )
        self.requests = RequestCache(self.store, self.registry, self.persistence)
        self.refresh = AutoRefreshScheduler(self.requests, self.registry)
        self.cleanup = CacheCleanup(
            self.run_maintenance, self.config.cleanup_interval_s, name="CacheCleanup"
        )
        self.snapshots = CacheCleanup(
            self.save_snapshot, self.config.auto_save_interval_s, name="CacheSnapshot"
        )
        self.visibility: VisibilityController | None = None
        self.started = False

    async def start(self) -> int:
        """
        Warm-start from the durable snapshot and start background tasks.

        Returns:
            Number of entries loaded from the snapshot
        """
        if self.started:
            return 0
        loaded = await self.load_snapshot()
        if self.config.cleanup_enabled:
            self.cleanup.start()
        if self.config.auto_save_enabled:
            self.snapshots.start()
        self.started = True
        self.logger.info(f"Cache started with {loaded} entries from snapshot")
        return loaded

    async def close(self) -> None:
        """Stop background work and write a final snapshot."""
        if self.visibility is not None:
            self.visibility.stop()
        await self.refresh.stop()
        await self.cleanup.stop()
        await self.snapshots.stop()
        await self.requests.close()
        await self.page_state.flush()
        await self.save_snapshot()
        self.started = False

    async def __aenter__(self) -> AppCache:
        await self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # Cache accessors

    def get_cache(self, key: str, default: Any = None) -> Any:
        return self.store.get(key, default)

    def set_cache(
        self, key: str, value: Any, ttl: float | None = None, priority: Priority | None = None
    ) -> bool:
        return self.store.set(key, value, ttl=ttl, priority=priority)

    def remove_cache(self, key: str) -> bool:
        return self.store.delete(key)

    def clear_cache(self, pattern: str | None = None) -> int:
        """
        Remove cached entries.

        Clearing everything also drops the durable snapshot, so the next
        start is cold.
        """
        removed = self.store.clear(pattern)
        if pattern is None:
            self.page_state.mirror.remove(SNAPSHOT_KEY)
        return removed

    def get_cache_stats(self) -> dict[str, Any]:
        """
        Get cache statistics.

        Returns:
            Store statistics plus ``memory_usage`` (estimated bytes), its
            formatted form, request statistics and the persistence error
            summary
        """
        stats = self.store.get_stats()
        stats["memory_usage"] = self.store.total_size_bytes
        stats["memory_usage_formatted"] = format_bytes(self.store.total_size_bytes)
        stats["requests"] = self.requests.get_stats()
        stats["persistence_errors"] = self.persistence.errors.get_summary()
        return stats

    # Factories

    def tab_state(
        self, page_key: str, default_tab: str, persist: bool = True, storage_key: str | None = None
    ) -> PersistentTabState:
        return PersistentTabState(self.page_state, page_key, default_tab, persist, storage_key)

    def form(self, form_name: str, **kwargs: Any) -> FormStateManager:
        kwargs.setdefault("save_interval", self.config.debounce_delay_s)
        kwargs.setdefault("max_retries", self.config.max_retries)
        kwargs.setdefault("auto_save", self.config.auto_save_enabled)
        return FormStateManager(self.page_state, form_name, **kwargs)

    def paginated(self, resource_key: str, fetch_page: PageFetcher, **kwargs: Any) -> PaginatedRequest:
        return PaginatedRequest(self.requests, resource_key, fetch_page, **kwargs)

    def visibility_controller(
        self, source: SignalSource, callbacks: VisibilityCallbacks | None = None, **kwargs: Any
    ) -> VisibilityController:
        """
        Create the application's visibility controller.

        A shutdown signal writes a snapshot unless ``callbacks`` already
        handles it. Auto-refresh is paused while the controller reports the
        application as hidden.
        """
        callbacks = callbacks or VisibilityCallbacks()
        if callbacks.on_before_unload is None:
            callbacks.on_before_unload = self.on_before_unload
        kwargs.setdefault("throttle_ms", self.config.throttle_ms)
        kwargs.setdefault("prevent_auto_refresh", self.config.prevent_auto_refresh)
        kwargs.setdefault("clock", self.clock)

        self.visibility = VisibilityController(source, callbacks, **kwargs)
        self.refresh.visibility = self.visibility
        return self.visibility

    async def on_before_unload(self) -> None:
        """Last-chance persistence before shutdown."""
        await self.page_state.flush()
        await self.save_snapshot()

    # Snapshots and maintenance

    async def load_snapshot(self) -> int:
        """Seed the store from the durable snapshot, skipping expired entries."""
        data = await self.persistence.load(SNAPSHOT_KEY)
        if not isinstance(data, dict):
            return 0

        entries = []
        for key, raw in data.items():
            try:
                entries.append(CacheEntry.from_dict({**raw, "key": key}))
            except (KeyError, TypeError, ValueError) as e:
                self.logger.warning(f"Skipping malformed snapshot entry '{key}': {e}")
        return self.store.load_entries(entries)

    async def save_snapshot(self) -> int:
        """
        Write the unexpired store entries to durable storage.

        Entries whose policy does not persist are left out, as are entries
        whose values cannot be serialized. Keys outside every policy
        namespace with no configured policy are always written. At most
        ``cleanup_max_entries`` entries are kept, newest first.

        Returns:
            Number of entries written (0 if the write failed)
        """
        entries = sorted(self.store.items_snapshot(), key=lambda e: e.timestamp, reverse=True)
        snapshot: dict[str, Any] = {}
        entries = [e for e in entries if self._snapshot_allowed(e.key)]
        for entry in entries[: self.config.cleanup_max_entries]:
            try:
                to_json_bytes(entry.value)
            except CacheError:
                self.logger.debug(f"Leaving unserializable entry '{entry.key}' out of snapshot")
                continue
            snapshot[entry.key] = entry.to_dict()

        if not await self.persistence.save(SNAPSHOT_KEY, snapshot):
            return 0
        return len(snapshot)

    def _snapshot_allowed(self, key: str) -> bool:
        policy = self.registry.get_policy(key)
        if policy.persist:
            return True
        return policy.category == PolicyCategory.DEFAULT and not key.startswith(NAMESPACE_PREFIXES)

    async def run_maintenance(self) -> int:
        """
        Sweep the store and prune durable records older than their TTL or
        ``cleanup_max_age_ms``.

        Returns:
            Number of entries removed from both tiers
        """
        removed = self.store.sweep()

        now = self.clock()
        for key in await self.persistence.keys():
            if key == SNAPSHOT_KEY:
                continue
            record = await self.persistence.load(key)
            if not is_record(record):
                continue
            try:
                too_old = now - float(record["timestamp"]) >= self.config.cleanup_max_age_ms
                expired = remaining_ttl(record, now) <= 0
            except (TypeError, ValueError) as e:
                self.logger.warning(f"Skipping malformed durable record '{key}': {e}")
                continue
            if too_old or expired:
                if await self.persistence.remove(key):
                    removed += 1
        return removed
