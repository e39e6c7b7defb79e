"""
Page state management.

Page state is an open mapping of UI sub-state (``activeTab``, ``formData``,
``scrollPosition``, ``lastSaved``...) stored per page in the cache entry store
under ``page_state_<pageKey>``. Writes merge into the existing fields and, for
pages whose policy asks for persistence, are mirrored to durable storage in
the background.

Classes:
    PageStateManager: Merge, read, clear and restore page state; navigation
        state and generic durable key helpers

Example:
    >>> manager = PageStateManager(store, registry, persistence)
    >>> manager.save_page_state("orders", {"activeTab": "list"})
    {'activeTab': 'list'}
    >>> manager.get_page_state("orders")["activeTab"]
    'list'
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..core.config import DAY_MS, Clock
from ..core.keys import NAVIGATION_KEY, page_state_key, persist_key
from ..core.policy import PolicyRegistry
from ..persistence.adapters import NullPersistence, PersistenceAdapter
from ..persistence.mirror import DurableMirror
from ..persistence.records import remaining_ttl, unwrap_record
from ..store.memory import CacheStore
from ..utils.logging_config import get_logger

PERSISTED_DATA_TTL_MS = 7 * DAY_MS


class PageStateManager:
    """
    Keyed UI state on top of the cache entry store.

    The in-memory store is authoritative. The durable copy is a cold-start
    seed only and is checked against its TTL before it is trusted.
    """

    def __init__(
        self,
        store: CacheStore,
        registry: PolicyRegistry | None = None,
        persistence: PersistenceAdapter | None = None,
        page_state_ttl_ms: float = DAY_MS,
        persisted_data_ttl_ms: float = PERSISTED_DATA_TTL_MS,
        clock: Clock | None = None,
    ):
        """
        Initialize the manager.

        Args:
            store: Cache entry store holding page state
            registry: Policy registry (defaults to the store's registry)
            persistence: Durable adapter for mirrored state
            page_state_ttl_ms: Minimum TTL for page state entries
            persisted_data_ttl_ms: Lifetime of values written via ``persist_data``
            clock: Millisecond clock (defaults to the store's clock)
        """
        self.store = store
        self.registry = registry if registry is not None else (store.registry or PolicyRegistry())
        self.persistence = persistence if persistence is not None else NullPersistence()
        self.page_state_ttl_ms = page_state_ttl_ms
        self.persisted_data_ttl_ms = persisted_data_ttl_ms
        self.clock = clock if clock is not None else store.clock
        self.logger = get_logger()
        self.mirror = DurableMirror(self.persistence, self.clock)

    def _ttl_for(self, page_key: str) -> float:
        policy = self.registry.get_page_policy(page_key)
        if policy is None:
            return self.page_state_ttl_ms
        return max(policy.ttl_ms, self.page_state_ttl_ms)

    def should_persist(self, page_key: str) -> bool:
        """Whether state for ``page_key`` is mirrored to durable storage."""
        return self.registry.get_policy(page_state_key(page_key)).persist

    def save_page_state(self, page_key: str, partial_state: Mapping[str, Any]) -> dict[str, Any]:
        """
        Merge ``partial_state`` into the page's state.

        The merge is shallow: top-level fields in ``partial_state`` replace
        the existing ones, other fields are kept.

        Returns:
            The merged state
        """
        merged = dict(self.get_page_state(page_key) or {})
        merged.update(partial_state)
        self._write(page_key, merged)
        return merged

    def get_page_state(self, page_key: str) -> dict[str, Any] | None:
        return self.store.get(page_state_key(page_key))

    def remove_field(self, page_key: str, field: str) -> dict[str, Any] | None:
        """Drop one field from the page's state. Returns the remaining state."""
        state = self.get_page_state(page_key)
        if state is None or field not in state:
            return state
        remaining = {name: value for name, value in state.items() if name != field}
        self._write(page_key, remaining)
        return remaining

    def clear_page_state(self, page_key: str) -> None:
        key = page_state_key(page_key)
        self.store.delete(key)
        self.mirror.remove(key)

    async def restore_page_state(self, page_key: str) -> dict[str, Any] | None:
        """
        Get page state, seeding the store from durable storage when cold.

        Returns:
            The page state, or None if neither tier has an unexpired copy
        """
        state = self.get_page_state(page_key)
        if state is not None:
            return state

        key = page_state_key(page_key)
        record = await self.persistence.load(key)
        if record is None:
            return None

        now = self.clock()
        state = unwrap_record(record, now)
        if not isinstance(state, dict):
            self.logger.debug(f"Discarding expired durable page state for '{page_key}'")
            return None

        # Keep the original expiry rather than restarting the TTL
        remaining = remaining_ttl(record, now)
        self.store.set(key, state, ttl=remaining)
        return state

    def save_navigation_state(self, state: Any) -> None:
        self.store.set(NAVIGATION_KEY, state, ttl=self.persisted_data_ttl_ms)
        self.persist_data(NAVIGATION_KEY, state)

    async def get_navigation_state(self) -> Any | None:
        state = self.store.get(NAVIGATION_KEY)
        if state is not None:
            return state
        return await self.get_persisted_data(NAVIGATION_KEY)

    def persist_data(self, key: str, value: Any, attempts: int = 1) -> None:
        """Write ``value`` to durable storage only, under ``persist_<key>``."""
        self.mirror.save(persist_key(key), value, self.persisted_data_ttl_ms, attempts)

    def remove_persisted_data(self, key: str) -> None:
        self.mirror.remove(persist_key(key))

    async def get_persisted_data(self, key: str) -> Any | None:
        return await self.mirror.load(persist_key(key))

    async def flush(self) -> None:
        """Wait for all pending durable writes."""
        await self.mirror.flush()

    def _write(self, page_key: str, state: dict[str, Any]) -> None:
        key = page_state_key(page_key)
        ttl = self._ttl_for(page_key)
        self.store.set(key, state, ttl=ttl)
        if self.should_persist(page_key):
            self.mirror.save(key, state, ttl)
