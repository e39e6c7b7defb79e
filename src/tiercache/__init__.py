"""
tiercache: Tiered cache and persistence engine for data-heavy applications.

This package provides the client-side caching layer of a data-heavy
application: an in-memory entry store with TTL and priority eviction, page,
tab and form state that survives restarts, a keyed request cache that
de-duplicates and cancels asynchronous fetches, and visibility-gated refresh
control. Policies (TTL, persistence, auto-refresh, priority) come from a
static table loaded once at start-up.

Key Features:
    - **Entry Store**: TTL expiration, staleness checks, pattern invalidation
    - **Eviction**: Priority-then-age eviction against entry and byte budgets
    - **Durability**: Async persistence adapters (memory, JSON files) with
      contained failures and freshness-checked warm start
    - **UI State**: Merged page state, persistent active tabs, auto-saved forms
    - **Request Cache**: At most one fetch in flight per key, subscription
      cancellation, timeouts, stale-while-revalidate, pagination
    - **Visibility Control**: Throttled foreground/focus transitions that do not
      trigger refreshes by default

Main Classes:
    AppCache: Composition root owning every component
    CacheStore: In-memory entry store
    PolicyRegistry: Static policy lookups
    PageStateManager: Page state with durable mirroring
    RequestCache: Keyed request cache
    VisibilityController: Visibility-gated callbacks

Example Usage:
    >>> from tiercache import AppCache, CacheConfig
    >>> async with AppCache(CacheConfig()) as cache:
    ...     cache.page_state.save_page_state("orders", {"activeTab": "list"})
    ...     orders = await cache.requests.request("orders", fetch_orders)
"""

from .context import AppCache
from .core.config import CacheConfig
from .core.policy import PolicyCategory, PolicyDescriptor, PolicyRegistry, Priority
from .persistence.adapters import (
    JsonFilePersistence,
    MemoryPersistence,
    NullPersistence,
    PersistenceAdapter,
)
from .requests.pagination import PaginatedRequest
from .requests.refresh import AutoRefreshScheduler
from .requests.request_cache import RequestCache
from .state.form_state import FormStateManager, FormValidationState
from .state.page_state import PageStateManager
from .state.tab_state import PersistentTabState
from .store.memory import CacheStore
from .store.models import CacheEntry
from .utils.error_handling import (
    CacheError,
    ConfigurationError,
    FetchError,
    PersistenceError,
    RequestCancelled,
    SerializationError,
)
from .visibility.controller import VisibilityCallbacks, VisibilityController
from .visibility.signals import ManualSignalSource, SignalKind, SignalSource

__version__ = "0.1.0"

__all__ = [
    # Composition root
    "AppCache",
    "CacheConfig",
    # Store
    "CacheStore",
    "CacheEntry",
    # Policies
    "PolicyRegistry",
    "PolicyDescriptor",
    "PolicyCategory",
    "Priority",
    # Persistence
    "PersistenceAdapter",
    "MemoryPersistence",
    "JsonFilePersistence",
    "NullPersistence",
    # State
    "PageStateManager",
    "PersistentTabState",
    "FormStateManager",
    "FormValidationState",
    # Requests
    "RequestCache",
    "PaginatedRequest",
    "AutoRefreshScheduler",
    # Visibility
    "VisibilityController",
    "VisibilityCallbacks",
    "SignalSource",
    "SignalKind",
    "ManualSignalSource",
    # Errors
    "CacheError",
    "ConfigurationError",
    "FetchError",
    "PersistenceError",
    "RequestCancelled",
    "SerializationError",
]
