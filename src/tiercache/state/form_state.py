"""
Form data persistence.

A form's working data is kept in three tiers: the cache entry store under
``form_<formKey>``, the page state of the form (``formData``) and, optionally,
durable storage. Loading walks the tiers in that order. Changes are saved
after a debounce interval, or immediately when an identifying field changes.

Classes:
    FormSnapshot: Read-only view of a form's persistence state
    FormStateManager: Load, update, auto-save and reset one form
    FormValidationState: Per-field validation errors and touched flags
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from ..core.config import DAY_MS
from ..core.keys import form_key
from ..utils.logging_config import get_logger
from .page_state import PageStateManager

CRITICAL_FIELDS = ("id", "status", "customer_id", "order_id")

_MISSING = object()


@dataclass(frozen=True)
class FormSnapshot:
    form_key: str
    data: dict[str, Any]
    has_unsaved_changes: bool
    last_saved: float | None
    is_loaded: bool


class FormStateManager:
    """
    Persistence for the data of a single form.

    Auto-save needs a running event loop; without one, changes are kept in
    memory until :meth:`save` is called.
    """

    def __init__(
        self,
        manager: PageStateManager,
        form_name: str,
        initial_data: Mapping[str, Any] | None = None,
        auto_save: bool = True,
        save_interval: float = 2.0,
        ttl: float | None = None,
        persist_to_storage: bool = True,
        max_retries: int = 3,
    ):
        """
        Initialize form state.

        Args:
            manager: Page state manager the form state is stored through
            form_name: Form identifier, also used as its page key
            initial_data: Data used when nothing was saved before
            auto_save: Save automatically after ``save_interval`` seconds of quiet
            save_interval: Debounce interval in seconds
            ttl: Cache TTL in milliseconds (form policy or 24 hours if None)
            persist_to_storage: Also keep a durable copy
            max_retries: Attempts for each durable write
        """
        self.manager = manager
        self.form_name = form_name
        self.cache_key = form_key(form_name)
        self.initial_data = dict(initial_data or {})
        self.auto_save = auto_save
        self.save_interval = save_interval
        self.persist_to_storage = persist_to_storage
        self.max_retries = max_retries
        self.logger = get_logger()

        if ttl is None:
            policy = manager.registry.get_form_policy(form_name)
            ttl = policy.ttl_ms if policy is not None else DAY_MS
        self.ttl = ttl

        self.data: dict[str, Any] = dict(self.initial_data)
        self.has_unsaved_changes = False
        self.last_saved: float | None = None
        self.is_loaded = False

        self._save_handle: asyncio.TimerHandle | None = None

    async def load(self) -> dict[str, Any]:
        """
        Load saved data: cache, then page state, then durable storage.

        Falls back to the initial data when no tier has a saved copy.
        """
        saved = self.manager.store.get(self.cache_key)

        if not saved:
            page_state = await self.manager.restore_page_state(self.form_name)
            saved = page_state.get("formData") if page_state else None

        if not saved and self.persist_to_storage:
            saved = await self.manager.get_persisted_data(self.cache_key)

        if saved:
            self.data = dict(saved)
            self.last_saved = self.manager.clock()
        self.is_loaded = True
        return self.data

    def update(
        self, new_data: Mapping[str, Any] | Callable[[dict[str, Any]], Mapping[str, Any]]
    ) -> dict[str, Any]:
        """
        Replace the form data.

        ``new_data`` is either the new data or a function of the current
        data. A change to any of ``CRITICAL_FIELDS`` in a mapping update is
        saved immediately; other changes are auto-saved after the debounce
        interval.
        """
        previous = self.data
        updated = dict(new_data(dict(previous)) if callable(new_data) else new_data)

        self.data = updated
        self.has_unsaved_changes = True

        if not callable(new_data) and self._has_critical_change(previous, updated):
            self.save()
        elif self.auto_save and self.is_loaded:
            self._schedule_auto_save()

        return self.data

    def get_field(self, field: str, default: Any = None) -> Any:
        return self.data.get(field, default)

    def set_field(self, field: str, value: Any) -> None:
        self.update({**self.data, field: value})

    def save(self) -> None:
        """Write the current data to every tier."""
        self._cancel_auto_save()
        now = self.manager.clock()

        self.manager.store.set(self.cache_key, self.data, ttl=self.ttl)
        self.manager.save_page_state(self.form_name, {"formData": self.data, "lastSaved": now})
        if self.persist_to_storage:
            self.manager.persist_data(self.cache_key, self.data, attempts=self.max_retries)

        self.last_saved = now
        self.has_unsaved_changes = False
        self.logger.debug(f"Saved form data for '{self.form_name}'")

    def reset(self) -> None:
        """Return to the initial data and drop every saved copy."""
        self._cancel_auto_save()
        self.data = dict(self.initial_data)
        self.has_unsaved_changes = False
        self.last_saved = None

        self.manager.store.delete(self.cache_key)
        self.manager.remove_field(self.form_name, "formData")
        if self.persist_to_storage:
            self.manager.remove_persisted_data(self.cache_key)

    async def has_saved_data(self) -> bool:
        if self.manager.store.get(self.cache_key):
            return True
        page_state = self.manager.get_page_state(self.form_name)
        if page_state and page_state.get("formData"):
            return True
        if self.persist_to_storage:
            return bool(await self.manager.get_persisted_data(self.cache_key))
        return False

    def snapshot(self) -> FormSnapshot:
        return FormSnapshot(
            form_key=self.form_name,
            data=dict(self.data),
            has_unsaved_changes=self.has_unsaved_changes,
            last_saved=self.last_saved,
            is_loaded=self.is_loaded,
        )

    async def close(self) -> None:
        """Cancel a pending auto-save, save unsaved changes and flush durable writes."""
        self._cancel_auto_save()
        if self.has_unsaved_changes:
            self.save()
        await self.manager.flush()

    @staticmethod
    def _has_critical_change(previous: Mapping[str, Any], updated: Mapping[str, Any]) -> bool:
        return any(
            previous.get(field, _MISSING) != updated.get(field, _MISSING) for field in CRITICAL_FIELDS
        )

    def _schedule_auto_save(self) -> None:
        self._cancel_auto_save()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.logger.debug(f"No running event loop; auto-save for '{self.form_name}' deferred")
            return
        self._save_handle = loop.call_later(self.save_interval, self._auto_save)

    def _auto_save(self) -> None:
        self._save_handle = None
        if self.has_unsaved_changes:
            self.save()

    def _cancel_auto_save(self) -> None:
        if self._save_handle is not None:
            self._save_handle.cancel()
            self._save_handle = None


class FormValidationState:
    """Validation errors and touched flags for the fields of a form."""

    def __init__(self) -> None:
        self.errors: dict[str, str] = {}
        self.touched: dict[str, bool] = {}

    def set_field_error(self, field: str, error: str) -> None:
        self.errors[field] = error

    def set_field_touched(self, field: str, touched: bool = True) -> None:
        self.touched[field] = touched

    def clear_errors(self) -> None:
        self.errors.clear()

    def clear_field_error(self, field: str) -> None:
        self.errors.pop(field, None)

    @property
    def is_valid(self) -> bool:
        return not self.errors
