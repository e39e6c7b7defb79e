"""
Persistent active-tab state for a page.

The active tab lives in the page state under ``activeTab``. Every change is
also written to a durable backup key (``<pageKey>_activeTab`` by default), so
a restart restores the last tab even when the page state itself was not
persisted or has expired.
"""

from __future__ import annotations

from ..utils.logging_config import get_logger
from .page_state import PageStateManager

ACTIVE_TAB_FIELD = "activeTab"


class PersistentTabState:
    """Active tab of one page, backed by page state and a durable key."""

    def __init__(
        self,
        manager: PageStateManager,
        page_key: str,
        default_tab: str,
        persist: bool = True,
        storage_key: str | None = None,
    ):
        self.manager = manager
        self.page_key = page_key
        self.default_tab = default_tab
        self.persist = persist
        self.storage_key = storage_key or f"{page_key}_{ACTIVE_TAB_FIELD}"
        self.logger = get_logger()

        self._active_tab = default_tab

    async def load(self) -> str:
        """
        Resolve the active tab.

        Lookup order: page state (restored from durable storage if the store
        is cold), then the durable backup key, then the default.
        """
        if not self.persist:
            self._active_tab = self.default_tab
            return self._active_tab

        state = await self.manager.restore_page_state(self.page_key)
        tab = state.get(ACTIVE_TAB_FIELD) if state else None

        if not isinstance(tab, str):
            backup = await self.manager.persistence.load(self.storage_key)
            tab = backup if isinstance(backup, str) else None

        self._active_tab = tab or self.default_tab
        return self._active_tab

    @property
    def active_tab(self) -> str:
        return self._active_tab

    def set_active_tab(self, tab: str) -> None:
        self._active_tab = tab
        if not self.persist:
            return

        self.manager.save_page_state(self.page_key, {ACTIVE_TAB_FIELD: tab})
        self.manager.mirror.save_raw(self.storage_key, tab)
        self.logger.debug(f"Active tab for '{self.page_key}' set to '{tab}'")
