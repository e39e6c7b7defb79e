"""
Paginated requests on top of the request cache.

Each page is an ordinary cached request (``page`` and ``page_size`` are part
of its parameters). ``PaginatedRequest`` accumulates the pages into a single
list and tracks whether more pages are available.
"""

from __future__ import annotations

import asyncio
import itertools
from collections.abc import Awaitable, Callable
from typing import Any

from ..core.keys import request_key
from ..utils.error_handling import RequestCancelled
from ..utils.logging_config import get_logger
from .request_cache import RequestCache

PageFetcher = Callable[[int, int, asyncio.Event], Awaitable[list[Any]]]

_instance_ids = itertools.count()


class PaginatedRequest:
    """
    Accumulating paginated request.

    ``has_more`` is True while the last fetched page was full. A reset
    returns to page zero, drops the accumulated items and invalidates the
    cached first page, so the new first page is fetched fresh.
    """

    def __init__(
        self,
        cache: RequestCache,
        resource_key: str,
        fetch_page: PageFetcher,
        page_size: int = 20,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ):
        if page_size <= 0:
            raise ValueError(f"page_size must be positive, got {page_size}")

        self.cache = cache
        self.resource_key = resource_key
        self.fetch_page = fetch_page
        self.page_size = page_size
        self.params = dict(params or {})
        self.timeout = timeout
        self.subscription = f"paginated:{resource_key}:{next(_instance_ids)}"
        self.logger = get_logger()

        self.items: list[Any] = []
        self.page = 0
        self.has_more = True
        self.loading = False
        self._generation = 0

    def page_params(self, page: int) -> dict[str, Any]:
        return {**self.params, "page": page, "page_size": self.page_size}

    async def load(self) -> list[Any]:
        """Load the first page, replacing any accumulated items."""
        return await self._load_page(0)

    async def load_more(self) -> list[Any]:
        """Append the next page. Does nothing when there are no more pages."""
        if not self.has_more or self.loading:
            return self.items
        return await self._load_page(self.page + 1)

    async def reset(self) -> list[Any]:
        """Start over from page zero with a fresh fetch."""
        self._generation += 1
        self.cache.cancel(self.subscription)
        self.cache.store.delete(request_key(self.resource_key, self.page_params(0)))
        self.items = []
        self.page = 0
        self.has_more = True
        self.loading = False
        return await self.load()

    async def _load_page(self, page: int) -> list[Any]:
        generation = self._generation
        self.loading = True
        try:
            page_items = await self.cache.request(
                self.resource_key,
                lambda cancel_event: self.fetch_page(page, self.page_size, cancel_event),
                params=self.page_params(page),
                subscription=self.subscription,
                timeout=self.timeout,
            )
        except RequestCancelled:
            if generation != self._generation:
                return self.items
            raise
        finally:
            if generation == self._generation:
                self.loading = False

        if generation != self._generation:
            self.logger.debug(f"Discarding page {page} of '{self.resource_key}' loaded before reset")
            return self.items

        page_items = list(page_items or [])
        if page == 0:
            self.items = page_items
        else:
            self.items = [*self.items, *page_items]
        self.page = page
        self.has_more = len(page_items) == self.page_size
        return self.items
