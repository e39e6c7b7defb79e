"""
Keyed request caching.

Public API:
    RequestCache: De-duplicating, cancelling read-through cache
    PaginatedRequest: Accumulating paginated request
    AutoRefreshScheduler: Background refresh gated on visibility
"""

from .pagination import PaginatedRequest
from .refresh import AutoRefreshScheduler, RefreshJob
from .request_cache import Fetcher, PendingRequest, RequestCache

__all__ = [
    "RequestCache",
    "PendingRequest",
    "Fetcher",
    "PaginatedRequest",
    "AutoRefreshScheduler",
    "RefreshJob",
]
