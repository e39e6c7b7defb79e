"""
Cache entry store package.

Public API:
    CacheStore: In-memory entry store with TTL and priority eviction
    CacheEntry: Cache entry data structure
    CacheStats: Cache performance statistics
    CacheStatistics: Statistics tracker
    CacheCleanup: Periodic maintenance task
"""

from .cleanup import CacheCleanup
from .memory import CacheStore
from .models import CacheEntry, CacheStats
from .statistics import CacheStatistics

__all__ = [
    "CacheStore",
    "CacheEntry",
    "CacheStats",
    "CacheStatistics",
    "CacheCleanup",
]
