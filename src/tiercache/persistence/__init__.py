"""
Durable persistence package.

Public API:
    PersistenceAdapter: Abstract async durable store
    MemoryPersistence, JsonFilePersistence, NullPersistence: Implementations
    DurableMirror: Background writes to an adapter
    make_record, unwrap_record: Freshness envelope for durable values
"""

from .adapters import JsonFilePersistence, MemoryPersistence, NullPersistence, PersistenceAdapter
from .mirror import DurableMirror
from .records import is_record, make_record, remaining_ttl, unwrap_record

__all__ = [
    "PersistenceAdapter",
    "MemoryPersistence",
    "JsonFilePersistence",
    "NullPersistence",
    "DurableMirror",
    "is_record",
    "make_record",
    "remaining_ttl",
    "unwrap_record",
]
