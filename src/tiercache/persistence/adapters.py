"""
Durable persistence adapters for tiercache.

Adapters store JSON-compatible values under string keys so they survive a
process restart. They are a best-effort durability layer: every failure (I/O
error, unserializable value, corrupted file) is contained in the adapter,
logged, recorded in the adapter's ``ErrorCollector`` and reported through the
return value. Nothing is raised to the caller, and the in-memory store stays
authoritative.

Classes:
    PersistenceAdapter: Abstract async key-value durable store
    MemoryPersistence: Process-local durable store (restart simulation, tests)
    NullPersistence: Durability disabled
    JsonFilePersistence: One JSON file per key plus an index, on local disk

Features:
    - Async interface; disk I/O runs in worker threads
    - Atomic file replacement on write
    - Serialization with orjson
"""

from __future__ import annotations

import asyncio
import hashlib
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from ..utils.error_handling import CacheError, ErrorCollector, handle_persistence_error
from ..utils.logging_config import get_logger
from ..utils.serialization import from_json_bytes, to_json_bytes


class PersistenceAdapter(ABC):
    """Abstract base class for durable storage."""

    def __init__(self, error_collector: ErrorCollector | None = None):
        self.errors = error_collector if error_collector is not None else ErrorCollector()
        self.logger = get_logger()

    @abstractmethod
    async def save(self, key: str, value: Any) -> bool:
        """Write a value. Returns False if the write failed."""

    @abstractmethod
    async def load(self, key: str) -> Any | None:
        """Read a value, or None if absent or unreadable."""

    @abstractmethod
    async def remove(self, key: str) -> bool:
        """Delete a value. Returns False if nothing was removed."""

    @abstractmethod
    async def clear_all(self) -> None:
        """Delete every stored value."""

    @abstractmethod
    async def keys(self) -> list[str]:
        """All stored keys."""

    def _handle_error(self, key: str, operation: str, exception: Exception) -> None:
        handle_persistence_error(key, operation, exception, self.errors, self.logger)


class NullPersistence(PersistenceAdapter):
    """Accepts every write and stores nothing."""

    async def save(self, key: str, value: Any) -> bool:
        return True

    async def load(self, key: str) -> Any | None:
        return None

    async def remove(self, key: str) -> bool:
        return False

    async def clear_all(self) -> None:
        return None

    async def keys(self) -> list[str]:
        return []


class MemoryPersistence(PersistenceAdapter):
    """
    Durable store held in process memory.

    Values are serialized on save, so a value that would fail on disk fails
    here too, and loaded values are independent copies. A single instance can
    back several successive cache stores to simulate restarts.
    """

    def __init__(self, error_collector: ErrorCollector | None = None):
        super().__init__(error_collector)
        self._data: dict[str, bytes] = {}

    async def save(self, key: str, value: Any) -> bool:
        try:
            self._data[key] = to_json_bytes(value)
        except CacheError as e:
            self._handle_error(key, "save", e)
            return False
        return True

    async def load(self, key: str) -> Any | None:
        data = self._data.get(key)
        if data is None:
            return None
        try:
            return from_json_bytes(data)
        except CacheError as e:
            self._handle_error(key, "load", e)
            return None

    async def remove(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    async def clear_all(self) -> None:
        self._data.clear()

    async def keys(self) -> list[str]:
        return list(self._data)


class JsonFilePersistence(PersistenceAdapter):
    """
    Persistent disk-based storage.

    Each key is written to ``entry_<md5>.json`` inside ``directory``; an index
    file maps keys to file names. File operations are serialized by an
    asyncio lock and executed in worker threads.
    """

    def __init__(self, directory: Path | str, error_collector: ErrorCollector | None = None):
        super().__init__(error_collector)
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

        # Index file for key lookup
        self.index_file = self.directory / "persistence_index.json"
        self._index: dict[str, str] = {}
        self._lock = asyncio.Lock()
        self._load_index()

    async def save(self, key: str, value: Any) -> bool:
        try:
            data = to_json_bytes(value)
        except CacheError as e:
            self._handle_error(key, "save", e)
            return False

        async with self._lock:
            try:
                await asyncio.to_thread(self._write_entry, key, data)
            except OSError as e:
                self._handle_error(key, "save", e)
                return False
        return True

    async def load(self, key: str) -> Any | None:
        async with self._lock:
            if key not in self._index:
                return None
            try:
                data = await asyncio.to_thread(self._get_entry_file(key).read_bytes)
            except FileNotFoundError:
                # Clean up stale index entry
                del self._index[key]
                try:
                    await asyncio.to_thread(self._save_index)
                except OSError as e:
                    self._handle_error(key, "load", e)
                return None
            except OSError as e:
                self._handle_error(key, "load", e)
                return None

        try:
            return from_json_bytes(data)
        except CacheError as e:
            self._handle_error(key, "load", e)
            await self.remove(key)
            return None

    async def remove(self, key: str) -> bool:
        async with self._lock:
            if key not in self._index:
                return False
            try:
                await asyncio.to_thread(self._delete_entry, key)
            except OSError as e:
                self._handle_error(key, "remove", e)
                return False
        return True

    async def clear_all(self) -> None:
        async with self._lock:
            try:
                await asyncio.to_thread(self._clear_files)
            except OSError as e:
                self._handle_error("*", "clear", e)

    async def keys(self) -> list[str]:
        async with self._lock:
            return list(self._index)

    def entry_size(self, key: str) -> int:
        """Size in bytes of the file stored for ``key`` (0 if absent)."""
        try:
            return self._get_entry_file(key).stat().st_size
        except OSError:
            return 0

    def _get_entry_file(self, key: str) -> Path:
        """Get the file path for a key."""
        # Use hash of key to avoid filesystem issues
        key_hash = hashlib.md5(key.encode("utf-8")).hexdigest()
        return self.directory / f"entry_{key_hash}.json"

    def _write_entry(self, key: str, data: bytes) -> None:
        entry_file = self._get_entry_file(key)
        temp_file = entry_file.with_suffix(".tmp")
        temp_file.write_bytes(data)
        os.replace(temp_file, entry_file)

        self._index[key] = entry_file.name
        self._save_index()

    def _delete_entry(self, key: str) -> None:
        self._get_entry_file(key).unlink(missing_ok=True)
        del self._index[key]
        self._save_index()

    def _clear_files(self) -> None:
        for entry_file in self.directory.glob("entry_*.json"):
            entry_file.unlink(missing_ok=True)
        self._index.clear()
        self._save_index()

    def _load_index(self) -> None:
        """Load the key index from disk."""
        try:
            if self.index_file.exists():
                index = from_json_bytes(self.index_file.read_bytes())
                self._index = {str(k): str(v) for k, v in index.items()} if isinstance(index, dict) else {}
        except (OSError, CacheError) as e:
            self.logger.warning(f"Error loading persistence index: {e}")
            self._index = {}

    def _save_index(self) -> None:
        """Save the key index to disk."""
        temp_file = self.index_file.with_suffix(".tmp")
        temp_file.write_bytes(to_json_bytes(self._index))
        os.replace(temp_file, self.index_file)
