"""Tests for tiercache.persistence.adapters module."""

from __future__ import annotations

import pytest

from tiercache.persistence.adapters import (
    JsonFilePersistence,
    MemoryPersistence,
    NullPersistence,
)
from tiercache.utils.error_handling import ErrorCategory


class TestNullPersistence:
    @pytest.mark.asyncio
    async def test_stores_nothing(self):
        persistence = NullPersistence()
        assert await persistence.save("k", 1) is True
        assert await persistence.load("k") is None
        assert await persistence.remove("k") is False
        assert await persistence.keys() == []


class TestMemoryPersistence:
    @pytest.mark.asyncio
    async def test_save_load_remove(self):
        persistence = MemoryPersistence()
        assert await persistence.save("k", {"a": [1, 2]}) is True
        assert await persistence.load("k") == {"a": [1, 2]}
        assert await persistence.keys() == ["k"]
        assert await persistence.remove("k") is True
        assert await persistence.remove("k") is False
        assert await persistence.load("k") is None

    @pytest.mark.asyncio
    async def test_loaded_values_are_copies(self):
        persistence = MemoryPersistence()
        value = {"items": [1]}
        await persistence.save("k", value)
        value["items"].append(2)
        loaded = await persistence.load("k")
        assert loaded == {"items": [1]}

    @pytest.mark.asyncio
    async def test_unserializable_value_is_contained(self):
        persistence = MemoryPersistence()
        assert await persistence.save("k", {"handle": object()}) is False
        assert await persistence.load("k") is None
        summary = persistence.errors.get_summary()
        assert summary["by_category"] == {ErrorCategory.SERIALIZATION.value: 1}
        assert persistence.errors.errors[0].key == "k"

    @pytest.mark.asyncio
    async def test_clear_all(self):
        persistence = MemoryPersistence()
        await persistence.save("a", 1)
        await persistence.save("b", 2)
        await persistence.clear_all()
        assert await persistence.keys() == []


class TestJsonFilePersistence:
    @pytest.mark.asyncio
    async def test_save_and_load(self, tmp_path):
        persistence = JsonFilePersistence(tmp_path)
        assert await persistence.save("page_state_orders", {"activeTab": "list"}) is True
        assert await persistence.load("page_state_orders") == {"activeTab": "list"}
        assert persistence.entry_size("page_state_orders") > 0
        assert persistence.entry_size("missing") == 0

    @pytest.mark.asyncio
    async def test_survives_new_instance(self, tmp_path):
        await JsonFilePersistence(tmp_path).save("k", [1, 2, 3])
        reopened = JsonFilePersistence(tmp_path)
        assert await reopened.keys() == ["k"]
        assert await reopened.load("k") == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_file_names_are_hashed(self, tmp_path):
        persistence = JsonFilePersistence(tmp_path)
        await persistence.save("a/b:c", 1)
        files = sorted(path.name for path in tmp_path.glob("entry_*.json"))
        assert len(files) == 1
        assert "/" not in files[0]
        assert not list(tmp_path.glob("*.tmp"))

    @pytest.mark.asyncio
    async def test_remove(self, tmp_path):
        persistence = JsonFilePersistence(tmp_path)
        await persistence.save("k", 1)
        assert await persistence.remove("k") is True
        assert await persistence.remove("k") is False
        assert await persistence.load("k") is None
        assert not list(tmp_path.glob("entry_*.json"))

    @pytest.mark.asyncio
    async def test_corrupt_file_is_dropped(self, tmp_path):
        persistence = JsonFilePersistence(tmp_path)
        await persistence.save("k", {"a": 1})
        persistence._get_entry_file("k").write_bytes(b"{broken")

        assert await persistence.load("k") is None
        assert await persistence.keys() == []
        assert persistence.errors.get_summary()["total_errors"] == 1

    @pytest.mark.asyncio
    async def test_missing_file_cleans_index(self, tmp_path):
        persistence = JsonFilePersistence(tmp_path)
        await persistence.save("k", 1)
        persistence._get_entry_file("k").unlink()
        assert await persistence.load("k") is None
        assert await persistence.keys() == []

    @pytest.mark.asyncio
    async def test_index_write_failure_during_load_is_contained(self, tmp_path, monkeypatch):
        persistence = JsonFilePersistence(tmp_path)
        await persistence.save("k", 1)
        persistence._get_entry_file("k").unlink()

        def read_only_index():
            raise PermissionError("read-only file system")

        monkeypatch.setattr(persistence, "_save_index", read_only_index)
        assert await persistence.load("k") is None
        assert await persistence.keys() == []
        assert persistence.errors.get_summary()["total_errors"] == 1

    @pytest.mark.asyncio
    async def test_unserializable_value_is_contained(self, tmp_path):
        persistence = JsonFilePersistence(tmp_path)
        assert await persistence.save("k", {1, 2}) is False
        assert await persistence.keys() == []

    @pytest.mark.asyncio
    async def test_corrupt_index_starts_empty(self, tmp_path):
        (tmp_path / "persistence_index.json").write_bytes(b"not json")
        persistence = JsonFilePersistence(tmp_path)
        assert await persistence.keys() == []
        assert await persistence.save("k", 1) is True

    @pytest.mark.asyncio
    async def test_clear_all(self, tmp_path):
        persistence = JsonFilePersistence(tmp_path)
        await persistence.save("a", 1)
        await persistence.save("b", 2)
        await persistence.clear_all()
        assert await persistence.keys() == []
        assert not list(tmp_path.glob("entry_*.json"))
