"""
Shared test fixtures and utilities for tiercache tests.

This module provides a controllable clock, policy registry, entry store and
durable backends so tests can simulate elapsed time and process restarts.
"""

from __future__ import annotations

from typing import Any

import pytest

from tiercache.core.policy import PolicyRegistry
from tiercache.persistence.adapters import MemoryPersistence, PersistenceAdapter
from tiercache.store.memory import CacheStore

START_TIME_MS = 1_700_000_000_000.0


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, start: float = START_TIME_MS):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class FailingPersistence(PersistenceAdapter):
    """Adapter whose every operation fails the way a broken disk would."""

    def __init__(self) -> None:
        super().__init__()
        self.save_calls = 0

    async def save(self, key: str, value: Any) -> bool:
        self.save_calls += 1
        self._handle_error(key, "save", OSError("disk full"))
        return False

    async def load(self, key: str) -> Any | None:
        self._handle_error(key, "load", OSError("disk unavailable"))
        return None

    async def remove(self, key: str) -> bool:
        return False

    async def clear_all(self) -> None:
        return None

    async def keys(self) -> list[str]:
        return []


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry() -> PolicyRegistry:
    return PolicyRegistry()


@pytest.fixture
def store(registry: PolicyRegistry, clock: FakeClock) -> CacheStore:
    return CacheStore(registry=registry, clock=clock)


@pytest.fixture
def persistence() -> MemoryPersistence:
    return MemoryPersistence()


@pytest.fixture
def failing_persistence() -> FailingPersistence:
    return FailingPersistence()
