"""
Root conftest.py for defcache tests.

This file provides:
1. Common pytest markers for test categorization
2. Shared fixtures (fresh cache instances, recording stores)
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

import pytest
import pytest_asyncio

from defcache import Cache, InMemoryStore
from defcache.settings import CacheSettings


# =============================================================================
# PYTEST CONFIGURATION
# =============================================================================


def pytest_collection_modifyitems(config, items):
    """Tag tests that sleep on real timers so `-m "not timing"` skips them."""
    for item in items:
        norm = str(item.fspath).replace("\\", "/")
        if "expiry" in norm or "refresh" in norm:
            item.add_marker(pytest.mark.timing)


def pytest_configure(config):
    for name, desc in [
        ("cache", "Cache engine behaviour"),
        ("timing", "Tests driven by real TTL/TTR timers"),
        ("stores", "Store adapter tests"),
    ]:
        config.addinivalue_line("markers", f"{name}: {desc}")


# =============================================================================
# STORES
# =============================================================================


class RecordingStore(InMemoryStore):
    """In-memory store that records every call it receives."""

    def __init__(self, namespace: str = ""):
        super().__init__(namespace)
        self.calls: List[Tuple[str, str]] = []
        self.ttls: Dict[str, Optional[float]] = {}

    async def get(self, key: str) -> Optional[Any]:
        self.calls.append(("get", key))
        return await super().get(key)

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        self.calls.append(("set", key))
        self.ttls[key] = ttl
        await super().set(key, value, ttl)

    async def delete(self, key: str) -> None:
        self.calls.append(("delete", key))
        await super().delete(key)

    def ops(self, op: str) -> List[str]:
        return [key for name, key in self.calls if name == op]

    def __str__(self) -> str:
        return "RecordingStore"


@pytest.fixture
def settings() -> CacheSettings:
    return CacheSettings(store="memory", ready_timeout=0.5)


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore()


@pytest_asyncio.fixture
async def cache(store, settings):
    c = Cache(store=store, settings=settings)
    yield c
    c.reset()
