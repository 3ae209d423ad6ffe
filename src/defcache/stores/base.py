from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable


@runtime_checkable
class StoreAdapter(Protocol):
    """Key/value backend consulted by the cache engine.

    ``get`` returns ``None`` for a miss; any raised exception is a backend
    failure and reaches the caller unchanged. ``ttl`` on ``set`` is a hint in
    seconds (``None`` = keep until deleted). ``str(store)`` identifies the
    adapter in logs.
    """

    async def get(self, key: str) -> Optional[Any]:
        ...

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...


class NullStore:
    async def get(self, key: str) -> Optional[Any]:
        return None

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        return None

    async def delete(self, key: str) -> None:
        return None

    async def ping(self) -> bool:
        return True

    def __str__(self) -> str:
        return "NullStore"


class InMemoryStore:
    """Process-local dict store; the default adapter. TTL hints are ignored."""

    def __init__(self, namespace: str = ""):
        self._store: dict[str, Any] = {}
        self._ns = (namespace + ":") if namespace else ""

    def _k(self, key: str) -> str:
        return self._ns + key

    async def get(self, key: str) -> Optional[Any]:
        return self._store.get(self._k(key))

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:  # ttl ignored
        self._store[self._k(key)] = value

    async def delete(self, key: str) -> None:
        self._store.pop(self._k(key), None)

    async def ping(self) -> bool:
        return True

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self._k(key) in self._store

    def __str__(self) -> str:
        return f"InMemoryStore({self._ns[:-1]})" if self._ns else "InMemoryStore"
