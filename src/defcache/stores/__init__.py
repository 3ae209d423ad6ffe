from __future__ import annotations

from typing import TYPE_CHECKING

from .base import InMemoryStore, NullStore, StoreAdapter
from .redis import RedisStore

if TYPE_CHECKING:
    from ..settings import CacheSettings


def store_from_settings(settings: "CacheSettings") -> StoreAdapter:
    if settings.store == "null":
        return NullStore()
    if settings.store == "redis":
        if not settings.redis_url:
            raise ValueError("DEFCACHE_REDIS_URL must be set when DEFCACHE_STORE=redis")
        return RedisStore(settings.redis_url, namespace=settings.namespace)
    return InMemoryStore(namespace=settings.namespace)


__all__ = [
    "StoreAdapter",
    "InMemoryStore",
    "NullStore",
    "RedisStore",
    "store_from_settings",
]
