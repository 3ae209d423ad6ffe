"""
defcache: define a producer once, read its value by name.

Quick Start:
    from defcache import cache

    c = cache()
    c.define("rates", fetch_rates, ttl=60, ttr=300)

    rates = await c.get("rates")
    usd = await c.get("rate", "USD")   # one definition, many keys
"""

from .definitions import Definition, ProducerKind
from .engine import Cache
from .exceptions import (
    DefCacheError,
    DefinitionNotFoundError,
    InvalidDefinitionError,
    ProducerError,
)
from .instances import cache, get_default_cache
from .keys import compose_key
from .settings import CacheSettings, get_cache_settings
from .stores import InMemoryStore, NullStore, RedisStore, StoreAdapter

__all__ = [
    # Entry points
    "cache",
    "get_default_cache",
    "Cache",
    # Definitions
    "Definition",
    "ProducerKind",
    "compose_key",
    # Stores
    "StoreAdapter",
    "InMemoryStore",
    "NullStore",
    "RedisStore",
    # Settings
    "CacheSettings",
    "get_cache_settings",
    # Exceptions
    "DefCacheError",
    "DefinitionNotFoundError",
    "InvalidDefinitionError",
    "ProducerError",
]
