from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CacheSettings(BaseSettings):
    """
    Cache settings.

    Env support:
      DEFCACHE_STORE (memory|null|redis), DEFCACHE_REDIS_URL,
      DEFCACHE_NAMESPACE, DEFCACHE_READY_TIMEOUT
    """

    store: Literal["memory", "null", "redis"] = Field(default="memory")
    redis_url: Optional[str] = Field(default=None)
    namespace: str = Field(default="")
    ready_timeout: float = Field(default=5.0, ge=0)  # seconds

    model_config = SettingsConfigDict(
        env_prefix="DEFCACHE_",
        env_file=".env",
        extra="ignore",
    )


@lru_cache
def get_cache_settings(**kwargs) -> CacheSettings:
    # Only include kwargs that are not None, so defaults in CacheSettings are used
    filtered = {k: v for k, v in kwargs.items() if v is not None}
    return CacheSettings(**filtered)
