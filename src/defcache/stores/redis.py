from __future__ import annotations

import json
import math
from typing import Any, Optional

try:
    from redis import asyncio as redis
except Exception:  # pragma: no cover
    redis = None  # type: ignore


def _seconds(ttl: Optional[float]) -> Optional[int]:
    # redis EX takes whole seconds; never round a positive hint down to "no expiry"
    if not ttl:
        return None
    return max(1, math.ceil(ttl))


class RedisStore:
    """Redis-backed adapter storing JSON-encoded values.

    The TTL hint becomes ``EX`` and ``touch`` re-applies it, so the server-side
    expiry slides together with the engine's idle timer.
    """

    def __init__(self, url: str, namespace: str = "", *, client: Any = None):
        if client is None:
            if redis is None:  # pragma: no cover
                raise RuntimeError(
                    "redis package not installed. Install 'redis>=5' to use RedisStore."
                )
            client = redis.from_url(url, decode_responses=True)
        self._pool = client
        self._url = url
        self._ns = (namespace + ":") if namespace else ""

    def _k(self, key: str) -> str:
        return self._ns + key

    async def get(self, key: str) -> Optional[Any]:
        val = await self._pool.get(self._k(key))
        return json.loads(val) if val is not None else None

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        await self._pool.set(self._k(key), json.dumps(value), ex=_seconds(ttl))

    async def delete(self, key: str) -> None:
        await self._pool.delete(self._k(key))

    async def touch(self, key: str, ttl: Optional[float]) -> None:
        seconds = _seconds(ttl)
        if seconds is not None:
            await self._pool.expire(self._k(key), seconds)

    async def ping(self) -> bool:
        return bool(await self._pool.ping())

    async def close(self) -> None:
        await self._pool.aclose()

    def __str__(self) -> str:
        return f"RedisStore({self._url})"
