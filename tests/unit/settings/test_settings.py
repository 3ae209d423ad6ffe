from __future__ import annotations

import pytest
from pydantic import ValidationError

from defcache.settings import CacheSettings, get_cache_settings


@pytest.fixture(autouse=True)
def _clear_caches():
    get_cache_settings.cache_clear()
    yield
    get_cache_settings.cache_clear()


def test_defaults(monkeypatch):
    for var in ("DEFCACHE_STORE", "DEFCACHE_REDIS_URL", "DEFCACHE_NAMESPACE"):
        monkeypatch.delenv(var, raising=False)
    s = CacheSettings(_env_file=None)
    assert s.store == "memory"
    assert s.redis_url is None
    assert s.namespace == ""


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("DEFCACHE_STORE", "redis")
    monkeypatch.setenv("DEFCACHE_REDIS_URL", "redis://cache:6379/1")
    monkeypatch.setenv("DEFCACHE_NAMESPACE", "svc")
    s = get_cache_settings()
    assert (s.store, s.redis_url, s.namespace) == ("redis", "redis://cache:6379/1", "svc")


def test_none_overrides_fall_back_to_defaults(monkeypatch):
    monkeypatch.delenv("DEFCACHE_STORE", raising=False)
    s = get_cache_settings(store=None, namespace="x")
    assert s.store == "memory"
    assert s.namespace == "x"


def test_invalid_store_rejected():
    with pytest.raises(ValidationError):
        CacheSettings(store="memcached")

