"""Unit tests for defcache.logging."""

from __future__ import annotations

import json
import logging

import pytest

from defcache.logging import JsonFormatter, _is_prod, _read_format, _read_level, setup_logging


def _record(msg: str = "Test message", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="defcache.engine",
        level=logging.INFO,
        pathname="engine.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for k, v in extra.items():
        setattr(record, k, v)
    return record


class TestJsonFormatter:
    def test_formats_as_json(self):
        payload = json.loads(JsonFormatter().format(_record()))
        assert payload["message"] == "Test message"
        assert payload["level"] == "INFO"
        assert payload["logger"] == "defcache.engine"
        assert "cache" not in payload

    def test_includes_cache_context(self):
        record = _record(cache_name="location", cache_key='location:["remy"]', cache_store="InMemoryStore")
        payload = json.loads(JsonFormatter().format(record))
        assert payload["cache"] == {
            "name": "location",
            "key": 'location:["remy"]',
            "store": "InMemoryStore",
        }

    def test_includes_exception(self):
        try:
            raise ValueError("bad value")
        except ValueError:
            import sys

            record = _record()
            record.exc_info = sys.exc_info()
        payload = json.loads(JsonFormatter().format(record))
        assert payload["error"]["type"] == "ValueError"
        assert payload["error"]["message"] == "bad value"
        assert "Traceback" in payload["error"]["stack"]


class TestLevels:
    @pytest.fixture(autouse=True)
    def _env(self, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        monkeypatch.delenv("LOG_FORMAT", raising=False)
        monkeypatch.delenv("DEFCACHE_ENV", raising=False)
        monkeypatch.delenv("APP_ENV", raising=False)

    def test_explicit_level(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "warning")
        assert _read_level() == "WARNING"

    def test_prod_defaults(self, monkeypatch):
        monkeypatch.setenv("DEFCACHE_ENV", "prod")
        assert _read_level() == "INFO"
        assert _read_format() == "json"

    def test_local_defaults(self, monkeypatch):
        monkeypatch.setenv("DEFCACHE_ENV", "local")
        assert _read_level() == "DEBUG"
        assert _read_format() == "plain"

    def test_setup_logging_applies_level(self):
        root = logging.getLogger()
        saved = root.level, list(root.handlers)
        try:
            setup_logging(level="error", fmt="json")
            assert root.level == logging.ERROR
            assert isinstance(root.handlers[0].formatter, JsonFormatter)
        finally:
            root.setLevel(saved[0])
            root.handlers[:] = saved[1]


@pytest.mark.parametrize(
    "defcache_env, app_env, expected",
    [
        ("production", None, True),
        (" Prod ", None, True),
        (None, "prod", True),
        ("local", "prod", False),
        (None, "staging", False),
        (None, None, False),
    ],
)
def test_is_prod(monkeypatch, defcache_env, app_env, expected):
    for var, value in (("DEFCACHE_ENV", defcache_env), ("APP_ENV", app_env)):
        if value is None:
            monkeypatch.delenv(var, raising=False)
        else:
            monkeypatch.setenv(var, value)
    assert _is_prod() is expected
