from __future__ import annotations

import threading
from typing import Any, Optional

from .engine import Cache

_default: Optional[Cache] = None
_default_lock = threading.Lock()


def get_default_cache() -> Cache:
    """Return the process-wide cache, creating it on first use."""
    global _default
    if _default is None:
        with _default_lock:
            if _default is None:
                _default = Cache()
    return _default


def cache(store: Any = None, **options: Any) -> Cache:
    """
    Entry point.

    ``cache()`` returns the shared default instance. Any configuration
    (``cache(store=...)``, ``cache(settings=...)``) builds a new, independent
    instance instead; it shares nothing with the default one except, if you
    pass the same object, the store adapter.
    """
    if store is None and not options:
        return get_default_cache()
    return Cache(store=store, **options)
