from __future__ import annotations

from typing import Any


class DefCacheError(Exception):
    """Base class for errors raised by defcache itself."""


class DefinitionNotFoundError(DefCacheError, LookupError):
    def __init__(self, name: str):
        super().__init__(f"No definition found for '{name}'")
        self.name = name


class InvalidDefinitionError(DefCacheError, ValueError):
    pass


class ProducerError(DefCacheError):
    """Wraps a non-exception error value handed to a producer's ``done`` callback."""

    def __init__(self, error: Any):
        super().__init__(f"Producer reported an error: {error!r}")
        self.error = error
