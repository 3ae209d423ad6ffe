from __future__ import annotations

import json
from typing import Any, Sequence

SEPARATOR = ":"


def _encode(value: Any) -> str:
    return str(value)


def compose_key(name: str, args: Sequence[Any] = ()) -> str:
    """Build the storage key for ``name`` called with ``args``.

    Argument order is significant. With no arguments the key is the bare name, so
    ``clear(name)`` and adapters inspecting keys by hand see the obvious thing.
    """
    if not args:
        return name
    encoded = json.dumps(list(args), separators=(",", ":"), default=_encode)
    return f"{name}{SEPARATOR}{encoded}"


def key_belongs_to(key: str, name: str) -> bool:
    """Whether ``key`` was composed from ``name`` (with or without arguments)."""
    return key == name or key.startswith(f"{name}{SEPARATOR}[")
