from __future__ import annotations

import inspect
import logging
import numbers
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union

from .exceptions import InvalidDefinitionError

logger = logging.getLogger(__name__)

# Trailing positional parameter names that mark a completion-callback producer.
CALLBACK_PARAM_NAMES = frozenset({"done", "callback", "cb", "next"})


class ProducerKind(StrEnum):
    SYNC = "sync"
    COROUTINE = "coroutine"
    CALLBACK = "callback"


def validate_duration(value: Any, *, field_name: str) -> Optional[float]:
    """Normalize a TTL/TTR value to seconds; ``None``/``0`` disable it."""
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise InvalidDefinitionError(f"{field_name} must be a number of seconds, got {value!r}")
    if value < 0:
        raise InvalidDefinitionError(f"{field_name} must be >= 0, got {value!r}")
    return float(value) or None


def detect_kind(producer: Callable[..., Any], style: Optional[str] = None) -> Tuple[ProducerKind, Optional[int]]:
    """Classify ``producer`` once, at registration.

    Returns the kind plus the number of required positional parameters. A
    plain function whose arity is one more than the caller's arguments is
    called back-style (see :meth:`Definition.takes_callback`); ``arity`` is
    ``None`` when it cannot decide that (explicit ``style``, ``*args``, no
    signature).
    """
    if style is not None:
        try:
            return ProducerKind(style), None
        except ValueError:
            raise InvalidDefinitionError(f"unknown producer style {style!r}") from None
    if inspect.iscoroutinefunction(producer):
        return ProducerKind.COROUTINE, None
    try:
        params = list(inspect.signature(producer).parameters.values())
    except (TypeError, ValueError):
        # builtins without a signature
        return ProducerKind.SYNC, None
    if any(p.kind is inspect.Parameter.VAR_POSITIONAL for p in params):
        arity = None
    else:
        arity = sum(
            1 for p in params
            if p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
            and p.default is inspect.Parameter.empty
        )
    positional = [
        p for p in params
        if p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
    ]
    if positional and positional[-1].name in CALLBACK_PARAM_NAMES:
        return ProducerKind.CALLBACK, arity
    return ProducerKind.SYNC, arity


@dataclass(frozen=True, eq=False)
class Definition:
    """A named producer plus its expiry (``ttl``) and refresh (``ttr``) policy.

    Instances compare by identity: a redefinition of the same name is a new
    definition even when every field matches.
    """

    name: str
    producer: Callable[..., Any]
    ttl: Optional[float] = None
    ttr: Optional[float] = None
    kind: ProducerKind = field(default=ProducerKind.SYNC)
    arity: Optional[int] = None

    def takes_callback(self, nargs: int) -> bool:
        """Whether a call with ``nargs`` caller arguments hands the producer ``done``."""
        if self.kind is ProducerKind.CALLBACK:
            return True
        return self.kind is ProducerKind.SYNC and self.arity == nargs + 1

    @classmethod
    def create(
        cls,
        name: str,
        producer: Callable[..., Any],
        *,
        ttl: Any = None,
        ttr: Any = None,
        style: Optional[str] = None,
    ) -> "Definition":
        if not isinstance(name, str) or not name:
            raise InvalidDefinitionError(f"definition name must be a non-empty string, got {name!r}")
        if not callable(producer):
            raise InvalidDefinitionError(f"producer for '{name}' is not callable")
        kind, arity = detect_kind(producer, style)
        return cls(
            name=name,
            producer=producer,
            ttl=validate_duration(ttl, field_name="ttl"),
            ttr=validate_duration(ttr, field_name="ttr"),
            kind=kind,
            arity=arity,
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Definition":
        producer = data.get("update", data.get("producer"))
        unknown = set(data) - {"name", "update", "producer", "ttl", "ttr", "style"}
        if unknown:
            raise InvalidDefinitionError(f"unknown definition fields: {sorted(unknown)}")
        return cls.create(
            data.get("name"),
            producer,
            ttl=data.get("ttl"),
            ttr=data.get("ttr"),
            style=data.get("style"),
        )


DefinitionLike = Union[str, Definition, Mapping[str, Any]]


def coerce_definition(
    source: DefinitionLike,
    producer: Optional[Callable[..., Any]] = None,
    **options: Any,
) -> Definition:
    if isinstance(source, Definition):
        if producer is not None or options:
            raise InvalidDefinitionError("extra arguments given alongside a Definition")
        return source
    if isinstance(source, Mapping):
        if producer is not None or options:
            raise InvalidDefinitionError("extra arguments given alongside a definition mapping")
        return Definition.from_mapping(source)
    return Definition.create(source, producer, **options)


class DefinitionRegistry:
    def __init__(self):
        self._defs: Dict[str, Definition] = {}

    def define(self, definition: Definition) -> Optional[Definition]:
        """Register ``definition``; returns the one it superseded, if any."""
        previous = self._defs.get(definition.name)
        self._defs[definition.name] = definition
        logger.debug(
            "defined %r (kind=%s ttl=%s ttr=%s)%s",
            definition.name,
            definition.kind,
            definition.ttl,
            definition.ttr,
            " replacing previous definition" if previous is not None else "",
        )
        return previous

    def lookup(self, name: str) -> Optional[Definition]:
        return self._defs.get(name)

    def remove(self, name: str) -> Optional[Definition]:
        return self._defs.pop(name, None)

    def clear(self) -> None:
        self._defs.clear()

    def names(self) -> list[str]:
        return list(self._defs)

    def __contains__(self, name: object) -> bool:
        return name in self._defs

    def __len__(self) -> int:
        return len(self._defs)
