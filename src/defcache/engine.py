from __future__ import annotations

import asyncio
import inspect
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Set, Tuple

from .definitions import (
    Definition,
    DefinitionLike,
    DefinitionRegistry,
    ProducerKind,
    coerce_definition,
)
from .exceptions import DefinitionNotFoundError, ProducerError
from .keys import compose_key, key_belongs_to
from .scheduler import Scheduler, TimerKind
from .settings import CacheSettings, get_cache_settings
from .stores import StoreAdapter, store_from_settings

logger = logging.getLogger(__name__)

Listener = Callable[..., Any]


@dataclass(frozen=True)
class _Entry:
    name: str
    args: Tuple[Any, ...]


class _Done:
    """Completion callback handed to callback-style producers.

    Safe to call from any thread; only the first call counts.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, future: asyncio.Future, name: str):
        self._loop = loop
        self._future = future
        self._name = name
        self._lock = threading.Lock()
        self.called = False

    def claim(self) -> bool:
        with self._lock:
            if self.called:
                return False
            self.called = True
            return True

    def __call__(self, error: Any = None, value: Any = None) -> None:
        if not self.claim():
            logger.warning("producer for %r completed more than once; ignoring", self._name)
            return
        self._loop.call_soon_threadsafe(self._settle, error, value)

    def _settle(self, error: Any, value: Any) -> None:
        if self._future.done():
            return
        if isinstance(error, BaseException):
            self._future.set_exception(error)
        elif error:
            self._future.set_exception(ProducerError(error))
        else:
            self._future.set_result(value)


class Cache:
    """Definition-driven memoization cache.

    Producers are registered by name with :meth:`define` and read back with
    :meth:`get`. Values live only in the store adapter; the instance keeps the
    definitions, the keys it has written, their timers and in-flight
    recomputations.
    """

    def __init__(
        self,
        store: Optional[StoreAdapter] = None,
        *,
        settings: Optional[CacheSettings] = None,
    ):
        self._settings = settings or get_cache_settings()
        self._store: StoreAdapter = self._resolve_store(store)
        self._definitions = DefinitionRegistry()
        self._scheduler = Scheduler()
        self._entries: Dict[str, _Entry] = {}
        self._inflight: Dict[str, asyncio.Future] = {}
        self._orphans: Set[str] = set()
        self._listeners: Dict[str, List[Listener]] = {}

    def __repr__(self) -> str:
        return f"<Cache store={self._store} definitions={len(self._definitions)} entries={len(self._entries)}>"

    @property
    def store(self) -> StoreAdapter:
        return self._store

    @property
    def settings(self) -> CacheSettings:
        return self._settings

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _resolve_store(self, store: Any) -> StoreAdapter:
        if store is None or store is False:
            return store_from_settings(self._settings)
        return store

    def configure(
        self,
        store: Optional[StoreAdapter] = None,
        *,
        settings: Optional[CacheSettings] = None,
    ) -> "Cache":
        """Attach a new store (and/or settings), then emit ``connect``.

        Timers and tracked keys belong to the previous store and are dropped;
        nothing scheduled earlier will touch the old adapter again.
        """
        if settings is not None:
            self._settings = settings
        previous = self._store
        self._scheduler.cancel_all()
        self._entries.clear()
        self._orphans.clear()
        self._inflight.clear()
        self._store = self._resolve_store(store)
        logger.info(
            "cache store configured: %s (was %s)",
            self._store,
            previous,
            extra={"cache_store": str(self._store)},
        )
        self.emit("connect", self._store)
        return self

    def reset(self) -> "Cache":
        """Drop every definition, timer and entry; returns ``self`` for chaining.

        Stored values are deleted before the next operation that reaches the
        store, so ``await cache.reset().clear()`` leaves an empty store.
        """
        self._scheduler.cancel_all()
        self._definitions.clear()
        self._orphans.update(self._entries)
        self._entries.clear()
        self._inflight.clear()
        logger.debug("cache reset (%d keys pending eviction)", len(self._orphans))
        return self

    async def wait_ready(self, timeout: Optional[float] = None) -> None:
        store = self._store
        ping = getattr(store, "ping", None)
        if ping is None:
            return
        timeout = self._settings.ready_timeout if timeout is None else timeout

        async def _until_ready() -> None:
            while True:
                try:
                    if await ping():
                        return
                except Exception as exc:
                    logger.debug("store %s not ready: %s", store, exc)
                await asyncio.sleep(0.1)

        try:
            await asyncio.wait_for(_until_ready(), timeout=timeout)
        except asyncio.TimeoutError:
            raise TimeoutError(f"store {store} not ready after {timeout}s") from None

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def on(self, event: str, listener: Listener) -> Listener:
        self._listeners.setdefault(event, []).append(listener)
        return listener

    def off(self, event: str, listener: Listener) -> None:
        listeners = self._listeners.get(event, [])
        if listener in listeners:
            listeners.remove(listener)

    def emit(self, event: str, *payload: Any) -> None:
        for listener in list(self._listeners.get(event, [])):
            try:
                listener(*payload)
            except Exception:
                logger.exception("listener for %r event failed", event)

    # ------------------------------------------------------------------
    # Definitions
    # ------------------------------------------------------------------

    def define(
        self,
        source: DefinitionLike,
        producer: Optional[Callable[..., Any]] = None,
        **options: Any,
    ) -> Definition:
        """Register or replace a named producer.

        Accepts ``define(name, producer, ttl=..., ttr=...)``, a
        :class:`Definition`, or a mapping with ``name``/``update``/``ttl``/``ttr``.
        Replacing a definition stops the background refresh of the old one.
        """
        definition = coerce_definition(source, producer, **options)
        previous = self._definitions.define(definition)
        if previous is not None:
            for key in self._keys_for(definition.name):
                self._scheduler.cancel(key, (TimerKind.TTR,))
            for key in [k for k in self._inflight if key_belongs_to(k, definition.name)]:
                # still running under the old producer; it finishes without writing
                del self._inflight[key]
        return definition

    def lookup(self, name: str) -> Optional[Definition]:
        return self._definitions.lookup(name)

    def _require(self, name: str) -> Definition:
        definition = self._definitions.lookup(name)
        if definition is None:
            raise DefinitionNotFoundError(name)
        return definition

    async def destroy(self, name: str) -> None:
        """Remove ``name``'s definition and evict every value cached under it."""
        self._definitions.remove(name)
        await self._sweep()
        keys = set(self._keys_for(name))
        keys.add(compose_key(name))
        await self._evict(keys)
        logger.debug("destroyed definition %r", name, extra={"cache_name": name})

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, name: str, *args: Any) -> Any:
        """Return the cached value for ``name(*args)``, producing it on a miss.

        The definition is checked before the store is read: an instance that
        shares a store with another one raises :class:`DefinitionNotFoundError`
        for names it has not defined itself, even when a value is stored.
        """
        await self._sweep()
        definition = self._require(name)
        key = compose_key(name, args)
        store = self._store
        value = await store.get(key)
        if value is None:
            logger.debug("miss %r", key, extra={"cache_name": name, "cache_key": key})
            return await self._recompute(definition, key, args)

        self._track(key, name, args)
        if definition.ttl:
            self._arm_ttl(key, definition.ttl)
            touch = getattr(store, "touch", None)
            if touch is not None:
                await touch(key, definition.ttl)
        return value

    async def update(self, name: str, *args: Any) -> Any:
        """Recompute ``name(*args)`` regardless of what is cached."""
        await self._sweep()
        definition = self._require(name)
        return await self._recompute(definition, compose_key(name, args), args)

    async def clear(self, name: Optional[str] = None) -> bool:
        """Evict cached values (all of them, or only ``name``'s) keeping definitions.

        Returns whether anything was cached before the call.
        """
        await self._sweep()
        if name is None:
            keys = set(self._entries)
            keys.update(compose_key(n) for n in self._definitions.names())
        else:
            keys = set(self._keys_for(name))
            keys.add(compose_key(name))
        return await self._evict(keys)

    def tracked_keys(self, name: Optional[str] = None) -> List[str]:
        if name is None:
            return sorted(self._entries)
        return sorted(self._keys_for(name))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _keys_for(self, name: str) -> List[str]:
        return [key for key, entry in self._entries.items() if entry.name == name]

    def _track(self, key: str, name: str, args: Sequence[Any]) -> None:
        if key not in self._entries:
            self._entries[key] = _Entry(name=name, args=tuple(args))

    async def _sweep(self) -> None:
        # values left behind by reset(); re-tracked keys are live again
        while self._orphans:
            key = next(iter(self._orphans))
            if key not in self._entries:
                await self._store.delete(key)
            self._orphans.discard(key)

    async def _evict(self, keys: Set[str]) -> bool:
        store = self._store
        found = False
        for key in sorted(keys):
            self._scheduler.cancel(key)
            self._inflight.pop(key, None)
            self._entries.pop(key, None)
            if await store.get(key) is not None:
                found = True
            await store.delete(key)
        return found

    async def _recompute(
        self,
        definition: Definition,
        key: str,
        args: Sequence[Any],
        *,
        arm_ttl: bool = True,
    ) -> Any:
        """Join the recomputation running for ``key`` or start one.

        The work runs as its own task and callers only ever await it through
        ``shield``, so cancelling a waiter (or a refresh timer) never cancels the
        result the other waiters are waiting for.
        """
        pending = self._inflight.get(key)
        if pending is None:
            pending = asyncio.get_running_loop().create_task(
                self._produce_and_store(definition, key, args, arm_ttl=arm_ttl)
            )
            self._inflight[key] = pending
            pending.add_done_callback(lambda task: self._release(key, task))
        return await asyncio.shield(pending)

    async def _produce_and_store(
        self,
        definition: Definition,
        key: str,
        args: Sequence[Any],
        *,
        arm_ttl: bool,
    ) -> Any:
        store = self._store
        value = await self._produce(definition, args)
        if not self._owns(key, definition, store):
            logger.debug("discarding result for %r: evicted or definition/store changed", key)
            return value
        await store.set(key, value, definition.ttl)
        if not self._owns(key, definition, store):
            # evicted while the write was in flight
            await store.delete(key)
            return value
        self._track(key, definition.name, args)
        self._arm(definition, key, args, arm_ttl=arm_ttl)
        return value

    def _owns(self, key: str, definition: Definition, store: StoreAdapter) -> bool:
        return (
            self._inflight.get(key) is asyncio.current_task()
            and self._definitions.lookup(definition.name) is definition
            and self._store is store
        )

    def _release(self, key: str, task: asyncio.Future) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    async def _produce(self, definition: Definition, args: Sequence[Any]) -> Any:
        producer = definition.producer
        logger.debug("producing %r%r", definition.name, tuple(args), extra={"cache_name": definition.name})
        if definition.kind is ProducerKind.COROUTINE:
            return await producer(*args)
        if definition.takes_callback(len(args)):
            loop = asyncio.get_running_loop()
            future = loop.create_future()
            done = _Done(loop, future, definition.name)
            try:
                producer(*args, done)
            except Exception:
                if done.claim():
                    raise
                logger.warning(
                    "producer for %r raised after completing",
                    definition.name,
                    exc_info=True,
                )
            return await future
        result = producer(*args)
        if inspect.isawaitable(result):
            result = await result
        return result

    def _arm(self, definition: Definition, key: str, args: Sequence[Any], *, arm_ttl: bool) -> None:
        if definition.ttl and arm_ttl:
            self._arm_ttl(key, definition.ttl)
        if definition.ttr and not self._scheduler.is_armed(TimerKind.TTR, key):
            self._arm_ttr(definition, key, args)

    def _arm_ttl(self, key: str, ttl: float) -> None:
        self._scheduler.arm(TimerKind.TTL, key, ttl, lambda: self._expire(key))

    def _arm_ttr(self, definition: Definition, key: str, args: Sequence[Any]) -> None:
        self._scheduler.arm(
            TimerKind.TTR,
            key,
            definition.ttr,
            lambda: self._refresh(definition, key, args),
        )

    async def _expire(self, key: str) -> None:
        self._scheduler.cancel(key, (TimerKind.TTR,))
        self._inflight.pop(key, None)
        self._entries.pop(key, None)
        await self._store.delete(key)
        logger.debug("expired %r", key, extra={"cache_key": key})

    async def _refresh(self, definition: Definition, key: str, args: Sequence[Any]) -> None:
        if self._definitions.lookup(definition.name) is not definition or key not in self._entries:
            return
        try:
            await self._recompute(definition, key, args, arm_ttl=False)
        except Exception:
            logger.warning(
                "background refresh of %r failed; keeping previous value",
                key,
                exc_info=True,
                extra={"cache_name": definition.name, "cache_key": key},
            )
        if self._definitions.lookup(definition.name) is definition and key in self._entries:
            self._arm_ttr(definition, key, args)
