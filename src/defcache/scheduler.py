from __future__ import annotations

import asyncio
import logging
from enum import StrEnum
from typing import Awaitable, Callable, Dict, Iterable, Optional, Set, Tuple

logger = logging.getLogger(__name__)

TimerCallback = Callable[[], Awaitable[None]]


class TimerKind(StrEnum):
    TTL = "ttl"
    TTR = "ttr"


class Scheduler:
    """Owns the TTL and TTR timers of one cache instance, indexed by cache key.

    At most one timer of each kind is live per key. ``arm`` cancels the current
    handle before scheduling a new one, and a fired timer runs its callback as a
    tracked task so ``cancel``/``cancel_all`` also stop work that already started.
    """

    def __init__(self):
        self._handles: Dict[Tuple[TimerKind, str], asyncio.TimerHandle] = {}
        self._tasks: Dict[Tuple[TimerKind, str], asyncio.Task] = {}
        self._orphan_tasks: Set[asyncio.Task] = set()

    def arm(self, kind: TimerKind, key: str, delay: float, callback: TimerCallback) -> None:
        slot = (kind, key)
        self._cancel_handle(slot)
        loop = asyncio.get_running_loop()
        self._handles[slot] = loop.call_later(delay, self._fire, slot, callback)

    def is_armed(self, kind: TimerKind, key: str) -> bool:
        slot = (kind, key)
        return slot in self._handles or slot in self._tasks

    def cancel(self, key: str, kinds: Iterable[TimerKind] = (TimerKind.TTL, TimerKind.TTR)) -> None:
        for kind in kinds:
            slot = (kind, key)
            self._cancel_handle(slot)
            task = self._tasks.pop(slot, None)
            # a callback never cancels itself; it is finishing and re-arms or exits
            if task is not None and task is not _current_task() and not task.get_loop().is_closed():
                task.cancel()

    def cancel_all(self) -> None:
        for handle in self._handles.values():
            handle.cancel()
        self._handles.clear()
        current = _current_task()
        for task in list(self._tasks.values()) + list(self._orphan_tasks):
            if task is not current and not task.get_loop().is_closed():
                task.cancel()
        self._tasks.clear()
        self._orphan_tasks.clear()

    def keys(self, kind: TimerKind) -> list[str]:
        return sorted({key for k, key in list(self._handles) + list(self._tasks) if k is kind})

    def __len__(self) -> int:
        return len(self._handles)

    def _cancel_handle(self, slot: Tuple[TimerKind, str]) -> None:
        handle = self._handles.pop(slot, None)
        if handle is not None:
            handle.cancel()

    def _fire(self, slot: Tuple[TimerKind, str], callback: TimerCallback) -> None:
        self._handles.pop(slot, None)
        previous = self._tasks.pop(slot, None)
        if previous is not None and not previous.done():
            # still running from the last tick; let it finish untracked by slot
            self._orphan_tasks.add(previous)
            previous.add_done_callback(self._orphan_tasks.discard)
        task = asyncio.get_running_loop().create_task(self._run(slot, callback))
        self._tasks[slot] = task

    async def _run(self, slot: Tuple[TimerKind, str], callback: TimerCallback) -> None:
        kind, key = slot
        try:
            await callback()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.warning("%s timer for %r failed", kind, key, exc_info=True)
        finally:
            if self._tasks.get(slot) is asyncio.current_task():
                del self._tasks[slot]


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None
