from __future__ import annotations

import asyncio

import pytest

from defcache.scheduler import Scheduler, TimerKind

pytestmark = pytest.mark.cache


@pytest.mark.asyncio
async def test_timer_fires_once():
    fired = []

    async def task():
        fired.append("ttl")

    s = Scheduler()
    s.arm(TimerKind.TTL, "k", 0.01, task)
    assert s.is_armed(TimerKind.TTL, "k")

    await asyncio.sleep(0.05)
    assert fired == ["ttl"]
    assert not s.is_armed(TimerKind.TTL, "k")


@pytest.mark.asyncio
async def test_rearm_replaces_existing_timer():
    fired = []

    async def first():
        fired.append("first")

    async def second():
        fired.append("second")

    s = Scheduler()
    s.arm(TimerKind.TTL, "k", 0.02, first)
    s.arm(TimerKind.TTL, "k", 0.04, second)
    assert len(s) == 1

    await asyncio.sleep(0.08)
    assert fired == ["second"]


@pytest.mark.asyncio
async def test_kinds_are_independent():
    s = Scheduler()

    async def noop():
        return None

    s.arm(TimerKind.TTL, "k", 1, noop)
    s.arm(TimerKind.TTR, "k", 1, noop)
    assert s.keys(TimerKind.TTL) == ["k"]
    assert s.keys(TimerKind.TTR) == ["k"]

    s.cancel("k", (TimerKind.TTR,))
    assert s.is_armed(TimerKind.TTL, "k")
    assert not s.is_armed(TimerKind.TTR, "k")
    s.cancel_all()
    assert len(s) == 0


@pytest.mark.asyncio
async def test_cancel_stops_running_callback():
    started = asyncio.Event()
    finished = []

    async def slow():
        started.set()
        await asyncio.sleep(1)
        finished.append(True)

    s = Scheduler()
    s.arm(TimerKind.TTR, "k", 0, slow)
    await started.wait()
    s.cancel("k")
    await asyncio.sleep(0.01)
    assert finished == []
    assert not s.is_armed(TimerKind.TTR, "k")


@pytest.mark.asyncio
async def test_failing_callback_is_logged(caplog):
    async def broken():
        raise RuntimeError("boom")

    s = Scheduler()
    s.arm(TimerKind.TTL, "k", 0, broken)
    await asyncio.sleep(0.02)
    assert "ttl timer for 'k' failed" in caplog.text
