"""Tests for the logical-clock scheduler."""

import asyncio

import pytest

from cohort.editing.scheduler import ManualScheduler

pytestmark = pytest.mark.anyio


class TestManualScheduler:
    async def test_timers_fire_in_due_order(self) -> None:
        scheduler = ManualScheduler()
        fired: list[str] = []
        scheduler.call_later(2.0, lambda: fired.append("late"))
        scheduler.call_later(1.0, lambda: fired.append("early"))
        scheduler.call_later(1.0, lambda: fired.append("early-second"))

        await scheduler.advance(1.5)
        assert fired == ["early", "early-second"]
        assert scheduler.now == 1.5

        await scheduler.advance(1.0)
        assert fired == ["early", "early-second", "late"]

    async def test_cancelled_timer_never_fires(self) -> None:
        scheduler = ManualScheduler()
        fired: list[int] = []
        handle = scheduler.call_later(1.0, lambda: fired.append(1))
        handle.cancel()

        await scheduler.advance(5.0)
        assert fired == []
        assert scheduler.pending_timers == 0

    async def test_sleep_waits_for_clock(self) -> None:
        scheduler = ManualScheduler()
        woke: list[float] = []

        async def sleeper() -> None:
            await scheduler.sleep(3.0)
            woke.append(scheduler.now)

        task = scheduler.spawn(sleeper())
        await scheduler.advance(2.0)
        assert woke == []

        await scheduler.advance(2.0)
        assert woke == [3.0]
        assert scheduler.sleeps == [3.0]
        assert task.done()

    async def test_run_until_idle(self) -> None:
        scheduler = ManualScheduler()
        fired: list[str] = []

        def chain() -> None:
            fired.append("first")
            scheduler.call_later(10.0, lambda: fired.append("second"))

        scheduler.call_later(1.0, chain)
        await scheduler.run_until_idle()
        assert fired == ["first", "second"]
        assert scheduler.now == 11.0

    async def test_spawned_task_runs_on_advance(self) -> None:
        scheduler = ManualScheduler()
        done = asyncio.Event()

        async def work() -> None:
            done.set()

        scheduler.spawn(work())
        await scheduler.advance(0.0)
        assert done.is_set()
