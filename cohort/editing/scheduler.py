"""Timer and task scheduling for the editing engine.

The engine never touches the event loop clock directly. ``AsyncioScheduler``
runs on the real loop; ``ManualScheduler`` keeps a logical clock that only
moves when ``advance()`` is awaited, so debounce windows and retry backoff
can be stepped through deterministically.
"""

import asyncio
import heapq
import itertools
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, field
from typing import Any, Protocol

# Event-loop passes made after each fired timer so spawned tasks settle.
_DRAIN_ROUNDS = 25


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...

    async def sleep(self, delay: float) -> None: ...

    def spawn(self, coro: Coroutine[Any, Any, None]) -> "asyncio.Task[None]": ...


class AsyncioScheduler:
    """Scheduler backed by the running asyncio loop.

    Must be used from inside a running loop.
    """

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)

    async def sleep(self, delay: float) -> None:
        await asyncio.sleep(delay)

    def spawn(self, coro: Coroutine[Any, Any, None]) -> "asyncio.Task[None]":
        return asyncio.get_running_loop().create_task(coro)


@dataclass(order=True)
class _ManualTimer:
    due: float
    seq: int
    callback: Callable[[], None] = field(compare=False)
    cancelled: bool = field(default=False, compare=False)

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Logical-clock scheduler for tests and simulations.

    Timers fire in due order, ties broken by registration order. Every
    ``sleep()`` delay is recorded in ``sleeps``.
    """

    def __init__(self) -> None:
        self._now = 0.0
        self._timers: list[_ManualTimer] = []
        self._seq = itertools.count()
        self._tasks: set[asyncio.Task[None]] = set()
        self.sleeps: list[float] = []

    @property
    def now(self) -> float:
        return self._now

    @property
    def pending_timers(self) -> int:
        return sum(1 for timer in self._timers if not timer.cancelled)

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        timer = _ManualTimer(self._now + max(delay, 0.0), next(self._seq), callback)
        heapq.heappush(self._timers, timer)
        return timer

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        future = asyncio.get_running_loop().create_future()

        def _wake() -> None:
            if not future.done():
                future.set_result(None)

        self.call_later(delay, _wake)
        await future

    def spawn(self, coro: Coroutine[Any, Any, None]) -> "asyncio.Task[None]":
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def advance(self, seconds: float) -> None:
        """Move the clock forward, firing every timer that falls due."""
        target = self._now + seconds
        await self._drain()
        while True:
            timer = self._pop_due(target)
            if timer is None:
                break
            self._now = timer.due
            timer.callback()
            await self._drain()
        self._now = target

    async def run_until_idle(self, *, limit: float = 3600.0) -> None:
        """Fire timers until none remain or ``limit`` seconds have passed."""
        deadline = self._now + limit
        await self._drain()
        while self._now < deadline:
            timer = self._pop_due(deadline)
            if timer is None:
                break
            self._now = timer.due
            timer.callback()
            await self._drain()

    def _pop_due(self, until: float) -> _ManualTimer | None:
        while self._timers:
            timer = self._timers[0]
            if timer.cancelled:
                heapq.heappop(self._timers)
                continue
            if timer.due > until:
                return None
            return heapq.heappop(self._timers)
        return None

    async def _drain(self) -> None:
        for _ in range(_DRAIN_ROUNDS):
            await asyncio.sleep(0)
