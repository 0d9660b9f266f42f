"""
Clocks and timers for the preview loop.

``EventLoopScheduler`` drives previews from a running asyncio loop.
``ManualScheduler`` keeps virtual time that only moves when ``advance`` is
called, so preview timing can be stepped deterministically.
"""

import asyncio
import heapq
import itertools
from typing import Any, Callable, List, Optional, Protocol, Set, Tuple

# Display refresh interval used between preview ticks
TICK_INTERVAL_MS = 16


class Scheduler(Protocol):
    def now(self) -> float:
        """Current time in milliseconds."""

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> Any:
        """Run ``callback`` after ``delay_ms``; returns a cancellable handle."""

    def cancel(self, handle: Any) -> None:
        ...


class EventLoopScheduler:
    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now(self) -> float:
        return self.loop.time() * 1000

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self.loop.call_later(delay_ms / 1000, callback)

    def cancel(self, handle: asyncio.TimerHandle) -> None:
        handle.cancel()


class ManualScheduler:
    """Virtual-time scheduler for tests and offline stepping."""

    def __init__(self, start_ms: float = 0.0):
        self._now = start_ms
        self._timers: List[Tuple[float, int, Callable[[], None]]] = []
        self._cancelled: Set[int] = set()
        self._ids = itertools.count()

    def now(self) -> float:
        return self._now

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> int:
        handle = next(self._ids)
        heapq.heappush(self._timers, (self._now + max(delay_ms, 0), handle, callback))
        return handle

    def cancel(self, handle: int) -> None:
        self._cancelled.add(handle)

    @property
    def pending(self) -> int:
        return sum(1 for _, handle, _ in self._timers if handle not in self._cancelled)

    def advance(self, ms: float) -> int:
        """Move time forward, firing due timers in order. Returns how many fired."""
        target = self._now + ms
        fired = 0
        while self._timers and self._timers[0][0] <= target:
            due, handle, callback = heapq.heappop(self._timers)
            if handle in self._cancelled:
                self._cancelled.discard(handle)
                continue
            self._now = due
            callback()
            fired += 1
        self._now = target
        return fired
