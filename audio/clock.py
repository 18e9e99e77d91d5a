"""
Clock/scheduler abstraction for deferred callbacks.

All playback timing is expressed as callbacks scheduled on a Clock:
- ManualClock: virtual time advanced explicitly (tests, offline driving)
- EventLoopClock: asyncio event loop time (live playback)
"""
import asyncio
import heapq
import itertools
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Tuple

FRAME_INTERVAL = 1.0 / 60.0  # Progress tick rate (display frame)


class Clock(ABC):
    """Time source plus one-shot timer scheduling."""

    frame_interval: float = FRAME_INTERVAL

    @abstractmethod
    def now(self) -> float:
        """Current time in seconds."""
        raise NotImplementedError()

    @abstractmethod
    def after(self, delay: float, callback: Callable[[], None]):
        """
        Schedule callback to run once after delay seconds.

        Returns:
            Handle accepted by cancel()
        """
        raise NotImplementedError()

    @abstractmethod
    def cancel(self, handle) -> None:
        """Cancel a pending callback. Cancelling a fired handle is a no-op."""
        raise NotImplementedError()

    def request_frame(self, callback: Callable[[], None]):
        """Schedule callback for the next progress tick."""
        return self.after(self.frame_interval, callback)


class ManualTimer:
    """Pending callback on a ManualClock."""

    __slots__ = ("due", "callback", "cancelled")

    def __init__(self, due: float, callback: Callable[[], None]):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualClock(Clock):
    """
    Deterministic clock that only moves when advanced.

    Callbacks run in due-time order (ties in scheduling order) while
    advance() walks time forward, so a callback sees now() equal to its
    due time.
    """

    def __init__(self, start: float = 0.0, frame_interval: float = FRAME_INTERVAL):
        self._time = start
        self.frame_interval = frame_interval
        self._queue: List[Tuple[float, int, ManualTimer]] = []
        self._sequence = itertools.count()

    def now(self) -> float:
        return self._time

    def after(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(self._time + max(0.0, delay), callback)
        heapq.heappush(self._queue, (timer.due, next(self._sequence), timer))
        return timer

    def cancel(self, handle: Optional[ManualTimer]) -> None:
        if handle is not None:
            handle.cancel()

    @property
    def pending(self) -> int:
        """Number of live (not cancelled) timers."""
        return sum(1 for _, _, timer in self._queue if not timer.cancelled)

    def advance(self, seconds: float):
        """
        Move time forward, firing every callback due on the way.

        Args:
            seconds: Amount of time to advance
        """
        target = self._time + seconds
        while self._queue and self._queue[0][0] <= target:
            due, _, timer = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            self._time = due
            timer.callback()
        self._time = target


class EventLoopClock(Clock):
    """Clock backed by an asyncio event loop (loop.time / call_later)."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None,
                 frame_interval: float = FRAME_INTERVAL):
        self._loop = loop
        self.frame_interval = frame_interval

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now(self) -> float:
        return self.loop.time()

    def after(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self.loop.call_later(max(0.0, delay), callback)

    def cancel(self, handle: Optional[asyncio.TimerHandle]) -> None:
        if handle is not None:
            handle.cancel()
