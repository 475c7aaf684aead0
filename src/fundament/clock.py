"""
Timer facilities driving the scheduler.

``ThreadingClock`` runs real timers on daemon threads. ``ManualClock`` only
moves when told to, which makes refresh cycles deterministic in tests and
simulations.
"""

import heapq
import itertools
import logging
import threading
from typing import Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)


class TimerHandle:
    """
    Handle returned by a clock; cancelling it stops any further fires.
    """

    def __init__(self, name: str = ""):
        self.name = name
        self._cancelled = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()


class Clock:
    """
    Base class for clocks.
    """

    def call_every(
        self, interval: float, callback: Callable[[], None], name: str = ""
    ) -> TimerHandle:
        """
        Call ``callback`` every ``interval`` seconds, first after one interval.
        """
        raise NotImplementedError("Subclasses must implement call_every")

    def call_later(
        self, delay: float, callback: Callable[[], None], name: str = ""
    ) -> TimerHandle:
        """
        Call ``callback`` once after ``delay`` seconds.
        """
        raise NotImplementedError("Subclasses must implement call_later")


def _run_guarded(name: str, callback: Callable[[], None]) -> None:
    try:
        callback()
    except Exception:
        logger.exception(f"Timer '{name}' callback failed")


class _RepeatingThread(threading.Thread):
    def __init__(self, handle: TimerHandle, interval: float, callback):
        super().__init__(name=f"fundament-timer-{handle.name}", daemon=True)
        self.handle = handle
        self.interval = interval
        self.callback = callback

    def run(self) -> None:
        # Event.wait returns True once cancelled, which ends the loop.
        while not self.handle._cancelled.wait(self.interval):
            _run_guarded(self.handle.name, self.callback)


class ThreadingClock(Clock):
    """
    Wall-clock timers, one daemon thread per recurring timer.
    """

    def call_every(self, interval, callback, name=""):
        handle = TimerHandle(name)
        _RepeatingThread(handle, interval, callback).start()
        return handle

    def call_later(self, delay, callback, name=""):
        handle = TimerHandle(name)

        def fire():
            if not handle.cancelled:
                _run_guarded(name, callback)

        timer = threading.Timer(delay, fire)
        timer.daemon = True
        timer.start()
        return handle


class ManualClock(Clock):
    """
    A clock that only advances through ``advance``.

    Due timers fire synchronously on the thread calling ``advance``, in due
    time order and, for equal times, in the order they were scheduled.
    """

    def __init__(self, start: float = 0.0):
        self.now = start
        self._queue: List[Tuple[float, int, TimerHandle, float, Callable]] = []
        self._sequence = itertools.count()
        self._lock = threading.RLock()

    def call_every(self, interval, callback, name=""):
        if interval <= 0:
            raise ValueError("interval must be positive")
        return self._schedule(interval, callback, name, repeat=interval)

    def call_later(self, delay, callback, name=""):
        return self._schedule(delay, callback, name, repeat=0.0)

    def _schedule(
        self,
        delay: float,
        callback: Callable,
        name: str,
        repeat: float,
        handle: Optional[TimerHandle] = None,
        base: Optional[float] = None,
    ) -> TimerHandle:
        handle = handle or TimerHandle(name)
        with self._lock:
            start = self.now if base is None else base
            heapq.heappush(
                self._queue,
                (start + delay, next(self._sequence), handle, repeat, callback),
            )
        return handle

    def pending(self) -> int:
        """Number of timers still scheduled."""
        with self._lock:
            return sum(1 for item in self._queue if not item[2].cancelled)

    def advance(self, seconds: float) -> int:
        """
        Move time forward, firing every timer that falls due.

        Returns:
            Number of timer callbacks fired
        """
        if seconds < 0:
            raise ValueError("Cannot move a clock backwards")

        target = self.now + seconds
        fired = 0
        while True:
            with self._lock:
                if not self._queue or self._queue[0][0] > target:
                    break
                due, _, handle, repeat, callback = heapq.heappop(self._queue)
                if handle.cancelled:
                    continue
                self.now = due
                if repeat:
                    self._schedule(repeat, callback, handle.name, repeat, handle, due)

            _run_guarded(handle.name, callback)
            fired += 1

        with self._lock:
            self.now = target
        return fired
