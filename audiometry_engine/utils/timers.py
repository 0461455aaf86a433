"""
Cancellable scheduling used for response timeouts and inter-tone delays.

The orchestrator only needs ``call_later(delay, callback)`` returning a handle
with ``cancel()``. ``ManualScheduler`` runs on a virtual clock and is driven
explicitly, ``ThreadingScheduler`` uses real timers.
"""
import heapq
import itertools
import logging
import threading
from typing import Callable, List, Protocol

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        ...


class ManualTimer:
    """Handle for a callback scheduled on a ManualScheduler."""

    def __init__(self, due, callback):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """Deterministic scheduler on a virtual clock.

    Callbacks fire only from ``advance``/``run_until_idle``, in due-time order
    (ties in scheduling order). Exceptions raised by a callback propagate to the
    caller of ``advance``.
    """

    def __init__(self, start=0.0):
        self.time = float(start)
        self._queue: List = []
        self._counter = itertools.count()

    def call_later(self, delay, callback):
        if delay < 0:
            raise ValueError("delay must not be negative")
        timer = ManualTimer(self.time + delay, callback)
        heapq.heappush(self._queue, (timer.due, next(self._counter), timer))
        return timer

    @property
    def pending(self):
        return sum(1 for _, _, timer in self._queue if not timer.cancelled)

    def advance(self, seconds):
        """Move the clock forward, firing every callback that becomes due."""
        if seconds < 0:
            raise ValueError("cannot move the clock backwards")
        target = self.time + seconds
        while self._queue and self._queue[0][0] <= target:
            due, _, timer = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            self.time = due
            timer.callback()
        self.time = target

    def run_until_idle(self, max_callbacks=10000):
        """Fire callbacks until nothing is scheduled."""
        fired = 0
        while self._queue:
            due, _, timer = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            self.time = max(self.time, due)
            timer.callback()
            fired += 1
            if fired >= max_callbacks:
                raise RuntimeError(f"Scheduler still busy after {max_callbacks} callbacks")
        return fired


class ThreadingScheduler:
    """Real-time scheduler backed by ``threading.Timer``."""

    def call_later(self, delay, callback):
        timer = threading.Timer(delay, self._run, args=(callback,))
        timer.daemon = True
        timer.start()
        return timer

    @staticmethod
    def _run(callback):
        try:
            callback()
        except Exception:
            # Nothing above a timer thread can handle it; logged once here
            logger.exception("Scheduled callback failed")
