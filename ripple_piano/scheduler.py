"""Deferred-callback schedulers used for the feedback protection timers.

The trigger controller only needs ``call_later(delay_ms, callback)``.  Two
implementations are provided:

``ThreadingScheduler``
    Runs each callback on a daemon :class:`threading.Timer` against the wall
    clock.  Used for live sessions.
``ManualScheduler``
    Keeps a virtual clock that only moves when :meth:`ManualScheduler.advance`
    is called.  Used to replay recordings faster than real time and to make
    timer behaviour deterministic in tests.

Example
-------
>>> sched = ManualScheduler()
>>> fired = []
>>> _ = sched.call_later(100, lambda: fired.append(sched.now_ms()))
>>> sched.advance(99)
0
>>> sched.advance(1)
1
>>> fired
[100.0]
"""

from __future__ import annotations

import heapq
import itertools
import logging
import threading
import time
from typing import Callable, List, Set, Tuple

__all__ = ["ThreadingScheduler", "ManualScheduler"]

logger = logging.getLogger(__name__)

Callback = Callable[[], None]


def _check_delay(delay_ms: float) -> None:
    if delay_ms < 0:
        raise ValueError("delay_ms must be non-negative")


class ThreadingScheduler:
    """Schedule callbacks on background timer threads."""

    def __init__(self) -> None:
        self._timers: Set[threading.Timer] = set()
        self._lock = threading.Lock()
        self._origin = time.monotonic()

    def now_ms(self) -> float:
        """Milliseconds elapsed since the scheduler was created."""

        return (time.monotonic() - self._origin) * 1000.0

    def call_later(self, delay_ms: float, callback: Callback) -> threading.Timer:
        """Run ``callback`` once after ``delay_ms`` milliseconds."""

        _check_delay(delay_ms)

        def _run() -> None:
            with self._lock:
                self._timers.discard(timer)
            callback()

        timer = threading.Timer(delay_ms / 1000.0, _run)
        timer.daemon = True
        with self._lock:
            self._timers.add(timer)
        timer.start()
        return timer

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._timers)

    def cancel_all(self) -> None:
        """Cancel every timer that has not started running yet."""

        with self._lock:
            timers = list(self._timers)
            self._timers.clear()
        for timer in timers:
            timer.cancel()
        if timers:
            logger.debug("Cancelled %d pending timers", len(timers))


class ManualScheduler:
    """Virtual-clock scheduler advanced explicitly by the caller."""

    def __init__(self, start_ms: float = 0.0) -> None:
        self._now = float(start_ms)
        self._queue: List[Tuple[float, int, Callback]] = []
        # Ties on the deadline run in scheduling order.
        self._counter = itertools.count()

    def now_ms(self) -> float:
        return self._now

    def call_later(self, delay_ms: float, callback: Callback) -> float:
        """Queue ``callback`` to run ``delay_ms`` after the current time.

        Returns the absolute deadline in milliseconds.
        """

        _check_delay(delay_ms)
        deadline = self._now + delay_ms
        heapq.heappush(self._queue, (deadline, next(self._counter), callback))
        return deadline

    @property
    def pending(self) -> int:
        return len(self._queue)

    def advance(self, delta_ms: float) -> int:
        """Move the clock forward, running every callback that falls due.

        Callbacks scheduled by other callbacks run in the same call when their
        deadline lies within the window.  Returns the number of callbacks run.
        """

        if delta_ms < 0:
            raise ValueError("delta_ms must be non-negative")
        target = self._now + delta_ms
        ran = 0
        while self._queue and self._queue[0][0] <= target:
            deadline, _, callback = heapq.heappop(self._queue)
            self._now = deadline
            callback()
            ran += 1
        self._now = target
        return ran

    def run_until_idle(self) -> int:
        """Advance to the last pending deadline, draining the queue."""

        ran = 0
        while self._queue:
            ran += self.advance(self._queue[0][0] - self._now)
        return ran

    def cancel_all(self) -> None:
        self._queue.clear()
