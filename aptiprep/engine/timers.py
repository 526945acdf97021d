from __future__ import annotations

"""Clock boundary: monotonic time plus repeating tick scheduling.

The session depends only on `now_ms()` and `schedule_tick(interval_ms,
callback) -> handle`. Callbacks receive the elapsed interval in ms and run on
the caller's thread; nothing here starts threads.
"""

import sched
import time
from typing import Callable, List, Optional, Protocol

TickCallback = Callable[[int], None]


class TickHandle(Protocol):
    def cancel(self) -> None:
        ...

    @property
    def active(self) -> bool:
        ...


class Clock(Protocol):
    def now_ms(self) -> int:
        ...

    def schedule_tick(self, interval_ms: int, callback: TickCallback) -> TickHandle:
        ...


class _ManualTimer:
    def __init__(self, clock: "ManualClock", interval_ms: int, callback: TickCallback, seq: int) -> None:
        self._clock = clock
        self.interval_ms = interval_ms
        self.callback = callback
        self.due_ms = clock.now_ms() + interval_ms
        self.seq = seq
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        self._active = False


class ManualClock:
    """Deterministic clock for tests and simulations.

    Time only moves through `advance`; timers due within the advanced span
    fire in due-time order (ties in scheduling order).
    """

    def __init__(self, start_ms: int = 0) -> None:
        self._now = int(start_ms)
        self._timers: List[_ManualTimer] = []
        self._seq = 0

    def now_ms(self) -> int:
        return self._now

    def schedule_tick(self, interval_ms: int, callback: TickCallback) -> _ManualTimer:
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        self._seq += 1
        timer = _ManualTimer(self, int(interval_ms), callback, self._seq)
        self._timers.append(timer)
        return timer

    def _next_due(self, until_ms: int) -> Optional[_ManualTimer]:
        due = [t for t in self._timers if t.active and t.due_ms <= until_ms]
        if not due:
            return None
        return min(due, key=lambda t: (t.due_ms, t.seq))

    def advance(self, ms: int) -> None:
        target = self._now + int(ms)
        while True:
            timer = self._next_due(target)
            if timer is None:
                break
            self._now = timer.due_ms
            timer.due_ms += timer.interval_ms
            timer.callback(timer.interval_ms)
        self._now = target
        self._timers = [t for t in self._timers if t.active]

    def set_time(self, ms: int) -> None:
        """Move time forward without firing timers (simulates a late callback)."""
        if ms < self._now:
            raise ValueError("ManualClock cannot go backwards")
        self._now = int(ms)

    @property
    def active_timers(self) -> int:
        return sum(1 for t in self._timers if t.active)


class _SchedTimer:
    def __init__(self, scheduler: sched.scheduler, interval_ms: int, callback: TickCallback) -> None:
        self._scheduler = scheduler
        self.interval_ms = interval_ms
        self.callback = callback
        self._event: Optional[sched.Event] = None
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def arm(self) -> None:
        self._event = self._scheduler.enter(self.interval_ms / 1000.0, 0, self._fire)

    def _fire(self) -> None:
        if not self._active:
            return
        self.arm()
        self.callback(self.interval_ms)

    def cancel(self) -> None:
        self._active = False
        if self._event is not None:
            try:
                self._scheduler.cancel(self._event)
            except ValueError:
                # already ran or was never queued
                pass
            self._event = None


class SchedClock:
    """Cooperative real-time clock on top of the stdlib `sched` module.

    The owner pumps it with `run_pending()` from its own loop.
    """

    def __init__(self) -> None:
        self._scheduler = sched.scheduler(time.monotonic, time.sleep)

    def now_ms(self) -> int:
        return int(time.monotonic() * 1000)

    def schedule_tick(self, interval_ms: int, callback: TickCallback) -> _SchedTimer:
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        timer = _SchedTimer(self._scheduler, int(interval_ms), callback)
        timer.arm()
        return timer

    def run_pending(self, blocking: bool = False) -> None:
        self._scheduler.run(blocking=blocking)

    def empty(self) -> bool:
        return self._scheduler.empty()
