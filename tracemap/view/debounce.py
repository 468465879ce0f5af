from __future__ import annotations

import threading
from enum import Enum
from typing import Callable, Optional, Protocol


class DebounceState(Enum):
    CLEAN = "clean"
    PENDING = "pending"
    REFRESHING = "refreshing"


class Cancellable(Protocol):
    def cancel(self) -> None: ...


Scheduler = Callable[[float, Callable[[], None]], Cancellable]


def timer_scheduler(delay: float, callback: Callable[[], None]) -> Cancellable:
    """Run the callback once on a daemon timer thread after ``delay`` seconds."""

    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()
    return timer


class Debouncer:
    """Coalesces bursts of triggers into one callback run.

    A trigger while clean schedules a run after the delay; further triggers
    while pending join that run. A trigger during the run schedules exactly
    one more run, so the last run always starts after the last trigger.
    The delay is not restarted by later triggers, which keeps it bounded.
    Schedulers must call back later, never from inside the scheduling call.
    """

    def __init__(
        self,
        callback: Callable[[], None],
        delay_ms: int = 100,
        scheduler: Optional[Scheduler] = None,
    ):
        self._callback = callback
        self._delay = max(0, delay_ms) / 1000.0
        self._scheduler = scheduler or timer_scheduler
        self._lock = threading.Lock()
        self._state = DebounceState.CLEAN
        self._again = False
        self._pending: Optional[Cancellable] = None

    @property
    def state(self) -> DebounceState:
        return self._state

    def trigger(self) -> None:
        with self._lock:
            if self._state == DebounceState.REFRESHING:
                self._again = True
                return
            if self._state == DebounceState.PENDING:
                return
            self._schedule()

    def flush(self) -> bool:
        """Run a pending callback now; returns False when nothing was pending."""

        with self._lock:
            if self._state != DebounceState.PENDING:
                return False
            if self._pending is not None:
                self._pending.cancel()
                self._pending = None
        self._fire()
        return True

    def cancel(self) -> None:
        with self._lock:
            if self._pending is not None:
                self._pending.cancel()
                self._pending = None
            self._again = False
            if self._state == DebounceState.PENDING:
                self._state = DebounceState.CLEAN

    def _schedule(self) -> None:
        self._state = DebounceState.PENDING
        self._pending = self._scheduler(self._delay, self._fire)

    def _fire(self) -> None:
        with self._lock:
            if self._state != DebounceState.PENDING:
                return
            self._state = DebounceState.REFRESHING
            self._pending = None

        try:
            self._callback()
        finally:
            with self._lock:
                if self._again:
                    self._again = False
                    self._schedule()
                else:
                    self._state = DebounceState.CLEAN
