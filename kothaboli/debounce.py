"""Trailing-edge debounce with a cancellable scheduled-task handle."""

from __future__ import annotations

import threading
from typing import Callable, Protocol


class Handle(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    def schedule(self, delay_seconds: float, callback: Callable[[], None]) -> Handle:
        ...


class TimerScheduler:
    """Runs callbacks on daemon ``threading.Timer`` threads."""

    def schedule(self, delay_seconds: float, callback: Callable[[], None]) -> Handle:
        timer = threading.Timer(delay_seconds, callback)
        timer.daemon = True
        timer.start()
        return timer


class Debouncer:
    """Run ``action`` once ``delay_seconds`` have passed since the last trigger.

    At most one timer is pending; each ``trigger`` cancels it and schedules a
    new one. A generation counter drops callbacks from timers that were
    cancelled too late to stop.
    """

    def __init__(
        self,
        action: Callable[[], None],
        delay_seconds: float,
        scheduler: Scheduler | None = None,
    ) -> None:
        self._action = action
        self.delay_seconds = delay_seconds
        self._scheduler = scheduler or TimerScheduler()
        self._lock = threading.Lock()
        self._handle: Handle | None = None
        self._generation = 0

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self) -> None:
        with self._lock:
            if self._handle is not None:
                self._handle.cancel()
            self._generation += 1
            generation = self._generation
            self._handle = self._scheduler.schedule(
                self.delay_seconds, lambda: self._fire(generation)
            )

    def cancel(self) -> None:
        with self._lock:
            if self._handle is not None:
                self._handle.cancel()
                self._handle = None
            self._generation += 1

    def flush(self) -> bool:
        """Run the pending action now; return False when nothing was pending."""
        with self._lock:
            if self._handle is None:
                return False
            self._handle.cancel()
            self._handle = None
            self._generation += 1
        self._action()
        return True

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._handle is None:
                return
            self._handle = None
        self._action()
