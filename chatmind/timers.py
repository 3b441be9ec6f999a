"""Timers owned by a joined room.

Each timer is a guard: ``cancel`` is idempotent and safe from any thread, so
room teardown can release every timer unconditionally, including on error
paths.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from threading import Event, Lock, Thread, Timer

logger = logging.getLogger(__name__)


class PeriodicTask:
    def __init__(
        self,
        interval_seconds: float,
        callback: Callable[[], None],
        name: str = "periodic-task",
    ):
        self.interval_seconds = interval_seconds
        self.callback = callback
        self.name = name
        self._stop = Event()
        self._thread: Thread | None = None

    @property
    def is_active(self) -> bool:
        return self._thread is not None and not self._stop.is_set()

    def start(self) -> "PeriodicTask":
        if self._thread is not None:
            return self
        self._thread = Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        return self

    def cancel(self) -> None:
        self._stop.set()

    def _run(self) -> None:
        while not self._stop.wait(self.interval_seconds):
            try:
                self.callback()
            except Exception:
                logger.exception("Periodic task %s failed", self.name)


class DeadlineTimer:
    """Fires ``callback`` once after ``timeout_seconds`` unless cancelled."""

    def __init__(
        self,
        timeout_seconds: float,
        callback: Callable[[], None],
        name: str = "deadline-timer",
    ):
        self.timeout_seconds = timeout_seconds
        self.callback = callback
        self.name = name
        self._lock = Lock()
        self._timer: Timer | None = None
        self._fired = False
        self._cancelled = False

    @property
    def fired(self) -> bool:
        return self._fired

    @property
    def is_active(self) -> bool:
        with self._lock:
            return self._timer is not None and not (self._fired or self._cancelled)

    def start(self) -> "DeadlineTimer":
        with self._lock:
            if self._timer is not None:
                return self
            self._timer = Timer(self.timeout_seconds, self._fire)
            self._timer.name = self.name
            self._timer.daemon = True
            self._timer.start()
        return self

    def cancel(self) -> None:
        with self._lock:
            self._cancelled = True
            timer = self._timer
        if timer is not None:
            timer.cancel()

    def _fire(self) -> None:
        with self._lock:
            if self._cancelled:
                return
            self._fired = True
        try:
            self.callback()
        except Exception:
            logger.exception("Deadline timer %s callback failed", self.name)
