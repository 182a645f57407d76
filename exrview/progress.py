"""Progress reporting sinks, one driving a UI and one doing nothing."""

from __future__ import annotations

import threading
import time
import weakref
from abc import ABC, abstractmethod


class ProgressSink(ABC):
    """Receiver of progress updates in the range 0..1."""

    @abstractmethod
    def start_indeterminate(self, message=None):
        """Show work of unknown length."""

    @abstractmethod
    def set(self, progress, message=None):
        """Show the given fraction of work done."""

    @abstractmethod
    def finish(self, message=None):
        """Show completion."""

    @abstractmethod
    def reset(self):
        """Clear the indicator."""


def _start_timer(delay: float, callback) -> None:
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()


class UiProgress(ProgressSink):
    """Drives ``set_progress_value``/``set_status_text`` of a UI, with throttling.

    The UI is held weakly where possible; once it is gone every call is a no-op.
    """

    RESET_DELAY = 0.4

    def __init__(self, ui, *, min_interval: float = 0.08, clock=time.monotonic, schedule=None):
        try:
            self._ui = weakref.ref(ui)
        except TypeError:
            self._ui = lambda: ui
        self._clock = clock
        self._min_interval = min_interval
        self._schedule = schedule or _start_timer
        self._lock = threading.Lock()
        self._last_update = clock() - 0.1

    @staticmethod
    def _show(ui, value: float, message) -> None:
        ui.set_progress_value(value)
        if message is not None:
            ui.set_status_text(message)

    def _mark(self) -> None:
        with self._lock:
            self._last_update = self._clock()

    def start_indeterminate(self, message=None):
        ui = self._ui()
        if ui is not None:
            self._show(ui, -1.0, message)
            self._mark()

    def set(self, progress, message=None):
        clamped = min(max(float(progress), 0.0), 1.0)
        ui = self._ui()
        if ui is None:
            return
        if message is not None or clamped >= 0.99 or clamped <= 0.01:
            self._show(ui, clamped, message)
            self._mark()
            return
        with self._lock:
            now = self._clock()
            if now - self._last_update >= self._min_interval:
                self._show(ui, clamped, message)
                self._last_update = now

    def finish(self, message=None):
        ui = self._ui()
        if ui is None:
            return
        self._show(ui, 1.0, message)
        self._schedule(self.RESET_DELAY, self.reset)

    def reset(self):
        ui = self._ui()
        if ui is not None:
            ui.set_progress_value(0.0)


class NoopProgress(ProgressSink):
    """A sink that ignores every update."""

    def start_indeterminate(self, message=None):
        return None

    def set(self, progress, message=None):
        return None

    def finish(self, message=None):
        return None

    def reset(self):
        return None