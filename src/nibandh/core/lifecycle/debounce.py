"""Cancellable debounce timer for autosave."""

import asyncio
from collections.abc import Callable
from typing import Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Anything with asyncio's ``call_later`` shape, e.g. a running event loop."""

    def call_later(self, delay: float, callback: Callable[[], object]) -> TimerHandle: ...


class DebouncedSave:
    """Runs callback once, delay seconds after the last trigger.

    Each trigger cancels the pending timer before scheduling a new one, so
    timers never stack. Without an explicit scheduler the running event loop
    is used.
    """

    def __init__(
        self,
        delay: float,
        callback: Callable[[], None],
        scheduler: Scheduler | None = None,
    ) -> None:
        self.delay = delay
        self._callback = callback
        self._scheduler = scheduler
        self._handle: TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self) -> None:
        self.cancel()
        scheduler = self._scheduler or asyncio.get_running_loop()
        self._handle = scheduler.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self._callback()
