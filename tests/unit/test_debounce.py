"""Tests for the cancellable debounce timer."""

import asyncio

from nibandh.core.lifecycle.debounce import DebouncedSave

from tests.unit.fakes import FakeScheduler


def test_fires_once_after_delay() -> None:
    scheduler = FakeScheduler()
    fired: list[float] = []
    debounce = DebouncedSave(2.0, lambda: fired.append(scheduler.now), scheduler)

    debounce.trigger()
    assert debounce.pending
    scheduler.advance(1.5)
    assert fired == []
    scheduler.advance(0.5)
    assert fired == [2.0]
    assert not debounce.pending


def test_retrigger_restarts_timer_without_stacking() -> None:
    scheduler = FakeScheduler()
    fired: list[float] = []
    debounce = DebouncedSave(2.0, lambda: fired.append(scheduler.now), scheduler)

    debounce.trigger()  # t=0
    scheduler.advance(1.0)
    debounce.trigger()  # t=1
    assert len(scheduler.active) == 1
    scheduler.advance(1.5)  # t=2.5, the first timer would have fired at t=2
    assert fired == []
    scheduler.advance(0.5)
    assert fired == [3.0]
    scheduler.advance(10)
    assert fired == [3.0]


def test_cancel_drops_pending_timer() -> None:
    scheduler = FakeScheduler()
    fired: list[float] = []
    debounce = DebouncedSave(2.0, lambda: fired.append(scheduler.now), scheduler)

    debounce.trigger()
    debounce.cancel()
    assert not debounce.pending
    scheduler.advance(5)
    assert fired == []
    debounce.cancel()  # no-op


def test_uses_running_loop_without_scheduler() -> None:
    fired: list[str] = []

    async def scenario() -> None:
        debounce = DebouncedSave(0.01, lambda: fired.append("x"))
        debounce.trigger()
        debounce.trigger()
        await asyncio.sleep(0.05)

    asyncio.run(scenario())
    assert fired == ["x"]
