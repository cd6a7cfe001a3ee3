"""Shared test fixtures."""

from collections.abc import Iterator
from pathlib import Path

import pytest

from nibandh.core.lifecycle.controller import DraftController
from nibandh.core.storage.repository import SqliteDraftStorage

from tests.unit.fakes import (
    SAMPLE_DRAFTS,
    FakeClock,
    FakeScheduler,
    FakeSettings,
    FakeStorage,
    FakeVersionControl,
    make_draft,
)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage(tmp_path: Path, clock: FakeClock) -> Iterator[SqliteDraftStorage]:
    """Return a SQLite draft store in a temporary directory."""
    store = SqliteDraftStorage.open(tmp_path / "drafts.db", clock=clock)
    yield store
    store.close()


@pytest.fixture
def populated_storage(storage: SqliteDraftStorage) -> SqliteDraftStorage:
    """Return a store holding SAMPLE_DRAFTS, saved in list order."""
    for sample in SAMPLE_DRAFTS:
        storage.save(make_draft(**sample))
    return storage


@pytest.fixture
def fake_storage(clock: FakeClock) -> FakeStorage:
    return FakeStorage(clock)


@pytest.fixture
def version_control() -> FakeVersionControl:
    return FakeVersionControl()


@pytest.fixture
def settings() -> FakeSettings:
    return FakeSettings(repo_path="/srv/blog")


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def controller(
    fake_storage: FakeStorage,
    version_control: FakeVersionControl,
    settings: FakeSettings,
    scheduler: FakeScheduler,
    clock: FakeClock,
) -> DraftController:
    """Controller wired to in-memory fakes and a virtual-time scheduler."""
    return DraftController(
        fake_storage,
        version_control,
        settings,
        debounce_delay=2.0,
        scheduler=scheduler,
        clock=clock,
    )
