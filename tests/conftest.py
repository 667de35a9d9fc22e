from __future__ import annotations

import os
import time
from collections.abc import Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from clockr.engine import WorkspaceTimerEngine
from clockr.store.entries import EntryStore
from clockr.topology import WorkspaceTopology


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 1, 1, 9, 0, tzinfo=UTC))


@pytest.fixture
def store(tmp_path: Path) -> Iterator[EntryStore]:
    s = EntryStore.open(tmp_path / "test.sqlite")
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def engine(store: EntryStore, clock: FakeClock) -> WorkspaceTimerEngine:
    return WorkspaceTimerEngine(store, now=clock)


@pytest.fixture
def topology(store: EntryStore, engine: WorkspaceTimerEngine) -> WorkspaceTopology:
    topo = WorkspaceTopology(store, engine)
    topo.load()
    return topo


@pytest.fixture
def system_tz() -> Iterator[None]:
    """Run with the process's local zone set to America/New_York."""
    old = os.environ.get("TZ")
    os.environ["TZ"] = "America/New_York"
    time.tzset()
    try:
        yield
    finally:
        if old is None:
            os.environ.pop("TZ", None)
        else:
            os.environ["TZ"] = old
        time.tzset()
