from datetime import UTC, date, datetime, timedelta

import pytest

from n5lab.config import Settings
from n5lab.models.curriculum import Curriculum, Module
from n5lab.progression.engine import ProgressionEngine
from n5lab.srs.scheduler import Scheduler
from n5lab.storage.kv import MemoryStore


class FixedClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime) -> None:
        self.current = now

    def now(self) -> datetime:
        return self.current

    def today(self) -> date:
        return self.current.date()

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FixedClock(datetime(2026, 3, 10, 9, 0, tzinfo=UTC))


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def settings(tmp_path):
    return Settings(storage_dir=tmp_path / "store")


@pytest.fixture
def curriculum():
    return Curriculum(modules=[
        Module(id="kana", lessons=["k1", "k2", "k3", "k4", "k5"]),
        Module(id="vocab", lessons=["v1", "v2", "v3"]),
        Module(id="grammar", lessons=["g1", "g2"]),
    ])


@pytest.fixture
def engine(store, clock, curriculum, settings):
    return ProgressionEngine(store, clock, curriculum, settings)


@pytest.fixture
def scheduler(store, clock):
    return Scheduler(store, clock)
