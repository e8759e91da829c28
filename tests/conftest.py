# tests/conftest.py

from __future__ import annotations

import random
from pathlib import Path
from types import SimpleNamespace

import pytest

from onyx_focus.cli.bootstrap import create_initial_state
from onyx_focus.focus.bet_engine import BetEngine
from onyx_focus.focus.heartbeat import Heartbeat
from onyx_focus.gamification.scoring import ScoringEngine
from onyx_focus.tasks.task_store import TaskStore

from .fakes import InMemorySnapshotRepo, ManualClock, RecordingListener, local_ms


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with bootstrap and the engines.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the environment.
    """
    return SimpleNamespace(
        app_name="onyx-test",
        log_level="DEBUG",
        data_dir=tmp_path,
        snapshot_path=tmp_path / "snapshot.json",
        bet_multiplier=2.0,
        step_xp=10,
        xp_easy=30,
        xp_medium=50,
        xp_hard=80,
        level_cap_per_award=1,
        heartbeat_enabled=False,
        heartbeat_interval_seconds=0.01,
        urgent_threshold_seconds=60,
    )


@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock(local_ms(2026, 1, 5, 12, 0))


@pytest.fixture()
def repo() -> InMemorySnapshotRepo:
    return InMemorySnapshotRepo()


@pytest.fixture()
def bet_engine(clock: ManualClock) -> BetEngine:
    return BetEngine(clock, multiplier=2.0)


@pytest.fixture()
def store(clock: ManualClock, bet_engine: BetEngine, repo: InMemorySnapshotRepo) -> TaskStore:
    """
    TaskStore wired with a manual clock and an in-memory snapshot repo.

    Ids are sequential so assertions can refer to them directly.
    """
    counter = iter(range(1, 10_000))
    return TaskStore(
        clock=clock,
        bet_engine=bet_engine,
        scoring=ScoringEngine(),
        snapshot_repo=repo,
        id_factory=lambda: f"t{next(counter)}",
    )


@pytest.fixture()
def heartbeat(store: TaskStore, bet_engine: BetEngine, clock: ManualClock) -> Heartbeat:
    return Heartbeat(store, bet_engine, clock)


@pytest.fixture()
def listener(store: TaskStore) -> RecordingListener:
    rec = RecordingListener()
    store.subscribe(rec)
    return rec


@pytest.fixture()
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture()
def state(settings: SimpleNamespace, clock: ManualClock, rng: random.Random):
    """AppState wired by the real bootstrap, with a manual clock and seeded rng."""
    return create_initial_state(settings=settings, clock=clock, rng=rng)
