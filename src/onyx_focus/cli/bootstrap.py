# src/onyx_focus/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires clock, engines, snapshot persistence and the heartbeat into AppState.
"""

from __future__ import annotations

import logging
import random

from ..config import get_settings
from ..core.clock import SystemClock
from ..core.ports import Clock
from ..core.state import AppState
from ..focus.bet_engine import BetEngine
from ..focus.heartbeat import Countdown, CountdownCallback, Heartbeat
from ..gamification.scoring import ScoringEngine
from ..gamification.suggestions import SuggestionSelector
from ..tasks.snapshot_store import JsonSnapshotStore
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.snapshot_path.parent.mkdir(parents=True, exist_ok=True)


def countdown_notices(notices: list[str]) -> CountdownCallback:
    """
    Turn heartbeat updates into one-off notices (urgent, time up).

    The heartbeat fires every second; the console should only hear about changes.
    """
    seen: dict[str, str] = {}

    def on_update(countdown: Countdown | None) -> None:
        if countdown is None:
            seen.clear()
            return
        if countdown.deadline_passed:
            phase = "passed"
        elif countdown.urgent:
            phase = "urgent"
        else:
            phase = "running"
        if seen.get(countdown.task_id) == phase:
            return
        seen[countdown.task_id] = phase
        if phase == "urgent":
            notices.append(f"[BET] Hurry: {countdown.text} left on your bet.")
        elif phase == "passed":
            notices.append(
                "[BET] Time is up (00:00). Finish anyway with /done or close it with /forgive."
            )

    return on_update


def create_initial_state(
    *,
    settings=None,
    clock: Clock | None = None,
    rng: random.Random | None = None,
) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings/clock/rng injectable makes the app easier to test and avoids
    hidden global config reads. If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()
    if clock is None:
        clock = SystemClock()

    _ensure_local_dirs(settings)

    bet_engine = BetEngine(clock, multiplier=settings.bet_multiplier)
    task_store = TaskStore(
        clock=clock,
        bet_engine=bet_engine,
        scoring=ScoringEngine.from_settings(settings),
        snapshot_repo=JsonSnapshotStore(settings.snapshot_path),
    )

    notices: list[str] = []
    heartbeat = Heartbeat(
        task_store,
        bet_engine,
        clock,
        urgent_threshold_ms=int(settings.urgent_threshold_seconds) * 1000,
        on_update=countdown_notices(notices),
    )

    return AppState(
        settings=settings,
        clock=clock,
        task_store=task_store,
        bet_engine=bet_engine,
        heartbeat=heartbeat,
        selector=SuggestionSelector(rng),
        notices=notices,
    )
