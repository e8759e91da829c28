# tests/test_snapshot_store.py

from __future__ import annotations

import json
from datetime import date
from pathlib import Path

from onyx_focus.tasks.snapshot_store import JsonSnapshotStore, snapshot_from_dict
from onyx_focus.tasks.task_models import (
    Bet,
    BetOutcome,
    Effort,
    MicroStep,
    MoodLevel,
    Snapshot,
    Task,
)
from onyx_focus.tasks.task_store import TaskStore

from .fakes import ManualClock


def _sample() -> Snapshot:
    open_task = Task(
        id="a",
        title="write intro",
        created_at_ms=1_000,
        steps=[MicroStep("outline"), MicroStep("title", difficulty_score=1, is_candy=True)],
        effort=Effort.HARD,
        estimated_minutes=40,
        mood_at_start=MoodLevel.LOW,
        current_step_index=1,
        bet=Bet(start_time_ms=5_000, duration_minutes=25),
    )
    done = Task(
        id="b",
        title="reply to email",
        created_at_ms=2_000,
        is_completed=True,
        completed_at_ms=9_000,
        mood_at_completion=MoodLevel.GOOD,
        bet=Bet(start_time_ms=3_000, duration_minutes=10),
        bet_outcome=BetOutcome.ON_TIME,
    )
    return Snapshot(
        backlog=[open_task, done],
        current_task_id="a",
        xp=420,
        level=3,
        streak_count=4,
        last_active_date=date(2026, 1, 4),
    )


def test_save_then_load_restores_everything(tmp_path: Path) -> None:
    store = JsonSnapshotStore(tmp_path / "nested" / "snapshot.json")
    snap = _sample()
    store.save(snap)

    assert store.path.exists()
    assert not store.path.with_suffix(".tmp").exists()
    assert store.load() == snap


def test_missing_file_loads_none(tmp_path: Path) -> None:
    assert JsonSnapshotStore(tmp_path / "absent.json").load() is None


def test_corrupt_json_loads_none(tmp_path: Path) -> None:
    path = tmp_path / "snapshot.json"
    path.write_text("{ not json", "utf-8")
    assert JsonSnapshotStore(path).load() is None


def test_non_object_loads_none(tmp_path: Path) -> None:
    path = tmp_path / "snapshot.json"
    path.write_text("[1, 2, 3]", "utf-8")
    assert JsonSnapshotStore(path).load() is None


def test_malformed_fields_fall_back_to_defaults() -> None:
    snap = snapshot_from_dict(
        {
            "backlog": [
                {"id": "a", "title": "ok", "bet": {"start_time_ms": 1, "duration_minutes": 0}},
                {"id": "a", "title": "duplicate"},
                {"title": "no id"},
                "garbage",
                {
                    "id": "b",
                    "title": "weird",
                    "effort": "impossible",
                    "mood_at_start": 9,
                    "bet_outcome": "maybe",
                    "steps": [{"text": ""}, {"text": "real", "difficulty_score": 7}],
                },
            ],
            "current_task_id": "ghost",
            "xp": -50,
            "level": "high",
            "streak_count": None,
            "last_active_date": "yesterday",
        }
    )
    assert snap is not None
    assert [t.id for t in snap.backlog] == ["a", "b"]
    assert snap.backlog[0].bet is None
    assert snap.backlog[0].title == "ok"

    weird = snap.backlog[1]
    assert weird.effort is None
    assert weird.mood_at_start is None
    assert weird.bet_outcome is None
    assert [s.text for s in weird.steps] == ["real"]
    assert weird.steps[0].difficulty_score == 3

    assert snap.current_task_id is None
    assert (snap.xp, snap.level, snap.streak_count) == (0, 1, 0)
    assert snap.last_active_date is None


def test_store_survives_restart_through_file(tmp_path: Path) -> None:
    clock = ManualClock(1_700_000_000_000)
    path = tmp_path / "snapshot.json"

    first = TaskStore(clock=clock, snapshot_repo=JsonSnapshotStore(path))
    task = first.add_task("carry over", effort=Effort.EASY).value
    assert task is not None
    first.set_current_task(task.id)
    first.place_bet(10)

    on_disk = json.loads(path.read_text("utf-8"))
    assert on_disk["current_task_id"] == task.id
    assert on_disk["backlog"][0]["bet"]["duration_minutes"] == 10

    clock.advance(minutes=4)
    second = TaskStore(clock=clock, snapshot_repo=JsonSnapshotStore(path))
    current = second.current_task
    assert current is not None and current.id == task.id
    res = second.complete_task(MoodLevel.OKAY)
    assert res.value is not None
    assert res.value.outcome == BetOutcome.ON_TIME
    assert res.value.xp_delta == 66
