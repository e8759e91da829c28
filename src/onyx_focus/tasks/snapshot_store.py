# src/onyx_focus/tasks/snapshot_store.py

from __future__ import annotations

import contextlib
import json
import logging
import os
from datetime import date
from pathlib import Path
from typing import Any

from .task_models import (
    AchievementProgress,
    Bet,
    BetOutcome,
    Effort,
    MicroStep,
    MoodLevel,
    Snapshot,
    Task,
)

logger = logging.getLogger(__name__)


# ---- encoding ----


def _bet_to_dict(bet: Bet | None) -> dict[str, Any] | None:
    if bet is None:
        return None
    return {
        "start_time_ms": bet.start_time_ms,
        "duration_minutes": bet.duration_minutes,
        "multiplier": bet.multiplier,
    }


def task_to_dict(task: Task) -> dict[str, Any]:
    return {
        "id": task.id,
        "title": task.title,
        "created_at_ms": task.created_at_ms,
        "steps": [
            {
                "text": s.text,
                "difficulty_score": s.difficulty_score,
                "is_candy": s.is_candy,
                "is_completed": s.is_completed,
                "completed_at_ms": s.completed_at_ms,
            }
            for s in task.steps
        ],
        "effort": task.effort.value if task.effort is not None else None,
        "estimated_minutes": task.estimated_minutes,
        "mood_at_start": int(task.mood_at_start) if task.mood_at_start is not None else None,
        "current_step_index": task.current_step_index,
        "is_completed": task.is_completed,
        "completed_at_ms": task.completed_at_ms,
        "mood_at_completion": (
            int(task.mood_at_completion) if task.mood_at_completion is not None else None
        ),
        "forgiven": task.forgiven,
        "bet": _bet_to_dict(task.bet),
        "bet_outcome": task.bet_outcome.value if task.bet_outcome is not None else None,
    }


def achievements_to_dict(progress: AchievementProgress) -> dict[str, Any]:
    return {
        "tasks_completed": progress.tasks_completed,
        "candy_used": progress.candy_used,
        "bets_won": progress.bets_won,
        "unlocked": dict(progress.unlocked),
    }


def snapshot_to_dict(snapshot: Snapshot) -> dict[str, Any]:
    return {
        "backlog": [task_to_dict(t) for t in snapshot.backlog],
        "current_task_id": snapshot.current_task_id,
        "xp": snapshot.xp,
        "level": snapshot.level,
        "streak_count": snapshot.streak_count,
        "last_active_date": (
            snapshot.last_active_date.isoformat() if snapshot.last_active_date else None
        ),
        "achievements": achievements_to_dict(snapshot.achievements),
    }


# ---- decoding (tolerant: bad fields fall back to defaults) ----


def _int_or(raw: Any, default: int | None) -> int | None:
    if raw is None or isinstance(raw, bool):
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        return default


def _bet_from_dict(raw: Any) -> Bet | None:
    if not isinstance(raw, dict):
        return None
    try:
        return Bet(
            start_time_ms=int(raw["start_time_ms"]),
            duration_minutes=float(raw["duration_minutes"]),
            multiplier=float(raw.get("multiplier", 2.0)),
        )
    except (KeyError, TypeError, ValueError):
        logger.warning("Dropping malformed bet in snapshot: %r", raw)
        return None


def _step_from_dict(raw: Any) -> MicroStep | None:
    if not isinstance(raw, dict):
        return None
    text = str(raw.get("text") or "").strip()
    if not text:
        return None
    difficulty = _int_or(raw.get("difficulty_score"), 2) or 2
    return MicroStep(
        text=text,
        difficulty_score=min(3, max(1, difficulty)),
        is_candy=bool(raw.get("is_candy", False)),
        is_completed=bool(raw.get("is_completed", False)),
        completed_at_ms=_int_or(raw.get("completed_at_ms"), None),
    )


def task_from_dict(raw: Any) -> Task | None:
    if not isinstance(raw, dict):
        return None
    task_id = str(raw.get("id") or "").strip()
    if not task_id:
        return None

    steps = [s for s in (_step_from_dict(x) for x in raw.get("steps") or []) if s is not None]
    outcome_raw = raw.get("bet_outcome")
    try:
        bet_outcome = BetOutcome(outcome_raw) if outcome_raw else None
    except ValueError:
        bet_outcome = None

    return Task(
        id=task_id,
        title=str(raw.get("title") or ""),
        created_at_ms=_int_or(raw.get("created_at_ms"), 0) or 0,
        steps=steps,
        effort=Effort.from_raw(raw.get("effort")),
        estimated_minutes=_int_or(raw.get("estimated_minutes"), None),
        mood_at_start=MoodLevel.from_raw(raw.get("mood_at_start")),
        current_step_index=_int_or(raw.get("current_step_index"), 0) or 0,
        is_completed=bool(raw.get("is_completed", False)),
        completed_at_ms=_int_or(raw.get("completed_at_ms"), None),
        mood_at_completion=MoodLevel.from_raw(raw.get("mood_at_completion")),
        forgiven=bool(raw.get("forgiven", False)),
        bet=_bet_from_dict(raw.get("bet")),
        bet_outcome=bet_outcome,
    )


def achievements_from_dict(raw: Any) -> AchievementProgress:
    if not isinstance(raw, dict):
        return AchievementProgress()
    unlocked: dict[str, int] = {}
    raw_unlocked = raw.get("unlocked")
    if isinstance(raw_unlocked, dict):
        for key, ts in raw_unlocked.items():
            ts_ms = _int_or(ts, None)
            if key and ts_ms is not None:
                unlocked[str(key)] = ts_ms
    return AchievementProgress(
        tasks_completed=max(0, _int_or(raw.get("tasks_completed"), 0) or 0),
        candy_used=max(0, _int_or(raw.get("candy_used"), 0) or 0),
        bets_won=max(0, _int_or(raw.get("bets_won"), 0) or 0),
        unlocked=unlocked,
    )


def snapshot_from_dict(raw: Any) -> Snapshot | None:
    if not isinstance(raw, dict):
        return None

    backlog: list[Task] = []
    seen: set[str] = set()
    for item in raw.get("backlog") or []:
        task = task_from_dict(item)
        if task is None or task.id in seen:
            continue
        seen.add(task.id)
        backlog.append(task)

    current = raw.get("current_task_id")
    current_id = str(current) if current and str(current) in seen else None

    last_active: date | None = None
    if raw.get("last_active_date"):
        try:
            last_active = date.fromisoformat(str(raw["last_active_date"]))
        except ValueError:
            last_active = None

    return Snapshot(
        backlog=backlog,
        current_task_id=current_id,
        xp=max(0, _int_or(raw.get("xp"), 0) or 0),
        level=max(1, _int_or(raw.get("level"), 1) or 1),
        streak_count=max(0, _int_or(raw.get("streak_count"), 0) or 0),
        last_active_date=last_active,
        achievements=achievements_from_dict(raw.get("achievements")),
    )


class JsonSnapshotStore:
    """
    JSON file holding the flat session snapshot.

    - save(): write to a temp file, then os.replace (no torn writes)
    - load(): None when the file is missing or unreadable
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Snapshot | None:
        if not self._path.exists():
            logger.info("No snapshot at %s; starting empty.", self._path)
            return None
        try:
            data = json.loads(self._path.read_text("utf-8"))
        except Exception:
            logger.exception("Failed to read snapshot from %s; starting empty.", self._path)
            return None

        snap = snapshot_from_dict(data)
        if snap is None:
            logger.warning("Snapshot at %s is not an object; starting empty.", self._path)
            return None
        logger.info("Loaded snapshot: %d tasks from %s", len(snap.backlog), self._path)
        return snap

    def save(self, snapshot: Snapshot) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(".tmp")
        tmp.write_text(
            json.dumps(snapshot_to_dict(snapshot), ensure_ascii=False, indent=2), "utf-8"
        )
        os.replace(tmp, self._path)
        with contextlib.suppress(Exception):
            os.chmod(self._path, 0o600)
        logger.debug("Saved snapshot: %d tasks to %s", len(snapshot.backlog), self._path)
