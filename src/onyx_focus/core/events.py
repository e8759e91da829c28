# src/onyx_focus/core/events.py

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class StoreEventKind(StrEnum):
    TASK_ADDED = "task_added"
    CURRENT_CHANGED = "current_changed"
    BET_PLACED = "bet_placed"
    STEP_COMPLETED = "step_completed"
    TASK_COMPLETED = "task_completed"
    LEVEL_CHANGED = "level_changed"
    TASK_FORGIVEN = "task_forgiven"
    TASK_ABANDONED = "task_abandoned"
    ACHIEVEMENT_UNLOCKED = "achievement_unlocked"


@dataclass(slots=True, frozen=True)
class StoreEvent:
    """
    Notification published by the TaskStore after a successful mutation.

    Presentation collaborators (modals, confetti, sounds) subscribe to these;
    the core never renders anything itself.
    """

    kind: StoreEventKind
    task_id: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
