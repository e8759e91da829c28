# src/onyx_focus/gamification/forgiveness.py

from __future__ import annotations

"""
Forgiveness policy.

An explicit, single-shot way out of an abandoned or missed task:
- the task is closed as completed with zero XP
- streak and level are untouched
- a task that is already resolved cannot be forgiven again
"""

from dataclasses import dataclass

from ..core.results import ErrorKind, OpResult
from ..tasks.task_models import Task


@dataclass(slots=True, frozen=True)
class Forgiveness:
    task_id: str
    xp_delta: int
    had_bet: bool
    completed_at_ms: int


class ForgivenessPolicy:
    xp_delta = 0

    def check(self, task: Task | None) -> OpResult[None]:
        if task is None:
            return OpResult.failure(ErrorKind.INVALID_STATE, "No task in focus to forgive.")
        if task.is_completed:
            return OpResult.failure(
                ErrorKind.ALREADY_RESOLVED, f"Task {task.id} is already resolved."
            )
        return OpResult.success()

    def apply(self, task: Task, now_ms: int) -> Forgiveness:
        """Close `task` in place. Caller must have passed check()."""
        task.is_completed = True
        task.forgiven = True
        task.completed_at_ms = now_ms
        task.mood_at_completion = None
        return Forgiveness(
            task_id=task.id,
            xp_delta=self.xp_delta,
            had_bet=task.bet is not None,
            completed_at_ms=now_ms,
        )
