# src/onyx_focus/gamification/suggestions.py

from __future__ import annotations

"""
"Unstuck" suggestions: pick one low-effort, unfinished task at random.

Returning None is a normal outcome; the caller renders a fallback
(e.g. "capture a new task") instead of an error.
"""

import logging
import random
from collections.abc import Iterable

from ..tasks.task_models import EASY_MAX_MINUTES, Effort, Task

logger = logging.getLogger(__name__)


def is_unstuck_candidate(task: Task) -> bool:
    if task.is_completed:
        return False
    if task.effort == Effort.EASY:
        return True
    return task.estimated_minutes is not None and task.estimated_minutes <= EASY_MAX_MINUTES


class SuggestionSelector:
    """Uniform choice among candidates using an injectable random source."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng if rng is not None else random.Random()

    def candidates(self, backlog: Iterable[Task]) -> list[Task]:
        return [t for t in backlog if is_unstuck_candidate(t)]

    def suggest(self, backlog: Iterable[Task]) -> Task | None:
        pool = self.candidates(backlog)
        if not pool:
            logger.debug("No unstuck candidates in backlog.")
            return None
        choice = self._rng.choice(pool)
        logger.debug("Unstuck suggestion id=%s among %d candidates", choice.id, len(pool))
        return choice
