# src/onyx_focus/gamification/achievements.py

from __future__ import annotations

"""
Achievements ("museum of done").

A fixed catalog of one-shot badges driven by counters kept in the snapshot:
- task count: 1, 10, 25, 50, 100 completed tasks
- streak: 3, 7, 30 consecutive days
- special: candy steps used, bets won, first forgiveness, and completing a task
  late at night (00:00-04:59) or early in the morning (05:00-06:59)

Each achievement unlocks at most once. One event can unlock several at a time.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from ..tasks.task_models import AchievementProgress

logger = logging.getLogger(__name__)

NIGHT_OWL_HOURS = range(0, 5)
EARLY_BIRD_HOURS = range(5, 7)


class AchievementCategory(StrEnum):
    STREAK = "streak"
    TASK = "task"
    SPECIAL = "special"


@dataclass(slots=True, frozen=True)
class Achievement:
    id: str
    name: str
    description: str
    target: int
    category: AchievementCategory


ACHIEVEMENTS: tuple[Achievement, ...] = (
    Achievement("streak_3", "3-Day Streak", "Complete tasks 3 days in a row", 3, AchievementCategory.STREAK),
    Achievement("streak_7", "Week Warrior", "Maintain a 7-day streak", 7, AchievementCategory.STREAK),
    Achievement("streak_30", "Monthly Master", "Keep going for 30 days straight", 30, AchievementCategory.STREAK),
    Achievement("first_task", "First Step", "Complete your first task", 1, AchievementCategory.TASK),
    Achievement("tasks_10", "Getting Started", "Complete 10 tasks", 10, AchievementCategory.TASK),
    Achievement("tasks_25", "On a Roll", "Complete 25 tasks", 25, AchievementCategory.TASK),
    Achievement("tasks_50", "Productivity Pro", "Complete 50 tasks", 50, AchievementCategory.TASK),
    Achievement("tasks_100", "Centurion", "Complete 100 tasks", 100, AchievementCategory.TASK),
    Achievement("candy_lover", "Candy Lover", "Use an easy win 10 times", 10, AchievementCategory.SPECIAL),
    Achievement("bet_master", "High Roller", "Win 5 time bets", 5, AchievementCategory.SPECIAL),
    Achievement("forgiveness", "Self-Compassion", "Use forgiveness once", 1, AchievementCategory.SPECIAL),
    Achievement("night_owl", "Night Owl", "Complete a task after midnight", 1, AchievementCategory.SPECIAL),
    Achievement("early_bird", "Early Bird", "Complete a task before 7 AM", 1, AchievementCategory.SPECIAL),
)

ACHIEVEMENTS_BY_ID: dict[str, Achievement] = {a.id: a for a in ACHIEVEMENTS}


class AchievementEngine:
    """
    Updates AchievementProgress in place and returns what was newly unlocked.

    The caller (TaskStore) owns the progress object and holds its lock.
    """

    def __init__(self, catalog: tuple[Achievement, ...] = ACHIEVEMENTS) -> None:
        self._catalog = catalog

    @property
    def catalog(self) -> tuple[Achievement, ...]:
        return self._catalog

    def _unlock(
        self, progress: AchievementProgress, ids: list[str], at_ms: int
    ) -> list[Achievement]:
        unlocked: list[Achievement] = []
        for achievement in self._catalog:
            if achievement.id in ids and achievement.id not in progress.unlocked:
                progress.unlocked[achievement.id] = at_ms
                unlocked.append(achievement)
                logger.info("Achievement unlocked: %s", achievement.id)
        return unlocked

    def on_task_completed(
        self,
        progress: AchievementProgress,
        *,
        streak: int,
        bet_won: bool,
        at_ms: int,
    ) -> list[Achievement]:
        progress.tasks_completed += 1
        if bet_won:
            progress.bets_won += 1

        ids: list[str] = []
        for a in self._catalog:
            if a.category == AchievementCategory.TASK and progress.tasks_completed >= a.target:
                ids.append(a.id)
            elif a.category == AchievementCategory.STREAK and streak >= a.target:
                ids.append(a.id)
        if progress.bets_won >= ACHIEVEMENTS_BY_ID["bet_master"].target:
            ids.append("bet_master")

        hour = datetime.fromtimestamp(at_ms / 1000).hour
        if hour in NIGHT_OWL_HOURS:
            ids.append("night_owl")
        elif hour in EARLY_BIRD_HOURS:
            ids.append("early_bird")

        return self._unlock(progress, ids, at_ms)

    def on_candy_used(self, progress: AchievementProgress, *, at_ms: int) -> list[Achievement]:
        progress.candy_used += 1
        if progress.candy_used >= ACHIEVEMENTS_BY_ID["candy_lover"].target:
            return self._unlock(progress, ["candy_lover"], at_ms)
        return []

    def on_forgiven(self, progress: AchievementProgress, *, at_ms: int) -> list[Achievement]:
        return self._unlock(progress, ["forgiveness"], at_ms)

    def percent(self, progress: AchievementProgress, achievement_id: str, *, streak: int = 0) -> int:
        """Progress towards one achievement, 0..100 (100 once unlocked)."""
        achievement = ACHIEVEMENTS_BY_ID.get(achievement_id)
        if achievement is None:
            return 0
        if achievement_id in progress.unlocked:
            return 100

        if achievement.category == AchievementCategory.TASK:
            current = progress.tasks_completed
        elif achievement.category == AchievementCategory.STREAK:
            current = streak
        elif achievement_id == "candy_lover":
            current = progress.candy_used
        elif achievement_id == "bet_master":
            current = progress.bets_won
        else:
            current = 0
        return min(100, round(current * 100 / achievement.target))
