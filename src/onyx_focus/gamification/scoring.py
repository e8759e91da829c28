# src/onyx_focus/gamification/scoring.py

from __future__ import annotations

"""
Scoring engine.

Pure functions of (task, mood, bet outcome, progress) -> ScoreResult.

Rules:
- base XP comes from a per-effort table (harder tasks are worth more)
- an on-time bet multiplies by the bet multiplier; a late bet keeps base XP
  (losing a wager never pays less than not wagering)
- mood applies a non-decreasing factor from a table
- level = floor(sqrt(xp / 100)) + 1, capped at old_level + level_cap per award
- streak counts consecutive calendar days with at least one completion
"""

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date

from ..tasks.task_models import BetOutcome, Effort, MoodLevel, Task, UserProgress

logger = logging.getLogger(__name__)

DEFAULT_BASE_XP: dict[Effort, int] = {
    Effort.EASY: 30,
    Effort.MEDIUM: 50,
    Effort.HARD: 80,
}

DEFAULT_MOOD_FACTORS: dict[MoodLevel, float] = {
    MoodLevel.EMPTY: 1.0,
    MoodLevel.LOW: 1.0,
    MoodLevel.OKAY: 1.1,
    MoodLevel.GOOD: 1.2,
    MoodLevel.FULL: 1.3,
}

XP_PER_LEVEL_UNIT = 100


def level_for_xp(xp: int) -> int:
    """Level N requires 100 * (N - 1)^2 cumulative XP."""
    return math.isqrt(max(0, int(xp)) // XP_PER_LEVEL_UNIT) + 1


def xp_for_level(level: int) -> int:
    """Cumulative XP at which `level` starts."""
    n = max(1, int(level)) - 1
    return XP_PER_LEVEL_UNIT * n * n


def next_streak(streak_count: int, last_active: date | None, today: date) -> int:
    if last_active is None:
        return 1
    gap = (today - last_active).days
    if gap <= 0:
        # Same day (or a clock that went backwards): no change, but never below 1.
        return max(1, streak_count)
    if gap == 1:
        return streak_count + 1
    return 1


@dataclass(slots=True, frozen=True)
class ScoreResult:
    xp_delta: int
    new_xp: int
    new_level: int
    new_streak: int
    last_active_date: date | None

    def level_changed(self, old_level: int) -> bool:
        return self.new_level > old_level


@dataclass(slots=True)
class ScoringEngine:
    base_xp: Mapping[Effort, int] = field(default_factory=lambda: dict(DEFAULT_BASE_XP))
    mood_factors: Mapping[MoodLevel, float] = field(
        default_factory=lambda: dict(DEFAULT_MOOD_FACTORS)
    )
    step_xp: int = 10
    level_cap_per_award: int = 1

    @classmethod
    def from_settings(cls, settings) -> ScoringEngine:
        return cls(
            base_xp={
                Effort.EASY: int(settings.xp_easy),
                Effort.MEDIUM: int(settings.xp_medium),
                Effort.HARD: int(settings.xp_hard),
            },
            step_xp=int(settings.step_xp),
            level_cap_per_award=int(settings.level_cap_per_award),
        )

    def base_for(self, task: Task) -> int:
        return int(self.base_xp.get(task.effective_effort, self.base_xp[Effort.MEDIUM]))

    def mood_factor(self, mood: MoodLevel) -> float:
        return float(self.mood_factors.get(MoodLevel(mood), 1.0))

    def bet_factor(self, task: Task, outcome: BetOutcome) -> float:
        if task.bet is None or outcome != BetOutcome.ON_TIME:
            return 1.0
        return float(task.bet.multiplier)

    def task_xp(self, task: Task, mood: MoodLevel, outcome: BetOutcome) -> int:
        raw = self.base_for(task) * self.bet_factor(task, outcome) * self.mood_factor(mood)
        return max(0, int(round(raw)))

    def capped_level(self, old_level: int, new_xp: int) -> int:
        target = max(old_level, level_for_xp(new_xp))
        if self.level_cap_per_award > 0:
            target = min(target, old_level + self.level_cap_per_award)
        return target

    def score(
        self,
        task: Task,
        mood: MoodLevel,
        outcome: BetOutcome,
        progress: UserProgress,
        today: date,
    ) -> ScoreResult:
        """Reward for completing `task` on calendar day `today`."""
        xp_delta = self.task_xp(task, mood, outcome)
        new_xp = progress.xp + xp_delta
        new_level = self.capped_level(progress.level, new_xp)
        new_streak = next_streak(progress.streak_count, progress.last_active_date, today)

        logger.debug(
            "Scored task id=%s effort=%s outcome=%s mood=%s xp_delta=%s level=%s->%s streak=%s",
            task.id,
            task.effective_effort.value,
            outcome.value,
            int(mood),
            xp_delta,
            progress.level,
            new_level,
            new_streak,
        )
        return ScoreResult(
            xp_delta=xp_delta,
            new_xp=new_xp,
            new_level=new_level,
            new_streak=new_streak,
            last_active_date=today,
        )

    def score_step(self, progress: UserProgress) -> ScoreResult:
        """Flat award for a finished micro-step; streak is left to task completion."""
        new_xp = progress.xp + self.step_xp
        return ScoreResult(
            xp_delta=self.step_xp,
            new_xp=new_xp,
            new_level=self.capped_level(progress.level, new_xp),
            new_streak=progress.streak_count,
            last_active_date=progress.last_active_date,
        )
