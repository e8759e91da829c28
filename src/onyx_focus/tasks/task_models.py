# src/onyx_focus/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import IntEnum, StrEnum

from ..core.clock import MS_PER_MINUTE

# Tasks with an estimate at or below this many minutes count as easy.
EASY_MAX_MINUTES = 15
MEDIUM_MAX_MINUTES = 30


class Effort(StrEnum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

    @classmethod
    def from_raw(cls, raw: str | None) -> Effort | None:
        if not raw:
            return None
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            return None

    @classmethod
    def from_minutes(cls, minutes: float) -> Effort:
        if minutes <= EASY_MAX_MINUTES:
            return cls.EASY
        if minutes <= MEDIUM_MAX_MINUTES:
            return cls.MEDIUM
        return cls.HARD


class MoodLevel(IntEnum):
    """Energy check-in on a 1..5 battery scale."""

    EMPTY = 1
    LOW = 2
    OKAY = 3
    GOOD = 4
    FULL = 5

    @classmethod
    def from_raw(cls, raw: object) -> MoodLevel | None:
        if raw is None or isinstance(raw, bool):
            return None
        if isinstance(raw, float) and not raw.is_integer():
            return None
        try:
            return cls(int(raw))  # type: ignore[call-overload]
        except (TypeError, ValueError):
            return None


class BetOutcome(StrEnum):
    ON_TIME = "on_time"
    LATE = "late"


@dataclass(slots=True, frozen=True)
class Bet:
    """
    A time wager on the current task.

    Embedded in its Task. A new wager replaces the previous Bet wholesale.
    """

    start_time_ms: int
    duration_minutes: float
    multiplier: float = 2.0

    def __post_init__(self) -> None:
        if not self.duration_minutes > 0:
            raise ValueError("duration_minutes must be positive")

    @property
    def deadline_ms(self) -> int:
        return self.start_time_ms + int(round(self.duration_minutes * MS_PER_MINUTE))


@dataclass(slots=True)
class MicroStep:
    text: str
    difficulty_score: int = 2  # 1=easy (candy), 2=medium, 3=hard
    is_candy: bool = False
    is_completed: bool = False
    completed_at_ms: int | None = None

    @property
    def is_easy_win(self) -> bool:
        return self.is_candy or self.difficulty_score == 1


@dataclass(slots=True)
class Task:
    id: str
    title: str
    created_at_ms: int

    steps: list[MicroStep] = field(default_factory=list)
    effort: Effort | None = None
    estimated_minutes: int | None = None
    mood_at_start: MoodLevel | None = None
    current_step_index: int = 0

    is_completed: bool = False
    completed_at_ms: int | None = None
    mood_at_completion: MoodLevel | None = None
    forgiven: bool = False

    # Kept after resolution for audit; closed once the task is completed.
    bet: Bet | None = None
    bet_outcome: BetOutcome | None = None

    @property
    def effective_effort(self) -> Effort:
        if self.effort is not None:
            return self.effort
        if self.estimated_minutes is not None:
            return Effort.from_minutes(self.estimated_minutes)
        return Effort.MEDIUM

    @property
    def has_open_bet(self) -> bool:
        return self.bet is not None and not self.is_completed

    @property
    def current_step(self) -> MicroStep | None:
        if 0 <= self.current_step_index < len(self.steps):
            return self.steps[self.current_step_index]
        return None


@dataclass(slots=True)
class UserProgress:
    xp: int = 0
    level: int = 1
    streak_count: int = 0
    last_active_date: date | None = None


@dataclass(slots=True)
class AchievementProgress:
    """Counters behind the achievements plus unlocked ids (id -> unlocked_at_ms)."""

    tasks_completed: int = 0
    candy_used: int = 0
    bets_won: int = 0
    unlocked: dict[str, int] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class StepProgress:
    current: int
    total: int
    percentage: int


@dataclass(slots=True)
class Snapshot:
    """Flat record handed to the persistence collaborator after each mutation."""

    backlog: list[Task] = field(default_factory=list)
    current_task_id: str | None = None
    xp: int = 0
    level: int = 1
    streak_count: int = 0
    last_active_date: date | None = None
    achievements: AchievementProgress = field(default_factory=AchievementProgress)
