# src/onyx_focus/tasks/task_store.py

from __future__ import annotations

import copy
import logging
import math
import threading
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace

from ..core.clock import local_date
from ..core.events import StoreEvent, StoreEventKind
from ..core.ports import Clock, SnapshotRepo, StoreListener
from ..core.results import ErrorKind, OpResult
from ..focus.bet_engine import BetEngine
from ..gamification.achievements import Achievement, AchievementEngine
from ..gamification.forgiveness import Forgiveness, ForgivenessPolicy
from ..gamification.scoring import ScoreResult, ScoringEngine
from .task_models import (
    AchievementProgress,
    Bet,
    BetOutcome,
    Effort,
    MicroStep,
    MoodLevel,
    Snapshot,
    StepProgress,
    Task,
    UserProgress,
)

logger = logging.getLogger(__name__)


def _new_task_id() -> str:
    return f"task_{uuid.uuid4().hex[:12]}"


@dataclass(slots=True, frozen=True)
class Completion:
    task_id: str
    outcome: BetOutcome
    xp_delta: int
    old_level: int
    new_level: int
    streak_count: int
    achievements: tuple[str, ...] = ()

    @property
    def level_up(self) -> bool:
        return self.new_level > self.old_level


class TaskStore:
    """
    Authoritative in-process store: backlog, current task pointer, user progress.

    Single writer:
    - every mutation runs under one re-entrant lock, so operations never interleave
    - rejected operations return an OpResult error and leave state untouched
    - after each successful mutation the snapshot is persisted (best-effort)
      and events are published to listeners (outside the lock)

    The current task is kept as an id and resolved through the backlog on every
    access, so there is never a second copy of it.
    """

    def __init__(
        self,
        *,
        clock: Clock,
        bet_engine: BetEngine | None = None,
        scoring: ScoringEngine | None = None,
        forgiveness: ForgivenessPolicy | None = None,
        achievements: AchievementEngine | None = None,
        snapshot_repo: SnapshotRepo | None = None,
        id_factory: Callable[[], str] = _new_task_id,
    ) -> None:
        self._clock = clock
        self._bet_engine = bet_engine or BetEngine(clock)
        self._scoring = scoring or ScoringEngine()
        self._forgiveness = forgiveness or ForgivenessPolicy()
        self._achievement_engine = achievements or AchievementEngine()
        self._snapshot_repo = snapshot_repo
        self._id_factory = id_factory

        self._lock = threading.RLock()
        self._backlog: dict[str, Task] = {}
        self._current_id: str | None = None
        self._progress = UserProgress()
        self._achievements = AchievementProgress()
        self._last_resolved_id: str | None = None
        self._listeners: list[StoreListener] = []

        self._hydrate()
        logger.info(
            "TaskStore ready tasks=%d xp=%d level=%d streak=%d",
            len(self._backlog),
            self._progress.xp,
            self._progress.level,
            self._progress.streak_count,
        )

    @property
    def bet_engine(self) -> BetEngine:
        return self._bet_engine

    # ---- low-level helpers ----

    def _hydrate(self) -> None:
        if self._snapshot_repo is None:
            return
        try:
            snap = self._snapshot_repo.load()
        except Exception:
            logger.exception("Snapshot load failed; starting from empty defaults.")
            snap = None
        if snap is None:
            return

        self._backlog = {t.id: t for t in snap.backlog}
        current = self._backlog.get(snap.current_task_id) if snap.current_task_id else None
        self._current_id = current.id if current is not None and not current.is_completed else None
        self._progress = UserProgress(
            xp=max(0, snap.xp),
            level=max(1, snap.level),
            streak_count=max(0, snap.streak_count),
            last_active_date=snap.last_active_date,
        )
        self._achievements = copy.deepcopy(snap.achievements)

        # Open bets may only live on the current task.
        for task in self._backlog.values():
            if task.id != self._current_id:
                self._bet_engine.clear(task)

    def _current(self) -> Task | None:
        if self._current_id is None:
            return None
        return self._backlog.get(self._current_id)

    def _no_current_failure(self, action: str) -> OpResult:
        if self._last_resolved_id is not None:
            return OpResult.failure(
                ErrorKind.ALREADY_RESOLVED,
                f"Task {self._last_resolved_id} is already resolved; nothing to {action}.",
            )
        return OpResult.failure(ErrorKind.INVALID_STATE, f"No task in focus to {action}.")

    def _build_snapshot(self) -> Snapshot:
        return Snapshot(
            backlog=copy.deepcopy(list(self._backlog.values())),
            current_task_id=self._current_id,
            xp=self._progress.xp,
            level=self._progress.level,
            streak_count=self._progress.streak_count,
            last_active_date=self._progress.last_active_date,
            achievements=copy.deepcopy(self._achievements),
        )

    def _persist(self) -> None:
        if self._snapshot_repo is None:
            return
        try:
            self._snapshot_repo.save(self._build_snapshot())
        except Exception:
            logger.exception("Snapshot save failed (state kept in memory).")

    def _emit(self, events: Iterable[StoreEvent]) -> None:
        listeners = list(self._listeners)
        for event in events:
            for listener in listeners:
                try:
                    listener(event)
                except Exception:
                    logger.exception("Store listener failed on %s", event.kind.value)

    def _apply_score(self, result: ScoreResult) -> int:
        """Apply a scoring result to progress; returns the previous level."""
        old_level = self._progress.level
        self._progress.xp = max(self._progress.xp, result.new_xp)
        self._progress.level = max(old_level, result.new_level)
        self._progress.streak_count = result.new_streak
        self._progress.last_active_date = result.last_active_date
        return old_level

    @staticmethod
    def _achievement_events(task_id: str, unlocked: list[Achievement]) -> list[StoreEvent]:
        return [
            StoreEvent(
                StoreEventKind.ACHIEVEMENT_UNLOCKED,
                task_id,
                {"achievement_id": a.id, "name": a.name},
            )
            for a in unlocked
        ]

    # ---- read accessors ----

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Register an event listener; returns an unsubscribe callable."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    @property
    def backlog(self) -> list[Task]:
        """Copies of all tasks in insertion order."""
        with self._lock:
            return copy.deepcopy(list(self._backlog.values()))

    @property
    def current_task(self) -> Task | None:
        with self._lock:
            task = self._current()
            return copy.deepcopy(task) if task is not None else None

    @property
    def progress(self) -> UserProgress:
        with self._lock:
            return replace(self._progress)

    @property
    def achievements(self) -> AchievementProgress:
        with self._lock:
            return copy.deepcopy(self._achievements)

    def get_task(self, task_id: str) -> Task | None:
        with self._lock:
            task = self._backlog.get(task_id)
            return copy.deepcopy(task) if task is not None else None

    def open_bet(self) -> tuple[str, Bet] | None:
        """The current task's unresolved wager (Bet is immutable, safe to share)."""
        with self._lock:
            task = self._current()
            if task is None or not task.has_open_bet or task.bet is None:
                return None
            return task.id, task.bet

    def snapshot(self) -> Snapshot:
        with self._lock:
            return self._build_snapshot()

    def get_progress(self) -> StepProgress:
        """Micro-step progress of the current task (zeros when nothing is in focus)."""
        with self._lock:
            task = self._current()
            if task is None:
                return StepProgress(current=0, total=0, percentage=0)
            done = sum(1 for s in task.steps if s.is_completed)
            total = len(task.steps)
            pct = round(done * 100 / total) if total else 0
            return StepProgress(current=done, total=total, percentage=pct)

    # ---- mutations ----

    def add_task(
        self,
        title: str,
        *,
        steps: Iterable[MicroStep] | None = None,
        effort: Effort | None = None,
        estimated_minutes: int | None = None,
        mood_at_start: MoodLevel | None = None,
    ) -> OpResult[Task]:
        title = (title or "").strip()
        if not title:
            return OpResult.failure(ErrorKind.INVALID_ARGUMENT, "Task title is required.")
        if estimated_minutes is not None and estimated_minutes <= 0:
            return OpResult.failure(
                ErrorKind.INVALID_ARGUMENT, "estimated_minutes must be positive."
            )

        with self._lock:
            task = Task(
                id=self._id_factory(),
                title=title,
                created_at_ms=self._clock.now_ms(),
                steps=[replace(s) for s in steps or []],
                effort=effort,
                estimated_minutes=estimated_minutes,
                mood_at_start=mood_at_start,
            )
            if task.id in self._backlog:
                return OpResult.failure(ErrorKind.INVALID_STATE, f"Duplicate task id {task.id}.")
            self._backlog[task.id] = task
            self._persist()
            result = copy.deepcopy(task)

        logger.info("Task added id=%s effort=%s", task.id, task.effective_effort.value)
        self._emit([StoreEvent(StoreEventKind.TASK_ADDED, task.id)])
        return OpResult.success(result)

    def set_current_task(self, task_id: str | None) -> OpResult[Task | None]:
        """
        Focus on `task_id` (None clears focus).

        An open wager left on the previously focused task is dropped.
        """
        if task_id is None:
            return self._clear_focus(abandoned=False)

        with self._lock:
            task = self._backlog.get(task_id)
            if task is None:
                return OpResult.failure(ErrorKind.NOT_FOUND, f"No task with id {task_id}.")
            if task.is_completed:
                return OpResult.failure(
                    ErrorKind.ALREADY_RESOLVED, f"Task {task_id} is already resolved."
                )
            if task_id == self._current_id:
                return OpResult.success(copy.deepcopy(task))

            previous = self._current()
            if previous is not None:
                self._bet_engine.clear(previous)

            self._current_id = task.id
            self._last_resolved_id = None
            self._persist()
            result = copy.deepcopy(task)

        logger.info("Current task -> %s", task_id)
        self._emit([StoreEvent(StoreEventKind.CURRENT_CHANGED, task_id)])
        return OpResult.success(result)

    def abandon_task(self) -> OpResult[Task | None]:
        """Drop focus (and any open wager) without resolving the task."""
        return self._clear_focus(abandoned=True)

    def _clear_focus(self, *, abandoned: bool) -> OpResult[Task | None]:
        with self._lock:
            previous = self._current()
            if previous is None:
                if abandoned:
                    return OpResult.failure(
                        ErrorKind.INVALID_STATE, "No task in focus to abandon."
                    )
                return OpResult.success(None)
            self._bet_engine.clear(previous)
            self._current_id = None
            self._persist()
            result = copy.deepcopy(previous)

        kind = StoreEventKind.TASK_ABANDONED if abandoned else StoreEventKind.CURRENT_CHANGED
        logger.info("Focus cleared (task=%s, abandoned=%s)", previous.id, abandoned)
        self._emit([StoreEvent(kind, previous.id)])
        return OpResult.success(result)

    def place_bet(self, minutes: float) -> OpResult[Bet]:
        if (
            isinstance(minutes, bool)
            or not isinstance(minutes, (int, float))
            or not math.isfinite(minutes)
            or minutes <= 0
        ):
            return OpResult.failure(
                ErrorKind.INVALID_ARGUMENT, f"Bet duration must be positive, got {minutes!r}."
            )

        with self._lock:
            task = self._current()
            if task is None:
                return OpResult.failure(ErrorKind.INVALID_STATE, "No task in focus to bet on.")
            if task.has_open_bet:
                return OpResult.failure(
                    ErrorKind.INVALID_STATE, f"Task {task.id} already has an open bet."
                )

            bet = self._bet_engine.place(task, minutes)
            self._persist()

        self._emit(
            [
                StoreEvent(
                    StoreEventKind.BET_PLACED,
                    task.id,
                    {"duration_minutes": bet.duration_minutes, "deadline_ms": bet.deadline_ms},
                )
            ]
        )
        return OpResult.success(bet)

    def complete_task(self, mood: MoodLevel | int | str | None) -> OpResult[Completion]:
        mood_level = MoodLevel.from_raw(mood)
        if mood_level is None:
            return OpResult.failure(
                ErrorKind.INVALID_ARGUMENT, f"Mood must be a level 1..5, got {mood!r}."
            )

        with self._lock:
            task = self._current()
            if task is None:
                return self._no_current_failure("complete")
            if task.is_completed:
                return OpResult.failure(
                    ErrorKind.ALREADY_RESOLVED, f"Task {task.id} is already resolved."
                )

            now_ms = self._clock.now_ms()
            outcome = self._bet_engine.resolve(task, now_ms)
            result = self._scoring.score(
                task, mood_level, outcome, self._progress, local_date(now_ms)
            )
            old_level = self._apply_score(result)
            unlocked = self._achievement_engine.on_task_completed(
                self._achievements,
                streak=self._progress.streak_count,
                bet_won=task.bet is not None and outcome == BetOutcome.ON_TIME,
                at_ms=now_ms,
            )

            task.is_completed = True
            task.completed_at_ms = now_ms
            task.mood_at_completion = mood_level
            self._current_id = None
            self._last_resolved_id = task.id
            self._persist()

            completion = Completion(
                task_id=task.id,
                outcome=outcome,
                xp_delta=result.xp_delta,
                old_level=old_level,
                new_level=self._progress.level,
                streak_count=self._progress.streak_count,
                achievements=tuple(a.id for a in unlocked),
            )

        logger.info(
            "Task completed id=%s outcome=%s xp+%d level=%d streak=%d",
            completion.task_id,
            outcome.value,
            completion.xp_delta,
            completion.new_level,
            completion.streak_count,
        )
        events = [
            StoreEvent(
                StoreEventKind.TASK_COMPLETED,
                completion.task_id,
                {"xp_delta": completion.xp_delta, "outcome": outcome.value},
            )
        ]
        if completion.level_up:
            events.append(
                StoreEvent(
                    StoreEventKind.LEVEL_CHANGED,
                    completion.task_id,
                    {"old_level": old_level, "new_level": completion.new_level},
                )
            )
        events.extend(self._achievement_events(completion.task_id, unlocked))
        self._emit(events)
        return OpResult.success(completion)

    def forgive_task(self, task_id: str | None = None) -> OpResult[Forgiveness]:
        """
        Close the task in focus with zero XP (no streak or level change).

        With `task_id`, a task that is already resolved reports AlreadyResolved.
        """
        with self._lock:
            if task_id is not None:
                task = self._backlog.get(task_id)
                if task is None:
                    return OpResult.failure(ErrorKind.NOT_FOUND, f"No task with id {task_id}.")
                if not task.is_completed and task.id != self._current_id:
                    return OpResult.failure(
                        ErrorKind.INVALID_STATE, f"Task {task_id} is not the task in focus."
                    )
            else:
                task = self._current()
                if task is None:
                    return self._no_current_failure("forgive")

            check = self._forgiveness.check(task)
            if check.error is not None:
                return OpResult.failure(check.error, check.message)

            now_ms = self._clock.now_ms()
            forgiveness = self._forgiveness.apply(task, now_ms)
            unlocked = self._achievement_engine.on_forgiven(self._achievements, at_ms=now_ms)
            self._bet_engine.forget(task.id)
            if self._current_id == task.id:
                self._current_id = None
            self._last_resolved_id = task.id
            self._persist()

        logger.info("Task forgiven id=%s (had_bet=%s)", forgiveness.task_id, forgiveness.had_bet)
        self._emit(
            [StoreEvent(StoreEventKind.TASK_FORGIVEN, forgiveness.task_id)]
            + self._achievement_events(forgiveness.task_id, unlocked)
        )
        return OpResult.success(forgiveness)

    # ---- micro-steps ----

    def complete_current_step(self) -> OpResult[MicroStep]:
        """Mark the current step done, award step XP and move to the next open step."""
        with self._lock:
            task = self._current()
            if task is None:
                return OpResult.failure(ErrorKind.INVALID_STATE, "No task in focus.")
            step = task.current_step
            if step is None or step.is_completed:
                return OpResult.failure(ErrorKind.INVALID_STATE, "No open step to complete.")

            step.is_completed = True
            step.completed_at_ms = self._clock.now_ms()

            old_level = self._apply_score(self._scoring.score_step(self._progress))
            new_level = self._progress.level

            idx = task.current_step_index
            nxt = idx + 1
            while nxt < len(task.steps) and task.steps[nxt].is_completed:
                nxt += 1
            if all(s.is_completed for s in task.steps):
                task.current_step_index = len(task.steps) - 1
            elif nxt < len(task.steps):
                task.current_step_index = nxt
            else:
                # Only earlier steps remain (e.g. after a jump to candy).
                task.current_step_index = next(
                    i for i, s in enumerate(task.steps) if not s.is_completed
                )

            self._persist()
            result = replace(step)
            task_id = task.id

        events = [StoreEvent(StoreEventKind.STEP_COMPLETED, task_id, {"step": result.text})]
        if new_level > old_level:
            events.append(
                StoreEvent(
                    StoreEventKind.LEVEL_CHANGED,
                    task_id,
                    {"old_level": old_level, "new_level": new_level},
                )
            )
        self._emit(events)
        return OpResult.success(result)

    def skip_current_step(self) -> OpResult[MicroStep]:
        """Move to the next incomplete step, wrapping around."""
        with self._lock:
            task = self._current()
            if task is None:
                return OpResult.failure(ErrorKind.INVALID_STATE, "No task in focus.")
            total = len(task.steps)
            for i in range(total):
                idx = (task.current_step_index + 1 + i) % total
                if not task.steps[idx].is_completed:
                    task.current_step_index = idx
                    self._persist()
                    return OpResult.success(replace(task.steps[idx]))
            return OpResult.failure(ErrorKind.INVALID_STATE, "No open steps left.")

    def jump_to_candy(self) -> OpResult[MicroStep]:
        """Move to the first incomplete candy/easy step (counts towards candy achievements)."""
        with self._lock:
            task = self._current()
            if task is None:
                return OpResult.failure(ErrorKind.INVALID_STATE, "No task in focus.")
            found = next(
                (i for i, s in enumerate(task.steps) if not s.is_completed and s.is_easy_win),
                None,
            )
            if found is None:
                return OpResult.failure(ErrorKind.NOT_FOUND, "No easy step left in this task.")

            task.current_step_index = found
            unlocked = self._achievement_engine.on_candy_used(
                self._achievements, at_ms=self._clock.now_ms()
            )
            self._persist()
            result = replace(task.steps[found])
            task_id = task.id

        self._emit(self._achievement_events(task_id, unlocked))
        return OpResult.success(result)
