# src/onyx_focus/focus/bet_engine.py

from __future__ import annotations

"""
Time-bet state machine.

    NO_BET --place--> COMMITTED --complete before deadline--> HONORED
                          |
                          +--complete after deadline / deadline observed--> EXPIRED
                          +--forgive--> FORGIVEN

The engine never forces completion. When the heartbeat sees the deadline pass
it only records that fact here; the next completion consumes it.
"""

import logging
import threading
from enum import StrEnum

from ..core.ports import Clock
from ..tasks.task_models import Bet, BetOutcome, Task

logger = logging.getLogger(__name__)


class BetState(StrEnum):
    NO_BET = "no_bet"
    COMMITTED = "committed"
    HONORED = "honored"
    EXPIRED = "expired"
    FORGIVEN = "forgiven"


class BetEngine:
    def __init__(self, clock: Clock, *, multiplier: float = 2.0) -> None:
        self._clock = clock
        self._multiplier = float(multiplier)
        self._lock = threading.Lock()
        # task id -> the wager whose deadline was seen passing
        self._deadline_passed: dict[str, Bet] = {}

    @property
    def multiplier(self) -> float:
        return self._multiplier

    # ---- transitions ----

    def place(self, task: Task, minutes: float) -> Bet:
        """
        Attach a fresh Bet to `task`, replacing any previous one wholesale.

        Raises ValueError for a non-positive duration (Bet validates itself).
        """
        bet = Bet(
            start_time_ms=self._clock.now_ms(),
            duration_minutes=minutes,
            multiplier=self._multiplier,
        )
        task.bet = bet
        task.bet_outcome = None
        self.forget(task.id)
        logger.info(
            "Bet placed task=%s minutes=%s deadline_ms=%s", task.id, minutes, bet.deadline_ms
        )
        return bet

    def resolve(self, task: Task, now_ms: int) -> BetOutcome:
        """Outcome for completing `task` at `now_ms`; closes the wager."""
        bet = task.bet
        if bet is None:
            return BetOutcome.ON_TIME

        with self._lock:
            observed = self._deadline_passed.pop(task.id, None) == bet

        outcome = BetOutcome.LATE if observed or now_ms > bet.deadline_ms else BetOutcome.ON_TIME
        task.bet_outcome = outcome
        logger.info("Bet resolved task=%s outcome=%s", task.id, outcome.value)
        return outcome

    def clear(self, task: Task) -> None:
        """Drop a dangling (unresolved) wager, e.g. when focus moves elsewhere."""
        if task.bet is not None and not task.is_completed:
            logger.info("Clearing dangling bet on task=%s", task.id)
            task.bet = None
            task.bet_outcome = None
        self.forget(task.id)

    def forget(self, task_id: str) -> None:
        with self._lock:
            self._deadline_passed.pop(task_id, None)

    # ---- observation (read-only towards the task) ----

    def mark_deadline_passed(self, task_id: str, bet: Bet) -> None:
        """Record that `bet` ran out. A later wager on the same task is not affected."""
        with self._lock:
            if self._deadline_passed.get(task_id) != bet:
                logger.info("Deadline passed for task=%s", task_id)
            self._deadline_passed[task_id] = bet

    def deadline_passed(self, task_id: str, bet: Bet | None = None) -> bool:
        with self._lock:
            seen = self._deadline_passed.get(task_id)
        if bet is None:
            return seen is not None
        return seen == bet

    def state_of(self, task: Task, now_ms: int | None = None) -> BetState:
        bet = task.bet
        if bet is None:
            return BetState.NO_BET

        if task.is_completed:
            if task.forgiven:
                return BetState.FORGIVEN
            if task.bet_outcome == BetOutcome.LATE:
                return BetState.EXPIRED
            return BetState.HONORED

        if now_ms is None:
            now_ms = self._clock.now_ms()
        if self.deadline_passed(task.id, bet) or now_ms > bet.deadline_ms:
            return BetState.EXPIRED
        return BetState.COMMITTED
