# tests/test_bet_engine.py

from __future__ import annotations

import pytest

from onyx_focus.focus.bet_engine import BetEngine, BetState
from onyx_focus.tasks.task_models import BetOutcome, Task

from .fakes import ManualClock


def _task() -> Task:
    return Task(id="t1", title="inbox zero", created_at_ms=0)


def test_state_walk_to_honored(clock: ManualClock, bet_engine: BetEngine) -> None:
    task = _task()
    assert bet_engine.state_of(task) == BetState.NO_BET

    bet = bet_engine.place(task, 10)
    assert bet.start_time_ms == clock.now
    assert bet.deadline_ms == clock.now + 600_000
    assert bet.multiplier == 2.0
    assert bet_engine.state_of(task) == BetState.COMMITTED

    clock.advance(minutes=10)  # exactly at the deadline still counts
    assert bet_engine.resolve(task, clock.now) == BetOutcome.ON_TIME
    task.is_completed = True
    assert bet_engine.state_of(task) == BetState.HONORED


def test_completion_after_deadline_is_late(clock: ManualClock, bet_engine: BetEngine) -> None:
    task = _task()
    bet_engine.place(task, 5)
    clock.advance(minutes=5, ms=1)
    assert bet_engine.state_of(task) == BetState.EXPIRED
    assert bet_engine.resolve(task, clock.now) == BetOutcome.LATE
    task.is_completed = True
    assert bet_engine.state_of(task) == BetState.EXPIRED


def test_observed_deadline_is_consumed_by_resolve(clock: ManualClock, bet_engine: BetEngine) -> None:
    task = _task()
    bet_engine.place(task, 1)
    bet_engine.mark_deadline_passed(task.id, task.bet)
    assert bet_engine.state_of(task) == BetState.EXPIRED
    # Even if "now" is still inside the window, the observation wins.
    assert bet_engine.resolve(task, clock.now) == BetOutcome.LATE
    assert not bet_engine.deadline_passed(task.id)


def test_no_bet_resolves_on_time(clock: ManualClock, bet_engine: BetEngine) -> None:
    task = _task()
    assert bet_engine.resolve(task, clock.now) == BetOutcome.ON_TIME
    assert task.bet_outcome is None


def test_new_bet_replaces_previous_wholesale(clock: ManualClock, bet_engine: BetEngine) -> None:
    task = _task()
    first = bet_engine.place(task, 10)
    bet_engine.mark_deadline_passed(task.id, task.bet)
    clock.advance(minutes=3)
    second = bet_engine.place(task, 25)
    assert task.bet is second
    assert second.start_time_ms == first.start_time_ms + 180_000
    assert second.duration_minutes == 25
    assert not bet_engine.deadline_passed(task.id)


@pytest.mark.parametrize("minutes", [0, -5])
def test_non_positive_duration_rejected(bet_engine: BetEngine, minutes: int) -> None:
    task = _task()
    with pytest.raises(ValueError):
        bet_engine.place(task, minutes)
    assert task.bet is None


def test_clear_drops_only_unresolved_bets(bet_engine: BetEngine) -> None:
    open_task = _task()
    bet_engine.place(open_task, 10)
    bet_engine.clear(open_task)
    assert open_task.bet is None

    closed = _task()
    bet_engine.place(closed, 10)
    closed.is_completed = True
    bet_engine.clear(closed)
    assert closed.bet is not None


def test_forgiven_state(bet_engine: BetEngine) -> None:
    task = _task()
    bet_engine.place(task, 10)
    task.is_completed = True
    task.forgiven = True
    assert bet_engine.state_of(task) == BetState.FORGIVEN


def test_stale_observation_does_not_touch_new_bet(clock: ManualClock, bet_engine: BetEngine) -> None:
    task = _task()
    old = bet_engine.place(task, 1)
    clock.advance(minutes=2)
    bet_engine.place(task, 30)

    # The expiry of the old wager is reported after the new one was placed.
    bet_engine.mark_deadline_passed(task.id, old)
    assert bet_engine.state_of(task) == BetState.COMMITTED
    assert not bet_engine.deadline_passed(task.id, task.bet)
    assert bet_engine.resolve(task, clock.now) == BetOutcome.ON_TIME
