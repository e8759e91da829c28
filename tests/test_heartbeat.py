# tests/test_heartbeat.py

from __future__ import annotations

import asyncio

import pytest

from onyx_focus.focus.bet_engine import BetEngine
from onyx_focus.focus.heartbeat import (
    Countdown,
    Heartbeat,
    compute_countdown,
    format_mm_ss,
    run_heartbeat,
)
from onyx_focus.tasks.task_models import Bet, BetOutcome, MoodLevel
from onyx_focus.tasks.task_store import TaskStore

from .fakes import ManualClock


def _focus_with_bet(store: TaskStore, minutes: int) -> str:
    task = store.add_task("deep work").value
    assert task is not None
    assert store.set_current_task(task.id).ok
    assert store.place_bet(minutes).ok
    return task.id


@pytest.mark.parametrize(
    ("ms", "text"),
    [(0, "00:00"), (999, "00:00"), (1_000, "00:01"), (59_999, "00:59"), (600_000, "10:00"), (7_260_000, "121:00")],
)
def test_format_mm_ss(ms: int, text: str) -> None:
    assert format_mm_ss(ms) == text


def test_countdown_clamps_and_stays_urgent() -> None:
    bet = Bet(start_time_ms=0, duration_minutes=1)
    assert compute_countdown("t", bet, 0) == Countdown("t", 60_000, "01:00", False, False)
    assert compute_countdown("t", bet, 1).urgent
    late = compute_countdown("t", bet, 3_600_000)
    assert late.remaining_ms == 0
    assert late.text == "00:00"
    assert late.urgent and late.deadline_passed


@pytest.mark.parametrize("minutes", [1, 10, 25, 45])
def test_remaining_right_after_bet_is_full_duration(
    store: TaskStore, heartbeat: Heartbeat, minutes: int
) -> None:
    _focus_with_bet(store, minutes)
    countdown = heartbeat.tick()
    assert countdown is not None
    assert countdown.remaining_ms == minutes * 60_000


def test_foreground_after_suspension_corrects_drift(
    store: TaskStore, heartbeat: Heartbeat, clock: ManualClock
) -> None:
    _focus_with_bet(store, 10)
    heartbeat.tick()

    # Suspended: nine minutes pass without a single tick.
    clock.advance(minutes=9)
    countdown = heartbeat.on_foreground()

    assert countdown is not None
    assert countdown.remaining_ms == 60_000
    assert countdown.text == "01:00"
    assert not countdown.urgent


def test_heartbeat_never_resolves_the_task(
    store: TaskStore, heartbeat: Heartbeat, clock: ManualClock, bet_engine: BetEngine
) -> None:
    task_id = _focus_with_bet(store, 1)
    clock.advance(minutes=5)

    for _ in range(3):
        countdown = heartbeat.tick()
        assert countdown is not None
        assert countdown.text == "00:00"
        assert countdown.urgent

    task = store.current_task
    assert task is not None and task.id == task_id
    assert not task.is_completed
    assert bet_engine.deadline_passed(task_id)


def test_observed_expiry_makes_completion_late(
    store: TaskStore, heartbeat: Heartbeat, clock: ManualClock
) -> None:
    _focus_with_bet(store, 1)
    clock.advance(minutes=2)
    heartbeat.tick()

    # A clock that steps backwards does not undo the observation.
    clock.advance(seconds=-90)
    res = store.complete_task(3)
    assert res.ok and res.value is not None
    assert res.value.outcome == BetOutcome.LATE


def test_no_bet_means_no_countdown(store: TaskStore, heartbeat: Heartbeat) -> None:
    assert heartbeat.tick() is None
    assert not heartbeat.is_active()
    store.add_task("no wager")
    store.set_current_task("t1")
    assert heartbeat.on_foreground() is None


def test_resolved_bet_stops_countdown(store: TaskStore, heartbeat: Heartbeat) -> None:
    _focus_with_bet(store, 10)
    assert heartbeat.tick() is not None
    store.complete_task(4)
    assert heartbeat.tick() is None
    assert heartbeat.last is None


def test_callback_failure_is_swallowed(store: TaskStore, bet_engine: BetEngine, clock: ManualClock) -> None:
    def boom(_: Countdown | None) -> None:
        raise RuntimeError("render failed")

    hb = Heartbeat(store, bet_engine, clock, on_update=boom)
    _focus_with_bet(store, 10)
    assert hb.tick() is not None


@pytest.mark.asyncio
async def test_run_heartbeat_ticks_and_handles_foreground(
    store: TaskStore, bet_engine: BetEngine, clock: ManualClock
) -> None:
    seen: list[Countdown | None] = []
    hb = Heartbeat(store, bet_engine, clock, on_update=seen.append)
    _focus_with_bet(store, 10)

    foreground = asyncio.Event()
    runner = asyncio.create_task(
        run_heartbeat(hb, interval_seconds=0.01, foreground=foreground)
    )

    await asyncio.sleep(0.05)
    assert seen, "Heartbeat should tick while a bet is open"

    clock.advance(minutes=9)
    foreground.set()
    await asyncio.sleep(0.05)

    runner.cancel()
    with pytest.raises(asyncio.CancelledError):
        await runner

    assert not foreground.is_set()
    assert hb.last is not None
    assert hb.last.remaining_ms == 60_000


@pytest.mark.asyncio
async def test_run_heartbeat_stops_on_stop_event(heartbeat: Heartbeat) -> None:
    stop = asyncio.Event()
    stop.set()
    await asyncio.wait_for(run_heartbeat(heartbeat, interval_seconds=0.01, stop_event=stop), 1.0)


def test_tick_exactly_at_deadline_keeps_bet_on_time(
    store: TaskStore, heartbeat: Heartbeat, clock: ManualClock, bet_engine: BetEngine
) -> None:
    task_id = _focus_with_bet(store, 10)
    clock.advance(minutes=10)

    countdown = heartbeat.tick()
    assert countdown is not None
    assert countdown.text == "00:00"
    assert countdown.urgent
    assert not countdown.deadline_passed
    assert not bet_engine.deadline_passed(task_id)

    res = store.complete_task(MoodLevel.OKAY)
    assert res.value is not None
    assert res.value.outcome == BetOutcome.ON_TIME
    assert res.value.xp_delta == 110


def test_deadline_passes_one_ms_after_deadline() -> None:
    bet = Bet(start_time_ms=0, duration_minutes=1)
    assert not compute_countdown("t", bet, 60_000).deadline_passed
    assert compute_countdown("t", bet, 60_001).deadline_passed


class _StaleSource:
    """Hands out a wager read before the store replaced it."""

    def __init__(self, stale: tuple[str, Bet]) -> None:
        self.stale = stale

    def open_bet(self) -> tuple[str, Bet] | None:
        return self.stale


def test_stale_expiry_does_not_poison_new_bet(
    store: TaskStore, bet_engine: BetEngine, clock: ManualClock
) -> None:
    task_id = _focus_with_bet(store, 1)
    other = store.add_task("something else").value
    assert other is not None
    clock.advance(minutes=2)
    stale = store.open_bet()
    assert stale is not None

    # Focus moves away and back, and a fresh 30 minute wager is placed.
    store.set_current_task(other.id)
    store.set_current_task(task_id)
    assert store.place_bet(30).ok

    Heartbeat(_StaleSource(stale), bet_engine, clock).tick()

    res = store.complete_task(MoodLevel.OKAY)
    assert res.value is not None
    assert res.value.outcome == BetOutcome.ON_TIME
