# src/onyx_focus/focus/heartbeat.py

from __future__ import annotations

"""
Countdown heartbeat.

A read-only re-derivation of the bet countdown:
- remaining time is always deadline - now, never "previous remaining - ticks"
- the periodic signal only means "please recompute now"
- a foreground signal forces one immediate recompute after suspension
- at the deadline the display clamps to 00:00 and stays urgent until the bet
  is resolved; the deadline counts as passed only once now > deadline
- the heartbeat never fails a task by itself

It never mutates backlog data. The only write is the "deadline passed" note in
the BetEngine, consumed by the next completion.
"""

import asyncio
import contextlib
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from ..core.clock import MS_PER_MINUTE
from ..core.ports import Clock
from ..tasks.task_models import Bet
from .bet_engine import BetEngine

logger = logging.getLogger(__name__)

URGENT_THRESHOLD_MS = MS_PER_MINUTE


@dataclass(slots=True, frozen=True)
class Countdown:
    task_id: str
    remaining_ms: int
    text: str
    urgent: bool
    deadline_passed: bool


def format_mm_ss(remaining_ms: int) -> str:
    total_s = max(0, int(remaining_ms)) // 1000
    m, s = divmod(total_s, 60)
    return f"{m:02d}:{s:02d}"


def compute_countdown(
    task_id: str,
    bet: Bet,
    now_ms: int,
    *,
    urgent_threshold_ms: int = URGENT_THRESHOLD_MS,
) -> Countdown:
    remaining_ms = max(0, bet.deadline_ms - int(now_ms))
    return Countdown(
        task_id=task_id,
        remaining_ms=remaining_ms,
        text=format_mm_ss(remaining_ms),
        urgent=remaining_ms < urgent_threshold_ms,
        deadline_passed=int(now_ms) > bet.deadline_ms,
    )


class OpenBetSource(Protocol):
    """What the heartbeat needs from the store: a copy of the open wager, if any."""

    def open_bet(self) -> tuple[str, Bet] | None: ...


CountdownCallback = Callable[[Countdown | None], None]


class Heartbeat:
    def __init__(
        self,
        source: OpenBetSource,
        bet_engine: BetEngine,
        clock: Clock,
        *,
        urgent_threshold_ms: int = URGENT_THRESHOLD_MS,
        on_update: CountdownCallback | None = None,
    ) -> None:
        self._source = source
        self._bet_engine = bet_engine
        self._clock = clock
        self._urgent_threshold_ms = int(urgent_threshold_ms)
        self._on_update = on_update
        self._last: Countdown | None = None

    @property
    def last(self) -> Countdown | None:
        return self._last

    def is_active(self) -> bool:
        return self._source.open_bet() is not None

    def recompute(self, reason: str = "tick") -> Countdown | None:
        open_bet = self._source.open_bet()
        if open_bet is None:
            self._last = None
        else:
            task_id, bet = open_bet
            countdown = compute_countdown(
                task_id,
                bet,
                self._clock.now_ms(),
                urgent_threshold_ms=self._urgent_threshold_ms,
            )
            if countdown.deadline_passed:
                self._bet_engine.mark_deadline_passed(task_id, bet)
            self._last = countdown
            logger.debug(
                "Heartbeat %s task=%s remaining=%s urgent=%s",
                reason,
                task_id,
                countdown.text,
                countdown.urgent,
            )

        if self._on_update is not None:
            try:
                self._on_update(self._last)
            except Exception:
                logger.exception("Heartbeat update callback failed.")
        return self._last

    def tick(self) -> Countdown | None:
        return self.recompute("tick")

    def on_foreground(self) -> Countdown | None:
        return self.recompute("foreground")


async def run_heartbeat(
    heartbeat: Heartbeat,
    *,
    interval_seconds: float = 1.0,
    foreground: asyncio.Event | None = None,
    stop_event: asyncio.Event | None = None,
) -> None:
    """
    Drive the heartbeat.

    Every interval_seconds (while a bet is open):
    - recompute the countdown from wall-clock anchors
    When `foreground` is set:
    - recompute immediately, then clear the event

    Stops when stop_event is set; cancelling the coroutine works as well.
    """
    sleep_s = max(0.01, float(interval_seconds))
    if foreground is None:
        foreground = asyncio.Event()

    while stop_event is None or not stop_event.is_set():
        woke_by_foreground = False
        try:
            await asyncio.wait_for(foreground.wait(), timeout=sleep_s)
            woke_by_foreground = True
        except asyncio.TimeoutError:
            pass

        try:
            if woke_by_foreground:
                foreground.clear()
                heartbeat.on_foreground()
            elif heartbeat.is_active():
                heartbeat.tick()
        except Exception:
            logger.exception("Heartbeat recompute failed")


@dataclass(slots=True)
class HeartbeatRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event
    foreground_event: asyncio.Event

    def signal_foreground(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.foreground_event.set)
        except Exception:
            logger.debug("Failed to signal foreground.", exc_info=True)

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except Exception:
            logger.debug("Failed to signal heartbeat stop.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def start_heartbeat_in_background(
    heartbeat: Heartbeat, *, interval_seconds: float = 1.0
) -> HeartbeatRunner | None:
    """
    Run the heartbeat loop in a background thread with its own event loop,
    so the blocking console REPL can run in parallel.
    """
    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()
        foreground_event = asyncio.Event()

        holder["loop"] = loop
        holder["stop_event"] = stop_event
        holder["foreground_event"] = foreground_event
        ready.set()

        try:
            loop.run_until_complete(
                run_heartbeat(
                    heartbeat,
                    interval_seconds=interval_seconds,
                    foreground=foreground_event,
                    stop_event=stop_event,
                )
            )
        finally:
            with contextlib.suppress(Exception):
                loop.stop()
            with contextlib.suppress(Exception):
                loop.close()

    t = threading.Thread(target=runner, name="onyx-heartbeat", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    stop_event = holder.get("stop_event")
    foreground_event = holder.get("foreground_event")

    if (
        not isinstance(loop, asyncio.AbstractEventLoop)
        or not isinstance(stop_event, asyncio.Event)
        or not isinstance(foreground_event, asyncio.Event)
    ):
        logger.error("Heartbeat thread did not initialize properly.")
        return None

    logger.info("Heartbeat background thread started (interval=%.2fs).", interval_seconds)
    return HeartbeatRunner(
        thread=t, loop=loop, stop_event=stop_event, foreground_event=foreground_event
    )
