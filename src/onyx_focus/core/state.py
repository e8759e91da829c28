# src/onyx_focus/core/state.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..focus.bet_engine import BetEngine
from ..focus.heartbeat import Heartbeat
from ..gamification.suggestions import SuggestionSelector
from ..tasks.task_store import TaskStore
from .ports import Clock

if TYPE_CHECKING:
    from ..focus.heartbeat import HeartbeatRunner


@dataclass
class AppState:
    """
    Everything a connector needs, passed by reference instead of module globals.

    The TaskStore is the only writer of session data; the heartbeat and the
    suggestion selector only read from it.
    """

    settings: Any
    clock: Clock
    task_store: TaskStore
    bet_engine: BetEngine
    heartbeat: Heartbeat
    selector: SuggestionSelector

    heartbeat_runner: HeartbeatRunner | None = None
    # Last unstuck suggestion offered, accepted with "/unstuck take".
    pending_suggestion_id: str | None = None
    notices: list[str] = field(default_factory=list)
