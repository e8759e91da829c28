# src/onyx_focus/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps the clock and persistence swappable and makes testing easier.
"""

from typing import Any, Protocol


class Clock(Protocol):
    """Single source of "now" as integer epoch milliseconds."""

    def now_ms(self) -> int: ...


class SnapshotRepo(Protocol):
    """
    Persistence collaborator for the flat session snapshot.

    load() returns None when nothing usable is stored (missing or corrupt);
    the store then starts from empty defaults.
    """

    def load(self) -> Any | None: ...
    def save(self, snapshot: Any) -> None: ...


class StoreListener(Protocol):
    """Presentation-side observer of store events (task_completed, level_changed, ...)."""

    def __call__(self, event: Any) -> None: ...
