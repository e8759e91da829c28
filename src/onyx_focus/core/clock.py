# src/onyx_focus/core/clock.py

from __future__ import annotations

import time
from datetime import date, datetime

MS_PER_MINUTE = 60_000


class SystemClock:
    """Wall-clock time source used outside of tests."""

    def now_ms(self) -> int:
        return time.time_ns() // 1_000_000


def local_date(ts_ms: int) -> date:
    """Calendar day (local time) of an epoch-millisecond timestamp."""
    return datetime.fromtimestamp(ts_ms / 1000).date()
