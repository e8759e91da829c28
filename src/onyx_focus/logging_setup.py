# src/onyx_focus/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Minimum console level per logger prefix. Longest matching prefix wins.
# The heartbeat logs every second while a bet runs; the REPL only needs its warnings.
CONSOLE_THRESHOLDS: dict[str, int] = {
    "onyx_focus": logging.NOTSET,
    "onyx_focus.focus.heartbeat": logging.WARNING,
    "py.warnings": logging.ERROR,
}
FOREIGN_THRESHOLD = logging.ERROR


class _ConsoleThresholdFilter(logging.Filter):
    """Per-prefix minimum levels for the interactive console."""

    def __init__(self, thresholds: dict[str, int], default: int) -> None:
        super().__init__()
        self._rules = sorted(thresholds.items(), key=lambda kv: len(kv[0]), reverse=True)
        self._default = default

    def _threshold(self, name: str) -> int:
        for prefix, level in self._rules:
            if name == prefix or name.startswith(prefix + "."):
                return level
        return self._default

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= self._threshold(record.name)


def _console_handler(level: int, fmt: logging.Formatter) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(fmt)
    handler.addFilter(_ConsoleThresholdFilter(CONSOLE_THRESHOLDS, FOREIGN_THRESHOLD))
    return handler


def _file_handler(path: Path, level: int, fmt: logging.Formatter) -> logging.Handler:
    handler = logging.FileHandler(str(path), encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(fmt)
    return handler


def setup_logging(
    *,
    log_dir: str | Path = ".local/onyx",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Route logs to stderr (filtered) and to <log_dir>/onyx.log (unfiltered).

    Replaces any handlers already on the root logger, so it is safe to call again
    (tests, re-entry from main). Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "onyx.log"

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    root.addHandler(_console_handler(console_level, fmt))
    root.addHandler(_file_handler(log_file, file_level, fmt))

    logging.captureWarnings(True)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    return log_file
