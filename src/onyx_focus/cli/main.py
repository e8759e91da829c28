# src/onyx_focus/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then starts:
- the countdown heartbeat in a background thread (optional),
- the console REPL in the main thread.
"""

from __future__ import annotations

import logging

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..focus.heartbeat import start_heartbeat_in_background
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    log_dir = getattr(settings, "data_dir", ".local/onyx")
    setup_logging(log_dir=log_dir, console_level=console_level)

    logger.info("Starting %s...", getattr(settings, "app_name", "onyx"))

    state = create_initial_state(settings=settings)

    if settings.heartbeat_enabled:
        state.heartbeat_runner = start_heartbeat_in_background(
            state.heartbeat, interval_seconds=settings.heartbeat_interval_seconds
        )
        # Resync once on startup: the process may have been suspended with a bet open.
        if state.heartbeat_runner is not None:
            state.heartbeat_runner.signal_foreground()

    try:
        run_console_loop(state)
    finally:
        if state.heartbeat_runner is not None:
            state.heartbeat_runner.stop()
            state.heartbeat_runner.join(timeout=5.0)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
