# src/onyx_focus/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- Every tunable of the reward loop (XP table, bet multiplier, heartbeat cadence)
  lives here instead of being hard-coded in the engines.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "ONYX"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    snapshot_path: Path

    # ---- Reward loop ----
    bet_multiplier: float
    step_xp: int
    xp_easy: int
    xp_medium: int
    xp_hard: int
    level_cap_per_award: int

    # ---- Heartbeat ----
    heartbeat_enabled: bool
    heartbeat_interval_seconds: float
    urgent_threshold_seconds: int

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "onyx") or "onyx"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/onyx"))
        snapshot_path = _env_path(_k("SNAPSHOT_PATH"), data_dir / "snapshot.json")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            snapshot_path=snapshot_path,
            bet_multiplier=_env_float(_k("BET_MULTIPLIER"), 2.0),
            step_xp=_env_int(_k("STEP_XP"), 10),
            xp_easy=_env_int(_k("XP_EASY"), 30),
            xp_medium=_env_int(_k("XP_MEDIUM"), 50),
            xp_hard=_env_int(_k("XP_HARD"), 80),
            level_cap_per_award=_env_int(_k("LEVEL_CAP_PER_AWARD"), 1),
            heartbeat_enabled=_env_bool(_k("HEARTBEAT_ENABLED"), True),
            heartbeat_interval_seconds=_env_float(_k("HEARTBEAT_INTERVAL"), 1.0),
            urgent_threshold_seconds=_env_int(_k("URGENT_THRESHOLD_SECONDS"), 60),
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
