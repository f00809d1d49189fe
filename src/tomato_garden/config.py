# src/tomato_garden/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- Nothing required at import time: every value has a default.
- Bad values fall back to the default instead of crashing startup.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TOMATO"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


# Real environment variables win over .env entries.
load_dotenv(override=False)


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

    # ---- Front end ----
    console_enabled: bool
    user_id: int  # identity the console acts as

    # ---- Expiry sweeper ----
    sweeper_enabled: bool
    sweep_interval_seconds: float

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    db_path: Path
    db_timeout: float

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "tomato").strip() or "tomato"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)
        user_id = _env_int(_k("USER_ID"), 1)

        sweeper_enabled = _env_bool(_k("SWEEPER_ENABLED"), True)
        sweep_interval_seconds = _env_float(_k("SWEEP_INTERVAL_SECONDS"), 30.0)
        if sweep_interval_seconds <= 0:
            sweep_interval_seconds = 30.0

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/tomato"))
        db_path = _env_path(_k("DB_PATH"), data_dir / "tomato.sqlite3")
        db_timeout = _env_float(_k("DB_TIMEOUT"), 30.0)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            console_enabled=console_enabled,
            user_id=user_id,
            sweeper_enabled=sweeper_enabled,
            sweep_interval_seconds=sweep_interval_seconds,
            data_dir=data_dir,
            db_path=db_path,
            db_timeout=db_timeout,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
