# src/todo_keeper/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- Nothing required at import time; every value has a default.
- The composition root accepts an injected Settings, so tests never read the environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TODO"

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


def _env_int(name: str, default: int, *, minimum: int | None = None) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    if minimum is not None and value < minimum:
        return default
    return value


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
    db_path: Path

    # ---- Reminders ----
    reminder_lead_minutes: int
    reminder_sweep_seconds: int
    reminder_workers: int
    snooze_minutes: int
    console_notifications: bool

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "todo-keeper").strip() or "todo-keeper"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/todo-keeper"))
        db_path = _env_path(_k("DB_PATH"), data_dir / "tasks.sqlite3")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            db_path=db_path,
            reminder_lead_minutes=_env_int(_k("REMINDER_LEAD_MINUTES"), 5, minimum=0),
            reminder_sweep_seconds=_env_int(_k("REMINDER_SWEEP_SECONDS"), 60, minimum=1),
            reminder_workers=_env_int(_k("REMINDER_WORKERS"), 2, minimum=1),
            snooze_minutes=_env_int(_k("SNOOZE_MINUTES"), 10, minimum=1),
            console_notifications=_env_bool(_k("CONSOLE_NOTIFICATIONS"), True),
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
