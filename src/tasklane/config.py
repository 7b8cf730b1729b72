# src/tasklane/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- Every value has a sane default, so a bare `tasklane` run just works.
"""

from __future__ import annotations

import getpass
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TASKLANE"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


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


def _default_owner() -> str:
    try:
        return getpass.getuser() or "me"
    except Exception:
        return "me"


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    owner: str

    # ---- Local data paths ----
    data_dir: Path
    tasks_path: Path
    categories_path: Path
    backup_dir: Path
    backup_retention_days: int

    # ---- Reminders ----
    reminders_enabled: bool
    reminder_interval_seconds: float
    due_soon_hours: float

    # ---- Store policy ----
    validation_policy: str

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "tasklane").strip() or "tasklane"
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        owner = _env(_k("OWNER"), "").strip() or _default_owner()

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/tasklane"))
        tasks_path = _env_path(_k("TASKS_PATH"), data_dir / "tasks.json")
        categories_path = _env_path(_k("CATEGORIES_PATH"), data_dir / "categories.json")
        backup_dir = _env_path(_k("BACKUP_DIR"), data_dir / "backups")
        backup_retention_days = max(0, _env_int(_k("BACKUP_RETENTION_DAYS"), 30))

        reminders_enabled = _env_bool(_k("REMINDERS_ENABLED"), True)
        reminder_interval_seconds = _env_float(_k("REMINDER_INTERVAL_SECONDS"), 60.0)
        due_soon_hours = _env_float(_k("DUE_SOON_HOURS"), 24.0)

        validation_policy = _env(_k("VALIDATION_POLICY"), "fail_fast").strip().lower()
        if validation_policy not in ("fail_fast", "accumulate"):
            validation_policy = "fail_fast"

        return Settings(
            app_name=app_name,
            log_level=log_level,
            owner=owner,
            data_dir=data_dir,
            tasks_path=tasks_path,
            categories_path=categories_path,
            backup_dir=backup_dir,
            backup_retention_days=backup_retention_days,
            reminders_enabled=reminders_enabled,
            reminder_interval_seconds=reminder_interval_seconds,
            due_soon_hours=due_soon_hours,
            validation_policy=validation_policy,
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
