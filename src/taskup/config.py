# src/taskup/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time.
- Every value has a sane local default, so the console app runs out of the box.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TASKUP"


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


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    console_enabled: bool

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    tasks_db_path: Path
    users_db_path: Path
    blob_dir: Path

    # ---- Accounts ----
    bcrypt_rounds: int

    # ---- Blob upload ----
    blob_upload_url: str | None
    blob_timeout_seconds: float

    # ---- Engine timing ----
    tick_seconds: float
    change_poll_seconds: float

    # ---- New task form ----
    default_time_limit_min: int
    min_time_limit_min: int

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "TaskUp").strip() or "TaskUp"
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/taskup"))
        tasks_db_path = _env_path(_k("TASKS_DB_PATH"), data_dir / "tasks.sqlite3")
        users_db_path = _env_path(_k("USERS_DB_PATH"), data_dir / "users.sqlite3")
        blob_dir = _env_path(_k("BLOB_DIR"), data_dir / "blobs")

        bcrypt_rounds = min(16, max(4, _env_int(_k("BCRYPT_ROUNDS"), 12)))

        blob_upload_url = _env(_k("BLOB_UPLOAD_URL"), "").strip() or None
        blob_timeout_seconds = _env_float(_k("BLOB_TIMEOUT_SECONDS"), 30.0)

        # Sub-second ticks only make sense in tests; keep a floor for real runs.
        tick_seconds = max(0.1, _env_float(_k("TICK_SECONDS"), 1.0))
        change_poll_seconds = max(0.1, _env_float(_k("CHANGE_POLL_SECONDS"), 2.0))

        min_time_limit_min = max(1, _env_int(_k("MIN_TIME_LIMIT_MIN"), 5))
        default_time_limit_min = max(min_time_limit_min, _env_int(_k("DEFAULT_TIME_LIMIT_MIN"), 30))

        return Settings(
            app_name=app_name,
            log_level=log_level,
            console_enabled=console_enabled,
            data_dir=data_dir,
            tasks_db_path=tasks_db_path,
            users_db_path=users_db_path,
            blob_dir=blob_dir,
            bcrypt_rounds=bcrypt_rounds,
            blob_upload_url=blob_upload_url,
            blob_timeout_seconds=blob_timeout_seconds,
            tick_seconds=tick_seconds,
            change_poll_seconds=change_poll_seconds,
            default_time_limit_min=default_time_limit_min,
            min_time_limit_min=min_time_limit_min,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
