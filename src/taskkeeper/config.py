# src/taskkeeper/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- Nothing is required at import time; every key has a default.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TASKKEEPER"

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

    # ---- Storage ----
    storage: str  # "memory" | "csv" | "sqlite"
    autosave: bool

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    tasks_file_path: Path
    tasks_db_path: Path

    # ---- Tuning ----
    history_limit: int

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "taskkeeper").strip() or "taskkeeper"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        storage = _env(_k("STORAGE"), "csv").strip().lower() or "csv"
        autosave = _env_bool(_k("AUTOSAVE"), True)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/taskkeeper"))
        tasks_file_path = _env_path(_k("TASKS_FILE_PATH"), data_dir / "tasks.csv")
        tasks_db_path = _env_path(_k("TASKS_DB_PATH"), data_dir / "tasks.sqlite3")

        history_limit = max(1, _env_int(_k("HISTORY_LIMIT"), 10))

        return Settings(
            app_name=app_name,
            log_level=log_level,
            storage=storage,
            autosave=autosave,
            data_dir=data_dir,
            tasks_file_path=tasks_file_path,
            tasks_db_path=tasks_db_path,
            history_limit=history_limit,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
