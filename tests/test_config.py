# tests/test_config.py

from __future__ import annotations

from pathlib import Path

from taskkeeper.config import Settings


def test_defaults(monkeypatch) -> None:
    for suffix in (
        "APP_NAME",
        "LOG_LEVEL",
        "STORAGE",
        "AUTOSAVE",
        "DATA_DIR",
        "TASKS_FILE_PATH",
        "TASKS_DB_PATH",
        "HISTORY_LIMIT",
    ):
        monkeypatch.delenv(f"TASKKEEPER_{suffix}", raising=False)

    s = Settings.from_env()

    assert s.app_name == "taskkeeper"
    assert s.storage == "csv"
    assert s.autosave is True
    assert s.history_limit == 10
    assert s.data_dir == Path(".local/taskkeeper")
    assert s.tasks_file_path == Path(".local/taskkeeper/tasks.csv")
    assert s.tasks_db_path == Path(".local/taskkeeper/tasks.sqlite3")


def test_env_overrides(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("TASKKEEPER_STORAGE", " SQLite ")
    monkeypatch.setenv("TASKKEEPER_AUTOSAVE", "off")
    monkeypatch.setenv("TASKKEEPER_DATA_DIR", str(tmp_path))
    monkeypatch.delenv("TASKKEEPER_TASKS_FILE_PATH", raising=False)
    monkeypatch.setenv("TASKKEEPER_TASKS_DB_PATH", str(tmp_path / "db" / "x.sqlite3"))
    monkeypatch.setenv("TASKKEEPER_HISTORY_LIMIT", "3")

    s = Settings.from_env()

    assert s.storage == "sqlite"
    assert s.autosave is False
    assert s.tasks_file_path == tmp_path / "tasks.csv"
    assert s.tasks_db_path == tmp_path / "db" / "x.sqlite3"
    assert s.history_limit == 3


def test_bad_history_limit_falls_back(monkeypatch) -> None:
    monkeypatch.setenv("TASKKEEPER_HISTORY_LIMIT", "many")
    assert Settings.from_env().history_limit == 10

    monkeypatch.setenv("TASKKEEPER_HISTORY_LIMIT", "0")
    assert Settings.from_env().history_limit == 1
