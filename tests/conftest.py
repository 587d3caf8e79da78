# tests/conftest.py

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from types import SimpleNamespace

import pytest

from taskkeeper.core.state import AppState
from taskkeeper.tasks.task_service import TaskService
from taskkeeper.tasks.task_store import InMemoryBacking


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and bootstrap.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="taskkeeper-test",
        log_level="DEBUG",
        storage="csv",
        autosave=True,
        data_dir=tmp_path,
        tasks_file_path=tmp_path / "tasks.csv",
        tasks_db_path=tmp_path / "tasks.sqlite3",
        history_limit=10,
    )


@pytest.fixture()
def service() -> TaskService:
    """Service without a backing: pure in-memory, nothing is saved."""
    return TaskService(history_limit=10)


@pytest.fixture()
def backing() -> InMemoryBacking:
    return InMemoryBacking()


@pytest.fixture()
def state(settings: SimpleNamespace, backing: InMemoryBacking) -> AppState:
    return AppState(settings=settings, service=TaskService(backing=backing))


@pytest.fixture()
def day() -> datetime:
    return datetime(2024, 5, 1)
