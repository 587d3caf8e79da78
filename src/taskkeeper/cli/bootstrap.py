# src/taskkeeper/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- picks the storage backing and loads the task service from it.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.state import AppState
from ..tasks.task_service import TaskService
from ..tasks.task_store import make_backing

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_file_path.parent.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().

    Raises PersistenceError if the saved tasks cannot be loaded; nothing is
    overwritten in that case.
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    backing = make_backing(
        settings.storage,
        csv_path=settings.tasks_file_path,
        db_path=settings.tasks_db_path,
    )
    service = TaskService.load(
        backing,
        history_limit=settings.history_limit,
        autosave=settings.autosave,
    )
    logger.info("Task storage: %s (autosave=%s)", backing.describe(), settings.autosave)
    return AppState(settings=settings, service=service)


def save_state(state: AppState) -> None:
    """Flush the service to its backing. Errors propagate to the caller."""
    state.service.save()
