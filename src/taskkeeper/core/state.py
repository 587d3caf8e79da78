# src/taskkeeper/core/state.py

from __future__ import annotations

from dataclasses import dataclass

from ..tasks.task_service import TaskService


@dataclass
class AppState:
    # Store Settings on the state for easy access in commands.
    settings: object

    service: TaskService
