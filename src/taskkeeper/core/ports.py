# src/taskkeeper/core/ports.py

"""
Ports (interfaces) used by the core.

The task service depends on Protocols instead of concrete storage, so the
in-memory, CSV and SQLite backings are interchangeable and tests can plug in
fakes.
"""

from __future__ import annotations

from typing import Protocol

from ..tasks.task_codec import Snapshot


class TaskBacking(Protocol):
    """
    Persistence strategy for a whole task snapshot.

    - load() returns None when nothing was saved yet.
    - save() replaces whatever was stored before.
    - both raise PersistenceError when storage is unreadable/unwritable.
    """

    def load(self) -> Snapshot | None: ...

    def save(self, snapshot: Snapshot) -> None: ...

    def describe(self) -> str: ...
