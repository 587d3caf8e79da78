# src/taskkeeper/tasks/history.py

from __future__ import annotations

from collections import OrderedDict

from .task_models import Task


class HistoryTracker:
    """
    Recently viewed entities, oldest first, most recent last.

    Each id appears once; re-adding an entity promotes it. When the limit is
    exceeded the least recently viewed entry is evicted.
    """

    def __init__(self, limit: int = 10) -> None:
        if limit < 1:
            raise ValueError("history limit must be >= 1")
        self._limit = int(limit)
        self._items: OrderedDict[int, Task] = OrderedDict()

    @property
    def limit(self) -> int:
        return self._limit

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._items

    def add(self, task: Task | None) -> None:
        if task is None:
            return
        self._items.pop(task.id, None)
        self._items[task.id] = task.copy()
        while len(self._items) > self._limit:
            self._items.popitem(last=False)

    def refresh(self, task: Task) -> None:
        """Replace the stored copy of an already-tracked entity without promoting it."""
        if task.id in self._items:
            self._items[task.id] = task.copy()

    def remove(self, task_id: int) -> None:
        self._items.pop(task_id, None)

    def get_history(self) -> list[Task]:
        return [t.copy() for t in self._items.values()]

    def clear(self) -> None:
        self._items.clear()
