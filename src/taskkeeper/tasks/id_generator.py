# src/taskkeeper/tasks/id_generator.py

from __future__ import annotations

import threading


class IdGenerator:
    """
    Monotonic integer ids shared by tasks, epics and subtasks.

    Ids start at 1 and are never reissued, even after the entity is deleted.
    """

    def __init__(self, start: int = 1) -> None:
        if start < 1:
            raise ValueError("start must be >= 1")
        self._next = int(start)
        self._lock = threading.Lock()

    def next(self) -> int:
        with self._lock:
            value = self._next
            self._next += 1
            return value

    def peek(self) -> int:
        with self._lock:
            return self._next

    def advance_past(self, used_id: int) -> None:
        """Make sure `used_id` (supplied by a caller or loaded from disk) is never issued."""
        with self._lock:
            if used_id >= self._next:
                self._next = int(used_id) + 1
