# src/taskkeeper/tasks/time_slots.py

from __future__ import annotations

import logging
from datetime import datetime

from ..errors import ConflictError
from .task_models import Task

logger = logging.getLogger(__name__)


def intervals_overlap(a: datetime, b: datetime, c: datetime, d: datetime) -> bool:
    """Half-open [a, b) vs [c, d). Touching endpoints do not overlap."""
    return a < d and c < b


class TimeSlotIndex:
    """
    Reserved [start, end) intervals keyed by task id.

    The index keeps no task copies, only the interval each id occupies.
    Unscheduled tasks (no start_time or no duration) are never reserved.
    """

    def __init__(self) -> None:
        self._slots: dict[int, tuple[datetime, datetime]] = {}

    def __len__(self) -> int:
        return len(self._slots)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._slots

    def find_conflict(
        self, start: datetime, end: datetime, *, exclude_id: int | None = None
    ) -> int | None:
        """Return the id of the earliest reservation overlapping [start, end), if any."""
        if start >= end:
            return None
        hits = [
            (s, task_id)
            for task_id, (s, e) in self._slots.items()
            if task_id != exclude_id and intervals_overlap(start, end, s, e)
        ]
        if not hits:
            return None
        return min(hits)[1]

    def is_available(
        self, start: datetime, end: datetime, *, exclude_id: int | None = None
    ) -> bool:
        return self.find_conflict(start, end, exclude_id=exclude_id) is None

    def check(self, task: Task) -> None:
        """Raise ConflictError if `task` would overlap another task's reservation."""
        if not task.is_scheduled:
            return
        start = task.start_time
        end = task.end_time
        assert start is not None and end is not None
        other = self.find_conflict(start, end, exclude_id=task.id)
        if other is not None:
            raise ConflictError(
                f"Task '{task.name}' overlaps in time with task id={other}",
                conflicting_id=other,
                context={"task_id": task.id, "start": start.isoformat(), "end": end.isoformat()},
            )

    def reserve(self, task: Task) -> None:
        """Reserve the task's interval, replacing its previous reservation."""
        self.check(task)
        if not task.is_scheduled:
            self._slots.pop(task.id, None)
            return
        assert task.start_time is not None and task.end_time is not None
        if task.end_time <= task.start_time:
            # empty interval, occupies nothing
            self._slots.pop(task.id, None)
            return
        self._slots[task.id] = (task.start_time, task.end_time)
        logger.debug(
            "Reserved slot id=%s %s..%s", task.id, task.start_time, task.end_time
        )

    def release(self, task: Task | int) -> None:
        task_id = task if isinstance(task, int) else task.id
        if self._slots.pop(task_id, None) is not None:
            logger.debug("Released slot id=%s", task_id)

    def clear(self) -> None:
        self._slots.clear()
