# src/taskkeeper/tasks/aggregation.py

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta

from .task_models import Task, TaskStatus


@dataclass(frozen=True, slots=True)
class EpicSummary:
    status: TaskStatus
    start_time: datetime | None
    duration: timedelta | None
    end_time: datetime | None


EMPTY_EPIC = EpicSummary(TaskStatus.NEW, None, None, None)


def derive_status(statuses: Iterable[TaskStatus]) -> TaskStatus:
    """
    - no subtasks    -> NEW
    - all NEW        -> NEW
    - all DONE       -> DONE
    - anything else  -> IN_PROGRESS
    """
    seen = set(statuses)
    if not seen or seen == {TaskStatus.NEW}:
        return TaskStatus.NEW
    if seen == {TaskStatus.DONE}:
        return TaskStatus.DONE
    return TaskStatus.IN_PROGRESS


def summarize_epic(subtasks: Iterable[Task]) -> EpicSummary:
    """Derive an epic's status and time envelope from its current subtasks."""
    items = list(subtasks)
    if not items:
        return EMPTY_EPIC

    status = derive_status(s.status for s in items)

    starts = [s.start_time for s in items if s.start_time is not None]
    ends = [e for e in (s.end_time for s in items) if e is not None]

    start = min(starts) if starts else None
    end = max(ends) if ends else None
    duration = end - start if start is not None and end is not None else None

    return EpicSummary(status=status, start_time=start, duration=duration, end_time=end)


def apply_summary(epic: Task, summary: EpicSummary) -> None:
    epic.status = summary.status
    epic.start_time = summary.start_time
    epic.duration = summary.duration
    epic.epic_end = summary.end_time
