# src/taskkeeper/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import StrEnum


class TaskStatus(StrEnum):
    """Task lifecycle status. Epic status is always derived from its subtasks."""

    NEW = "NEW"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"

    @classmethod
    def parse(cls, raw: str | None) -> TaskStatus:
        """Accept "done", "In_Progress", "in-progress", ... Raise ValueError otherwise."""
        if not raw or not raw.strip():
            raise ValueError("status is required")
        key = raw.strip().upper().replace("-", "_").replace(" ", "_")
        try:
            return cls(key)
        except ValueError:
            raise ValueError(f"unknown status: {raw!r}") from None


class TaskKind(StrEnum):
    TASK = "TASK"
    EPIC = "EPIC"
    SUBTASK = "SUBTASK"

    @classmethod
    def parse(cls, raw: str | None) -> TaskKind:
        if not raw or not raw.strip():
            raise ValueError("task type is required")
        try:
            return cls(raw.strip().upper())
        except ValueError:
            raise ValueError(f"unknown task type: {raw!r}") from None


@dataclass(slots=True)
class Task:
    """
    One record for all three entity kinds.

    - kind=TASK: a standalone task.
    - kind=EPIC: subtask_ids lists member subtasks; status, start_time, duration
      and epic_end are derived by the service and overwritten on every change.
    - kind=SUBTASK: epic_id references the owning epic.

    id == 0 means "not assigned yet".
    """

    id: int
    kind: TaskKind
    name: str
    description: str = ""
    status: TaskStatus = TaskStatus.NEW
    duration: timedelta | None = None
    start_time: datetime | None = None

    epic_id: int | None = None
    subtask_ids: list[int] = field(default_factory=list)
    epic_end: datetime | None = None

    @property
    def end_time(self) -> datetime | None:
        if self.kind is TaskKind.EPIC:
            return self.epic_end
        if self.start_time is None or self.duration is None:
            return None
        return self.start_time + self.duration

    @property
    def is_scheduled(self) -> bool:
        """True if the task occupies a time slot (epics never do)."""
        return (
            self.kind is not TaskKind.EPIC
            and self.start_time is not None
            and self.duration is not None
        )

    def copy(self) -> Task:
        return replace(self, subtask_ids=list(self.subtask_ids))

    def add_subtask_id(self, subtask_id: int) -> None:
        if subtask_id not in self.subtask_ids:
            self.subtask_ids.append(subtask_id)

    def remove_subtask_id(self, subtask_id: int) -> None:
        if subtask_id in self.subtask_ids:
            self.subtask_ids.remove(subtask_id)


def new_task(
    name: str,
    description: str = "",
    *,
    status: TaskStatus = TaskStatus.NEW,
    start_time: datetime | None = None,
    duration: timedelta | None = None,
    id: int = 0,
) -> Task:
    return Task(
        id=id,
        kind=TaskKind.TASK,
        name=name,
        description=description,
        status=status,
        duration=duration,
        start_time=start_time,
    )


def new_epic(name: str, description: str = "", *, id: int = 0) -> Task:
    return Task(id=id, kind=TaskKind.EPIC, name=name, description=description)


def new_subtask(
    name: str,
    epic_id: int,
    description: str = "",
    *,
    status: TaskStatus = TaskStatus.NEW,
    start_time: datetime | None = None,
    duration: timedelta | None = None,
    id: int = 0,
) -> Task:
    return Task(
        id=id,
        kind=TaskKind.SUBTASK,
        name=name,
        description=description,
        status=status,
        duration=duration,
        start_time=start_time,
        epic_id=epic_id,
    )
