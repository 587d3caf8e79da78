# src/taskkeeper/tasks/task_codec.py

"""
Flat CSV format for task snapshots.

Layout:
    #taskkeeper next_id=7
    id,type,name,status,description,epic,start_time,duration,end_time
    1,TASK,Write report,NEW,,,2024-05-01T09:00:00,1800,
    2,EPIC,Release,DONE,,,2024-05-01T10:00:00,3600,2024-05-01T11:00:00
    3,SUBTASK,Build,DONE,,2,2024-05-01T10:00:00,3600,

- the "#" metadata line is optional on read (older files have none)
- durations are stored in seconds
- epic status/time columns are informational only, they are re-derived on load
"""

from __future__ import annotations

import csv
import io
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TextIO

from ..errors import StorageFormatError
from .task_models import Task, TaskKind, TaskStatus

HEADER = ["id", "type", "name", "status", "description", "epic", "start_time", "duration", "end_time"]
META_PREFIX = "#taskkeeper"

_META_RE = re.compile(r"next_id=(\d+)")

_F_ID = 0
_F_TYPE = 1
_F_NAME = 2
_F_STATUS = 3
_F_DESCRIPTION = 4
_F_EPIC = 5
_F_START = 6
_F_DURATION = 7


@dataclass(slots=True)
class Snapshot:
    """Everything needed to rebuild a TaskService: entities + the next id to issue."""

    entities: list[Task] = field(default_factory=list)
    next_id: int = 1

    def copy(self) -> Snapshot:
        return Snapshot(entities=[t.copy() for t in self.entities], next_id=self.next_id)


# ---- field helpers ----


def format_datetime(value: datetime | None) -> str:
    return value.isoformat() if value is not None else ""


def parse_datetime(raw: str) -> datetime | None:
    raw = raw.strip()
    if not raw:
        return None
    return datetime.fromisoformat(raw)


def format_duration(value: timedelta | None) -> str:
    if value is None:
        return ""
    seconds = value.total_seconds()
    if seconds.is_integer():
        return str(int(seconds))
    return repr(seconds)


def parse_duration(raw: str) -> timedelta | None:
    raw = raw.strip()
    if not raw:
        return None
    return timedelta(seconds=float(raw))


# ---- rows ----


def task_to_row(task: Task) -> list[str]:
    return [
        str(task.id),
        task.kind.value,
        task.name,
        task.status.value,
        task.description,
        str(task.epic_id) if task.kind is TaskKind.SUBTASK and task.epic_id is not None else "",
        format_datetime(task.start_time),
        format_duration(task.duration),
        format_datetime(task.epic_end) if task.kind is TaskKind.EPIC else "",
    ]


def row_to_task(row: list[str]) -> Task:
    """Parse one CSV row. Raises StorageFormatError on any malformed field."""
    if len(row) < _F_EPIC:
        raise StorageFormatError(
            f"Not enough fields for a task: {row!r}", context={"row": row}
        )

    padded = list(row) + [""] * (len(HEADER) - len(row))
    try:
        task_id = int(padded[_F_ID])
        kind = TaskKind.parse(padded[_F_TYPE])
        status = TaskStatus.parse(padded[_F_STATUS])
        start_time = parse_datetime(padded[_F_START])
        duration = parse_duration(padded[_F_DURATION])
        epic_id: int | None = None
        if kind is TaskKind.SUBTASK:
            raw_epic = padded[_F_EPIC].strip()
            if not raw_epic:
                raise ValueError("subtask row has no epic id")
            epic_id = int(raw_epic)
    except ValueError as e:
        raise StorageFormatError(f"Malformed task row {row!r}: {e}", context={"row": row}) from e

    if kind is TaskKind.EPIC:
        # Derived fields are rebuilt from subtasks by the service.
        return Task(id=task_id, kind=kind, name=padded[_F_NAME], description=padded[_F_DESCRIPTION])

    return Task(
        id=task_id,
        kind=kind,
        name=padded[_F_NAME],
        description=padded[_F_DESCRIPTION],
        status=status,
        duration=duration,
        start_time=start_time,
        epic_id=epic_id,
    )


def ordered_for_save(entities: Iterable[Task]) -> list[Task]:
    """Tasks first, then epics, then subtasks, each group in input order."""
    items = list(entities)
    order = (TaskKind.TASK, TaskKind.EPIC, TaskKind.SUBTASK)
    return [t for kind in order for t in items if t.kind is kind]


# ---- whole snapshots ----


def write_snapshot(snapshot: Snapshot, fh: TextIO) -> None:
    fh.write(f"{META_PREFIX} next_id={int(snapshot.next_id)}\n")
    writer = csv.writer(fh, lineterminator="\n")
    writer.writerow(HEADER)
    for task in ordered_for_save(snapshot.entities):
        writer.writerow(task_to_row(task))


def read_snapshot(fh: TextIO) -> Snapshot:
    text = fh.read()
    next_id = 0

    if text.startswith("#"):
        first, _, text = text.partition("\n")
        m = _META_RE.search(first)
        if m:
            next_id = int(m.group(1))

    entities: list[Task] = []
    seen: set[int] = set()
    try:
        for row in csv.reader(io.StringIO(text)):
            if not row or all(not cell.strip() for cell in row):
                continue
            if row[0].strip().lower() == "id":
                continue
            task = row_to_task(row)
            if task.id in seen:
                raise StorageFormatError(
                    f"Duplicate task id {task.id} in snapshot", context={"id": task.id}
                )
            seen.add(task.id)
            entities.append(task)
    except csv.Error as e:
        raise StorageFormatError(f"Malformed CSV: {e}") from e

    max_id = max(seen, default=0)
    return Snapshot(entities=entities, next_id=max(next_id, max_id + 1, 1))


def dumps(snapshot: Snapshot) -> str:
    buf = io.StringIO()
    write_snapshot(snapshot, buf)
    return buf.getvalue()


def loads(text: str) -> Snapshot:
    return read_snapshot(io.StringIO(text))
