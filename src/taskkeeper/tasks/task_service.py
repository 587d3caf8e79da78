# src/taskkeeper/tasks/task_service.py

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from datetime import datetime, timedelta
from itertools import chain
from typing import TYPE_CHECKING, Any

from ..errors import (
    ConflictError,
    NotFoundError,
    PersistenceError,
    StorageFormatError,
    ValidationError,
)
from .aggregation import EMPTY_EPIC, apply_summary, summarize_epic
from .history import HistoryTracker
from .id_generator import IdGenerator
from .task_codec import Snapshot, ordered_for_save
from .task_models import Task, TaskKind, TaskStatus
from .time_slots import TimeSlotIndex, intervals_overlap

if TYPE_CHECKING:
    from ..core.ports import TaskBacking

logger = logging.getLogger(__name__)


class TaskService:
    """
    Owner of tasks, epics and subtasks.

    The service is the only mutator of the three collections. Every mutation:
    - validates input before touching state,
    - keeps epic <-> subtask membership consistent (links are plain ids),
    - keeps the time-slot index in sync with scheduled tasks/subtasks,
    - re-derives the affected epics' status and time bounds,
    - autosaves to the backing (if one is attached and autosave is on).

    Policy for deletes: deleting an id that does not exist is a no-op.

    Thread-safety:
    - one re-entrant lock per service guards every public method.
    """

    def __init__(
        self,
        *,
        history_limit: int = 10,
        backing: TaskBacking | None = None,
        autosave: bool = True,
        id_generator: IdGenerator | None = None,
    ) -> None:
        self._tasks: dict[int, Task] = {}
        self._epics: dict[int, Task] = {}
        self._subtasks: dict[int, Task] = {}

        self._ids = id_generator or IdGenerator()
        self._slots = TimeSlotIndex()
        self._history = HistoryTracker(history_limit)

        self._backing = backing
        self._autosave = bool(autosave)
        self._lock = threading.RLock()

    # ---- construction from storage ----

    @classmethod
    def from_snapshot(
        cls,
        snapshot: Snapshot,
        *,
        history_limit: int = 10,
        backing: TaskBacking | None = None,
        autosave: bool = True,
    ) -> TaskService:
        """
        Build a fresh service from a snapshot.

        Epic status/time bounds and time-slot reservations are replayed, not
        trusted from the snapshot. Raises StorageFormatError if the snapshot
        breaks an invariant (overlaps, dangling epic ids, duplicate ids/names).
        """
        service = cls(
            history_limit=history_limit,
            backing=backing,
            autosave=autosave,
            id_generator=IdGenerator(max(1, int(snapshot.next_id))),
        )
        with service._lock:
            try:
                for entity in ordered_for_save(snapshot.entities):
                    service._create_locked(entity.copy(), entity.kind, restoring=True)
            except (ValidationError, ConflictError) as e:
                raise StorageFormatError(
                    f"Snapshot is inconsistent: {e}", context=dict(e.context)
                ) from e
        return service

    @classmethod
    def load(
        cls,
        backing: TaskBacking,
        *,
        history_limit: int = 10,
        autosave: bool = True,
    ) -> TaskService:
        """Load a new service from `backing`. An empty backing gives an empty service."""
        snapshot = backing.load()
        if snapshot is None:
            logger.info("No saved tasks in %s, starting empty.", backing.describe())
            return cls(history_limit=history_limit, backing=backing, autosave=autosave)

        service = cls.from_snapshot(
            snapshot, history_limit=history_limit, backing=backing, autosave=autosave
        )
        logger.info("Loaded tasks from %s: %s", backing.describe(), service.stats())
        return service

    # ---- validation helpers ----

    @staticmethod
    def _validate_id(task_id: Any, what: str = "id") -> int:
        if isinstance(task_id, bool) or not isinstance(task_id, int) or task_id <= 0:
            raise ValidationError(f"{what} must be a positive integer, got {task_id!r}")
        return task_id

    @staticmethod
    def _require(entity: Any, kind: TaskKind) -> Task:
        if entity is None:
            raise ValidationError(f"{kind.value.lower()} must not be None")
        if not isinstance(entity, Task):
            raise ValidationError(f"expected a Task record, got {type(entity).__name__}")
        if entity.kind is not kind:
            raise ValidationError(
                f"expected a {kind.value.lower()}, got a {entity.kind.value.lower()}",
                context={"id": entity.id},
            )
        return entity

    @staticmethod
    def _normalize_fields(task: Task) -> None:
        if not isinstance(task.name, str) or not task.name.strip():
            raise ValidationError("name is required", context={"id": task.id})
        task.name = task.name.strip()

        if task.description is None:
            task.description = ""
        if not isinstance(task.description, str):
            raise ValidationError("description must be a string", context={"id": task.id})

        if not isinstance(task.status, TaskStatus):
            try:
                task.status = TaskStatus.parse(task.status)
            except (TypeError, ValueError, AttributeError) as e:
                raise ValidationError(str(e), context={"id": task.id}) from e

        if task.duration is not None:
            if not isinstance(task.duration, timedelta):
                raise ValidationError("duration must be a timedelta", context={"id": task.id})
            if task.duration < timedelta(0):
                raise ValidationError("duration must not be negative", context={"id": task.id})

        if task.start_time is not None:
            if not isinstance(task.start_time, datetime):
                raise ValidationError("start_time must be a datetime", context={"id": task.id})
            # Stored times are naive local wall-clock times.
            if task.start_time.tzinfo is not None:
                raise ValidationError(
                    "start_time must be a naive datetime (no timezone)", context={"id": task.id}
                )

        if task.start_time is not None and task.duration is not None:
            try:
                task.start_time + task.duration
            except OverflowError:
                raise ValidationError(
                    "start_time + duration is out of range", context={"id": task.id}
                ) from None

    def _exists(self, task_id: int) -> bool:
        return task_id in self._tasks or task_id in self._epics or task_id in self._subtasks

    def _check_name_unique(self, name: str, exclude_id: int | None) -> None:
        for other in chain(self._tasks.values(), self._epics.values(), self._subtasks.values()):
            if other.id != exclude_id and other.name == name:
                raise ValidationError(
                    f"A task named '{name}' already exists (id={other.id})",
                    context={"name": name, "existing_id": other.id},
                )

    def _require_epic(self, epic_id: Any, own_id: int | None) -> int:
        epic_id = self._validate_id(epic_id, "epic_id")
        if own_id is not None and epic_id == own_id:
            raise ValidationError("A subtask cannot be its own epic", context={"id": own_id})
        if epic_id not in self._epics:
            raise ValidationError(f"Epic id={epic_id} does not exist", context={"epic_id": epic_id})
        return epic_id

    # ---- internal mutation helpers (lock held) ----

    def _reaggregate(self, epic_id: int) -> None:
        epic = self._epics.get(epic_id)
        if epic is None:
            return
        members = [self._subtasks[s] for s in epic.subtask_ids if s in self._subtasks]
        apply_summary(epic, summarize_epic(members))
        self._history.refresh(epic)
        logger.debug("Epic id=%s aggregated status=%s", epic_id, epic.status)

    def _create_locked(self, entity: Any, kind: TaskKind, *, restoring: bool = False) -> int:
        task = self._require(entity, kind).copy()
        self._normalize_fields(task)

        supplied = task.id or 0
        if isinstance(supplied, bool) or not isinstance(supplied, int) or supplied < 0:
            raise ValidationError(f"id must be a positive integer, got {task.id!r}")
        if restoring and supplied == 0:
            raise ValidationError("stored task has no id")
        if supplied and self._exists(supplied):
            raise ValidationError(f"Id {supplied} is already in use", context={"id": supplied})

        self._check_name_unique(task.name, exclude_id=supplied or None)

        if kind is TaskKind.SUBTASK:
            task.epic_id = self._require_epic(task.epic_id, supplied or None)
        else:
            task.epic_id = None

        if kind is TaskKind.EPIC:
            task.subtask_ids = []
            apply_summary(task, EMPTY_EPIC)
        else:
            task.subtask_ids = []
            task.epic_end = None

        task.id = supplied
        self._slots.check(task)

        if supplied:
            self._ids.advance_past(supplied)
        else:
            task.id = self._ids.next()

        if kind is TaskKind.TASK:
            self._tasks[task.id] = task
        elif kind is TaskKind.EPIC:
            self._epics[task.id] = task
        else:
            self._subtasks[task.id] = task
            assert task.epic_id is not None
            self._epics[task.epic_id].add_subtask_id(task.id)
            self._reaggregate(task.epic_id)

        self._slots.reserve(task)

        if not restoring:
            logger.debug("Created %s id=%s name=%r", kind.value, task.id, task.name)
            entity.id = task.id
        return task.id

    def _drop_subtask(self, subtask_id: int, *, reaggregate: bool = True) -> Task | None:
        subtask = self._subtasks.pop(subtask_id, None)
        if subtask is None:
            return None
        self._slots.release(subtask)
        self._history.remove(subtask_id)

        epic = self._epics.get(subtask.epic_id) if subtask.epic_id is not None else None
        if epic is not None:
            epic.remove_subtask_id(subtask_id)
            if reaggregate:
                self._reaggregate(epic.id)
        return subtask

    def _clear_subtasks(self) -> None:
        for subtask in self._subtasks.values():
            self._slots.release(subtask)
            self._history.remove(subtask.id)
        self._subtasks.clear()
        for epic in self._epics.values():
            epic.subtask_ids.clear()
            apply_summary(epic, EMPTY_EPIC)
            self._history.refresh(epic)

    def _after_mutation(self) -> None:
        if self._backing is not None and self._autosave:
            self.save()

    # ---- create ----

    def create_task(self, task: Task) -> int:
        with self._lock:
            task_id = self._create_locked(task, TaskKind.TASK)
            self._after_mutation()
            return task_id

    def create_epic(self, epic: Task) -> int:
        with self._lock:
            epic_id = self._create_locked(epic, TaskKind.EPIC)
            self._after_mutation()
            return epic_id

    def create_subtask(self, subtask: Task) -> int:
        with self._lock:
            subtask_id = self._create_locked(subtask, TaskKind.SUBTASK)
            self._after_mutation()
            return subtask_id

    # ---- update ----

    def update_task(self, task: Task) -> None:
        with self._lock:
            self._require(task, TaskKind.TASK)
            task_id = self._validate_id(task.id)
            if task_id not in self._tasks:
                raise NotFoundError(f"Task id={task_id} does not exist", context={"id": task_id})

            updated = task.copy()
            self._normalize_fields(updated)
            updated.epic_id = None
            updated.subtask_ids = []
            updated.epic_end = None
            self._check_name_unique(updated.name, exclude_id=task_id)
            self._slots.check(updated)

            self._tasks[task_id] = updated
            self._slots.reserve(updated)
            self._history.refresh(updated)
            logger.debug("Updated TASK id=%s status=%s", task_id, updated.status)
            self._after_mutation()

    def update_subtask(self, subtask: Task) -> None:
        """Replace a subtask's fields. Moving it to another epic is allowed."""
        with self._lock:
            self._require(subtask, TaskKind.SUBTASK)
            subtask_id = self._validate_id(subtask.id)
            old = self._subtasks.get(subtask_id)
            if old is None:
                raise NotFoundError(
                    f"Subtask id={subtask_id} does not exist", context={"id": subtask_id}
                )

            updated = subtask.copy()
            self._normalize_fields(updated)
            updated.subtask_ids = []
            updated.epic_end = None
            updated.epic_id = self._require_epic(updated.epic_id, subtask_id)
            self._check_name_unique(updated.name, exclude_id=subtask_id)
            self._slots.check(updated)

            self._subtasks[subtask_id] = updated
            self._slots.reserve(updated)
            self._history.refresh(updated)

            if old.epic_id != updated.epic_id:
                old_epic = self._epics.get(old.epic_id) if old.epic_id is not None else None
                if old_epic is not None:
                    old_epic.remove_subtask_id(subtask_id)
                    self._reaggregate(old_epic.id)
                # membership follows subtask creation order
                self._epics[updated.epic_id].subtask_ids = [
                    s.id for s in self._subtasks.values() if s.epic_id == updated.epic_id
                ]
            self._reaggregate(updated.epic_id)

            logger.debug(
                "Updated SUBTASK id=%s epic_id=%s status=%s",
                subtask_id,
                updated.epic_id,
                updated.status,
            )
            self._after_mutation()

    # ---- read ----

    def _get(self, collection: dict[int, Task], task_id: Any) -> Task | None:
        task_id = self._validate_id(task_id)
        with self._lock:
            found = collection.get(task_id)
            if found is None:
                return None
            self._history.add(found)
            return found.copy()

    def get_task_by_id(self, task_id: int) -> Task | None:
        return self._get(self._tasks, task_id)

    def get_epic_by_id(self, epic_id: int) -> Task | None:
        return self._get(self._epics, epic_id)

    def get_subtask_by_id(self, subtask_id: int) -> Task | None:
        return self._get(self._subtasks, subtask_id)

    def get_all_tasks(self) -> list[Task]:
        with self._lock:
            return [t.copy() for t in self._tasks.values()]

    def get_all_epics(self) -> list[Task]:
        with self._lock:
            return [t.copy() for t in self._epics.values()]

    def get_all_subtasks(self) -> list[Task]:
        with self._lock:
            return [t.copy() for t in self._subtasks.values()]

    def get_subtasks_by_epic_id(self, epic_id: int) -> list[Task]:
        epic_id = self._validate_id(epic_id, "epic_id")
        with self._lock:
            epic = self._epics.get(epic_id)
            if epic is None:
                return []
            return [self._subtasks[s].copy() for s in epic.subtask_ids if s in self._subtasks]

    def get_prioritized_tasks(self) -> list[Task]:
        """Tasks and subtasks with a start_time, earliest first (ties by id)."""
        with self._lock:
            scheduled = [
                t
                for t in chain(self._tasks.values(), self._subtasks.values())
                if t.start_time is not None
            ]
            scheduled.sort(key=lambda t: (t.start_time, t.id))
            return [t.copy() for t in scheduled]

    def get_history(self) -> list[Task]:
        with self._lock:
            return self._history.get_history()

    def find_by_id(self, task_id: int) -> Task | None:
        """Look up any kind by id without touching the history."""
        task_id = self._validate_id(task_id)
        with self._lock:
            for collection in (self._tasks, self._epics, self._subtasks):
                found = collection.get(task_id)
                if found is not None:
                    return found.copy()
            return None

    # ---- delete ----

    def delete_task_by_id(self, task_id: int) -> None:
        task_id = self._validate_id(task_id)
        with self._lock:
            task = self._tasks.pop(task_id, None)
            if task is None:
                logger.debug("delete_task_by_id: id=%s not found, nothing to do", task_id)
                return
            self._slots.release(task)
            self._history.remove(task_id)
            logger.debug("Deleted TASK id=%s", task_id)
            self._after_mutation()

    def delete_subtask_by_id(self, subtask_id: int) -> None:
        subtask_id = self._validate_id(subtask_id)
        with self._lock:
            if self._drop_subtask(subtask_id) is None:
                logger.debug("delete_subtask_by_id: id=%s not found, nothing to do", subtask_id)
                return
            logger.debug("Deleted SUBTASK id=%s", subtask_id)
            self._after_mutation()

    def delete_epic_by_id(self, epic_id: int) -> None:
        """Delete an epic together with all of its subtasks."""
        epic_id = self._validate_id(epic_id)
        with self._lock:
            epic = self._epics.get(epic_id)
            if epic is None:
                logger.debug("delete_epic_by_id: id=%s not found, nothing to do", epic_id)
                return
            for subtask_id in list(epic.subtask_ids):
                self._drop_subtask(subtask_id, reaggregate=False)
            del self._epics[epic_id]
            self._history.remove(epic_id)
            logger.debug("Deleted EPIC id=%s with its subtasks", epic_id)
            self._after_mutation()

    def delete_all_tasks(self) -> None:
        with self._lock:
            for task in self._tasks.values():
                self._slots.release(task)
                self._history.remove(task.id)
            self._tasks.clear()
            self._after_mutation()

    def delete_all_subtasks(self) -> None:
        with self._lock:
            self._clear_subtasks()
            self._after_mutation()

    def delete_all_epics(self) -> None:
        """Delete every epic; subtasks cannot outlive their epics, so they go too."""
        with self._lock:
            self._clear_subtasks()
            for epic_id in self._epics:
                self._history.remove(epic_id)
            self._epics.clear()
            self._after_mutation()

    # ---- scheduling ----

    @staticmethod
    def is_tasks_overlap(a: Task | None, b: Task | None) -> bool:
        """Pairwise half-open overlap test. False if either side has no start/end."""
        if a is None or b is None:
            return False
        a_start, a_end = a.start_time, a.end_time
        b_start, b_end = b.start_time, b.end_time
        if a_start is None or a_end is None or b_start is None or b_end is None:
            return False
        if a_start >= a_end or b_start >= b_end:
            return False
        return intervals_overlap(a_start, a_end, b_start, b_end)

    def is_slot_available(
        self, start: datetime, duration: timedelta, *, exclude_id: int | None = None
    ) -> bool:
        candidate = Task(id=0, kind=TaskKind.TASK, name="slot", start_time=start, duration=duration)
        self._normalize_fields(candidate)
        if start is None or duration is None:
            raise ValidationError("start and duration are required")
        with self._lock:
            return self._slots.is_available(start, start + duration, exclude_id=exclude_id)

    # ---- persistence ----

    def snapshot(self) -> Snapshot:
        with self._lock:
            entities = [
                t.copy()
                for t in chain(self._tasks.values(), self._epics.values(), self._subtasks.values())
            ]
            return Snapshot(entities=entities, next_id=self._ids.peek())

    def save(self) -> None:
        if self._backing is None:
            raise PersistenceError("No storage backing configured")
        snap = self.snapshot()
        self._backing.save(snap)
        logger.debug("Saved %d entities to %s", len(snap.entities), self._backing.describe())

    @property
    def backing(self) -> TaskBacking | None:
        return self._backing

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {
                "tasks": len(self._tasks),
                "epics": len(self._epics),
                "subtasks": len(self._subtasks),
                "scheduled": len(self._slots),
                "history": len(self._history),
                "next_id": self._ids.peek(),
            }


def count_by_status(tasks: Iterable[Task]) -> dict[TaskStatus, int]:
    out = {s: 0 for s in TaskStatus}
    for t in tasks:
        out[t.status] += 1
    return out
