# tests/test_task_models.py

from __future__ import annotations

import threading

import pytest

from taskkeeper.tasks.id_generator import IdGenerator
from taskkeeper.tasks.task_models import TaskKind, TaskStatus, new_epic, new_subtask, new_task

from .fakes import at, minutes


def test_status_parse_is_lenient_about_case_and_separators() -> None:
    assert TaskStatus.parse("done") is TaskStatus.DONE
    assert TaskStatus.parse("in-progress") is TaskStatus.IN_PROGRESS
    assert TaskStatus.parse(" In Progress ") is TaskStatus.IN_PROGRESS
    with pytest.raises(ValueError):
        TaskStatus.parse("finished")
    with pytest.raises(ValueError):
        TaskStatus.parse("")


def test_end_time_and_scheduling(day) -> None:
    task = new_task("t", start_time=at(day, 9), duration=minutes(45))
    assert task.end_time == at(day, 9, 45)
    assert task.is_scheduled

    assert new_task("t").end_time is None
    assert not new_task("t", start_time=at(day, 9)).is_scheduled

    epic = new_epic("e")
    epic.start_time, epic.duration, epic.epic_end = at(day, 9), minutes(60), at(day, 10)
    assert epic.end_time == at(day, 10)
    assert not epic.is_scheduled


def test_copy_does_not_share_subtask_ids() -> None:
    epic = new_epic("e", id=1)
    epic.add_subtask_id(2)
    clone = epic.copy()
    clone.add_subtask_id(3)
    epic.add_subtask_id(2)

    assert epic.subtask_ids == [2]
    assert clone.subtask_ids == [2, 3]


def test_factories_set_kind() -> None:
    assert new_task("t").kind is TaskKind.TASK
    assert new_epic("e").kind is TaskKind.EPIC
    sub = new_subtask("s", 7)
    assert sub.kind is TaskKind.SUBTASK
    assert sub.epic_id == 7


def test_id_generator_is_monotonic_and_skips_used_ids() -> None:
    ids = IdGenerator()
    assert ids.next() == 1
    assert ids.next() == 2
    ids.advance_past(10)
    assert ids.peek() == 11
    ids.advance_past(3)
    assert ids.next() == 11

    with pytest.raises(ValueError):
        IdGenerator(0)


def test_id_generator_is_thread_safe() -> None:
    ids = IdGenerator()
    seen: list[int] = []
    lock = threading.Lock()

    def worker() -> None:
        got = [ids.next() for _ in range(500)]
        with lock:
            seen.extend(got)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(seen) == 4000
    assert len(set(seen)) == 4000
