# tests/test_commands.py

from __future__ import annotations

from taskkeeper.cli.commands import CommandRegistry, registry
from taskkeeper.core.state import AppState
from taskkeeper.tasks.task_models import TaskStatus

from .fakes import at


def test_registry_routes_commands_and_aliases(state: AppState) -> None:
    reg = CommandRegistry()
    reg.register("ping", lambda st, args: "pong " + " ".join(args), help_text="Ping.", aliases=["p"])

    assert reg.handle(state, "/ping a b") == "pong a b"
    assert reg.handle(state, "/P x") == "pong x"
    assert reg.handle(state, "not a command") is None
    assert reg.handle(state, "/").startswith("Empty command")
    assert reg.handle(state, "/nope").startswith("Unknown command: /nope")
    assert reg.handle(state, '/ping "unterminated').startswith("Cannot parse command")
    assert "/ping - Ping." in reg.build_help()


def test_help_lists_every_command(state: AppState) -> None:
    reply = registry.handle(state, "/help")
    for name in ("add", "show", "edit", "set", "del", "list", "prio", "history", "save"):
        assert f"/{name} " in reply
    assert registry.handle(state, "/?") == reply


def test_add_task_epic_and_subtask(state: AppState, day) -> None:
    assert registry.handle(state, '/add task "Write report" quarterly numbers') == "Created task #1."
    assert registry.handle(state, '/add epic "Release"') == "Created epic #2."
    assert (
        registry.handle(state, '/add sub 2 "Build" start=2024-05-01T10:00 minutes=60 status=done')
        == "Created subtask #3 in epic #2."
    )

    task = state.service.find_by_id(1)
    assert task is not None
    assert task.name == "Write report"
    assert task.description == "quarterly numbers"

    sub = state.service.find_by_id(3)
    assert sub is not None
    assert sub.start_time == at(day, 10)
    assert sub.status is TaskStatus.DONE

    epic = state.service.find_by_id(2)
    assert epic is not None
    assert epic.status is TaskStatus.DONE


def test_add_reports_usage_and_service_errors(state: AppState) -> None:
    assert registry.handle(state, "/add").startswith("Usage:")
    assert registry.handle(state, "/add task").startswith("Usage:")
    assert registry.handle(state, "/add task t minutes=abc").startswith("Bad duration")
    assert registry.handle(state, "/add task t status=later").startswith("unknown status")
    assert registry.handle(state, "/add sub 99 orphan").startswith("Error: Epic id=99 does not exist")

    registry.handle(state, "/add task t")
    assert registry.handle(state, "/add task t").startswith("Error: A task named 't' already exists")


def test_add_overlapping_task_is_refused(state: AppState) -> None:
    registry.handle(state, "/add task A start=2024-05-01T09:00 minutes=30")
    reply = registry.handle(state, "/add task B start=2024-05-01T09:15 minutes=30")
    assert reply.startswith("Error:")
    assert "overlaps" in reply
    assert registry.handle(state, "/add task B start=2024-05-01T09:30 minutes=30") == "Created task #2."


def test_show_records_history(state: AppState) -> None:
    registry.handle(state, "/add epic E")
    registry.handle(state, "/add sub 1 S")
    registry.handle(state, "/add task T")

    reply = registry.handle(state, "/show #1")
    assert reply.splitlines()[0].startswith("#1 [EPIC] E (NEW) subtasks=1")
    assert "#2 [SUBTASK] S" in reply

    registry.handle(state, "/show 3")
    assert [t.id for t in state.service.get_history()] == [1, 3]
    assert "#3 [TASK] T" in registry.handle(state, "/history")
    assert registry.handle(state, "/show 42") == "No task, epic or subtask with id #42."
    assert registry.handle(state, "/show x").startswith("Not a task id")


def test_set_and_edit(state: AppState, day) -> None:
    registry.handle(state, "/add epic E1")
    registry.handle(state, "/add epic E2")
    registry.handle(state, "/add sub 1 S")
    registry.handle(state, "/add task T")

    assert registry.handle(state, "/set 3 in-progress") == "Updated #3."
    epic = state.service.find_by_id(1)
    assert epic is not None and epic.status is TaskStatus.IN_PROGRESS

    assert registry.handle(state, "/edit 3 epic=2 name=Moved") == "Updated #3."
    sub = state.service.find_by_id(3)
    assert sub is not None and sub.epic_id == 2 and sub.name == "Moved"

    assert registry.handle(state, '/edit 4 start=2024-05-01T08:00 minutes=15 "description=early bird"') == "Updated #4."
    task = state.service.find_by_id(4)
    assert task is not None
    assert task.start_time == at(day, 8)
    assert task.description == "early bird"

    assert registry.handle(state, "/edit 4 start=none") == "Updated #4."
    task = state.service.find_by_id(4)
    assert task is not None and task.start_time is None

    assert registry.handle(state, "/edit 4 epic=1") == "Only subtasks can be moved to another epic."
    assert registry.handle(state, "/set 1 done").startswith("Epic status and time are derived")
    assert registry.handle(state, "/edit 4") == "Nothing to change."


def test_del_and_clear(state: AppState) -> None:
    registry.handle(state, "/add epic E")
    registry.handle(state, "/add sub 1 S1")
    registry.handle(state, "/add sub 1 S2")
    registry.handle(state, "/add task T")

    assert registry.handle(state, "/rm 4") == "Deleted task #4."
    assert registry.handle(state, "/del 1") == "Deleted epic #1 and 2 subtask(s)."
    assert state.service.get_all_subtasks() == []

    registry.handle(state, "/add task T2")
    assert registry.handle(state, "/clear tasks") == "All tasks deleted."
    assert state.service.get_all_tasks() == []
    assert registry.handle(state, "/clear everything").startswith("Usage:")


def test_list_prio_and_subs(state: AppState) -> None:
    assert registry.handle(state, "/ls") == "Tasks: (none)\nEpics: (none)\nSubtasks: (none)"

    registry.handle(state, "/add task late start=2024-05-01T15:00 minutes=10")
    registry.handle(state, "/add epic E")
    registry.handle(state, "/add sub 2 early start=2024-05-01T08:00 minutes=10")

    prio = registry.handle(state, "/prio").splitlines()
    assert prio[0] == "By start time:"
    assert prio[1].startswith("  #3 [SUBTASK] early")
    assert prio[2].startswith("  #1 [TASK] late")

    assert registry.handle(state, "/list epics").startswith("Epics:\n  #2 [EPIC] E")
    assert "#3" in registry.handle(state, "/subs 2")
    assert registry.handle(state, "/subs 9") == "Subtasks of epic #9: (none)"
    assert registry.handle(state, "/list bogus").startswith("Usage:")


def test_status_and_save(state: AppState, backing) -> None:
    registry.handle(state, "/add task T status=done")

    reply = registry.handle(state, "/status")
    assert "Storage: memory (autosave ON)" in reply
    assert "DONE=1" in reply

    before = backing.save_count
    assert registry.handle(state, "/save") == "Saved to memory."
    assert backing.save_count == before + 1


def test_out_of_range_input_is_reported_not_crashed(state: AppState) -> None:
    assert registry.handle(state, "/add task t minutes=inf").startswith("Bad duration")
    assert registry.handle(state, "/add task t minutes=1e20").startswith("Bad duration")

    reply = registry.handle(state, "/add task t start=9999-12-31T23:00 minutes=120")
    assert reply == "Error: start_time + duration is out of range"

    reply = registry.handle(state, "/add task t start=2024-05-01T09:00+02:00 minutes=30")
    assert reply.startswith("Error: start_time must be a naive datetime")
    assert state.service.get_all_tasks() == []
