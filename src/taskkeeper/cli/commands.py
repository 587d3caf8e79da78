# src/taskkeeper/cli/commands.py

from __future__ import annotations

import logging
import shlex
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timedelta

from ..core.state import AppState
from ..errors import TaskKeeperError
from ..tasks.task_models import Task, TaskKind, TaskStatus, new_epic, new_subtask, new_task
from ..tasks.task_service import count_by_status

CommandHandler = Callable[[AppState, list[str]], str]

logger = logging.getLogger(__name__)


class UsageError(ValueError):
    """Bad command arguments; the message is shown to the user as-is."""


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(self, state: AppState, line: str) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.

        Arguments are split shell-style, so names with spaces can be quoted.
        Task errors (validation, conflicts, storage) are turned into replies.
        """
        if not line.startswith("/"):
            return None

        try:
            parts = shlex.split(line[1:])
        except ValueError as e:
            return f"Cannot parse command: {e}"
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            return handler(state, args)
        except UsageError as e:
            return str(e)
        except TaskKeeperError as e:
            logger.info("/%s failed: %s", name, e)
            return f"Error: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- formatting / parsing helpers ----

_OPTION_KEYS = {"start", "minutes", "status", "name", "description", "epic"}


def _fmt_dt(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value is not None else "-"


def format_task(task: Task) -> str:
    parts = [f"#{task.id} [{task.kind.value}] {task.name} ({task.status.value})"]
    if task.kind is TaskKind.SUBTASK:
        parts.append(f"epic=#{task.epic_id}")
    if task.kind is TaskKind.EPIC:
        parts.append(f"subtasks={len(task.subtask_ids)}")
    if task.start_time is not None:
        parts.append(f"{_fmt_dt(task.start_time)} .. {_fmt_dt(task.end_time)}")
    if task.description:
        parts.append(f"- {task.description}")
    return " ".join(parts)


def _format_list(title: str, tasks: list[Task]) -> str:
    if not tasks:
        return f"{title}: (none)"
    lines = [f"{title}:"]
    lines.extend(f"  {format_task(t)}" for t in tasks)
    return "\n".join(lines)


def _split_options(args: list[str]) -> tuple[list[str], dict[str, str]]:
    """Separate key=value options (known keys only) from positional arguments."""
    positional: list[str] = []
    options: dict[str, str] = {}
    for arg in args:
        key, sep, value = arg.partition("=")
        if sep and key.lower() in _OPTION_KEYS:
            options[key.lower()] = value
        else:
            positional.append(arg)
    return positional, options


def _parse_id(raw: str) -> int:
    try:
        return int(raw.lstrip("#"))
    except ValueError:
        raise UsageError(f"Not a task id: {raw!r}") from None


def _parse_start(raw: str) -> datetime | None:
    if raw.strip().lower() in ("", "none", "-"):
        return None
    try:
        return datetime.fromisoformat(raw.strip())
    except ValueError:
        raise UsageError(f"Bad start time {raw!r}, expected e.g. 2024-05-01T09:00") from None


def _parse_minutes(raw: str) -> timedelta | None:
    if raw.strip().lower() in ("", "none", "-"):
        return None
    try:
        return timedelta(minutes=float(raw))
    except (ValueError, OverflowError):
        raise UsageError(f"Bad duration {raw!r}, expected minutes") from None


def _parse_status(raw: str) -> TaskStatus:
    try:
        return TaskStatus.parse(raw)
    except ValueError as e:
        raise UsageError(f"{e}. Use one of: {', '.join(s.value for s in TaskStatus)}") from None


# ---- handlers ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    service = state.service
    stats = service.stats()
    backing = service.backing
    storage = backing.describe() if backing is not None else "none"
    autosave = getattr(state.settings, "autosave", False)
    by_status = count_by_status(service.get_all_tasks() + service.get_all_subtasks())
    return (
        "Status:\n"
        f"  Storage: {storage} (autosave {'ON' if autosave else 'OFF'})\n"
        f"  Tasks: {stats['tasks']}  Epics: {stats['epics']}  Subtasks: {stats['subtasks']}\n"
        f"  Scheduled: {stats['scheduled']}  Next id: {stats['next_id']}\n"
        "  By status: " + ", ".join(f"{s.value}={n}" for s, n in by_status.items())
    )


def cmd_list(state: AppState, args: list[str]) -> str:
    """
    /list            -> everything
    /list tasks      -> standalone tasks
    /list epics      -> epics
    /list subtasks   -> subtasks
    """
    service = state.service
    what = args[0].lower() if args else "all"
    if what in ("tasks", "task"):
        return _format_list("Tasks", service.get_all_tasks())
    if what in ("epics", "epic"):
        return _format_list("Epics", service.get_all_epics())
    if what in ("subtasks", "subtask", "subs", "sub"):
        return _format_list("Subtasks", service.get_all_subtasks())
    if what == "all":
        return "\n".join(
            [
                _format_list("Tasks", service.get_all_tasks()),
                _format_list("Epics", service.get_all_epics()),
                _format_list("Subtasks", service.get_all_subtasks()),
            ]
        )
    raise UsageError("Usage: /list [tasks|epics|subtasks|all]")


_ADD_USAGE = (
    "Usage:\n"
    '  /add task "name" ["description"] [start=2024-05-01T09:00] [minutes=30] [status=NEW]\n'
    '  /add epic "name" ["description"]\n'
    '  /add sub <epic_id> "name" ["description"] [start=...] [minutes=...] [status=...]'
)


def cmd_add(state: AppState, args: list[str]) -> str:
    positional, options = _split_options(args)
    if not positional:
        raise UsageError(_ADD_USAGE)

    kind = positional[0].lower()
    rest = positional[1:]
    start = _parse_start(options.get("start", ""))
    duration = _parse_minutes(options.get("minutes", ""))
    status = _parse_status(options["status"]) if "status" in options else TaskStatus.NEW

    if kind == "task":
        if not rest:
            raise UsageError(_ADD_USAGE)
        entity = new_task(
            rest[0],
            " ".join(rest[1:]),
            status=status,
            start_time=start,
            duration=duration,
        )
        task_id = state.service.create_task(entity)
        return f"Created task #{task_id}."

    if kind == "epic":
        if not rest:
            raise UsageError(_ADD_USAGE)
        epic_id = state.service.create_epic(new_epic(rest[0], " ".join(rest[1:])))
        return f"Created epic #{epic_id}."

    if kind in ("sub", "subtask"):
        if len(rest) < 2:
            raise UsageError(_ADD_USAGE)
        entity = new_subtask(
            rest[1],
            _parse_id(rest[0]),
            " ".join(rest[2:]),
            status=status,
            start_time=start,
            duration=duration,
        )
        subtask_id = state.service.create_subtask(entity)
        return f"Created subtask #{subtask_id} in epic #{entity.epic_id}."

    raise UsageError(_ADD_USAGE)


def _lookup(state: AppState, raw_id: str) -> Task:
    task_id = _parse_id(raw_id)
    found = state.service.find_by_id(task_id)
    if found is None:
        raise UsageError(f"No task, epic or subtask with id #{task_id}.")
    return found


def cmd_show(state: AppState, args: list[str]) -> str:
    if len(args) != 1:
        raise UsageError("Usage: /show <id>")
    found = _lookup(state, args[0])
    service = state.service

    # Go through the typed getters so the view lands in the history.
    if found.kind is TaskKind.TASK:
        task = service.get_task_by_id(found.id)
    elif found.kind is TaskKind.EPIC:
        task = service.get_epic_by_id(found.id)
    else:
        task = service.get_subtask_by_id(found.id)
    if task is None:
        raise UsageError(f"#{found.id} was deleted.")

    lines = [format_task(task)]
    if task.duration is not None:
        lines.append(f"  duration: {task.duration}")
    if task.kind is TaskKind.EPIC:
        subs = service.get_subtasks_by_epic_id(task.id)
        lines.extend(f"  {format_task(s)}" for s in subs)
    return "\n".join(lines)


def _apply_edit(state: AppState, task: Task, options: dict[str, str]) -> str:
    if task.kind is TaskKind.EPIC:
        raise UsageError("Epic status and time are derived from its subtasks; edit the subtasks.")

    changes: dict[str, object] = {}
    if "name" in options:
        changes["name"] = options["name"]
    if "description" in options:
        changes["description"] = options["description"]
    if "status" in options:
        changes["status"] = _parse_status(options["status"])
    if "start" in options:
        changes["start_time"] = _parse_start(options["start"])
    if "minutes" in options:
        changes["duration"] = _parse_minutes(options["minutes"])
    if "epic" in options:
        if task.kind is not TaskKind.SUBTASK:
            raise UsageError("Only subtasks can be moved to another epic.")
        changes["epic_id"] = _parse_id(options["epic"])

    if not changes:
        raise UsageError("Nothing to change.")

    updated = replace(task, **changes)
    if task.kind is TaskKind.TASK:
        state.service.update_task(updated)
    else:
        state.service.update_subtask(updated)
    return f"Updated #{task.id}."


def cmd_edit(state: AppState, args: list[str]) -> str:
    """
    /edit <id> name=... description=... status=... start=... minutes=... epic=...
    """
    positional, options = _split_options(args)
    if len(positional) != 1:
        raise UsageError(
            "Usage: /edit <id> [name=...] [description=...] [status=...] "
            "[start=...|none] [minutes=...|none] [epic=<id>]"
        )
    return _apply_edit(state, _lookup(state, positional[0]), options)


def cmd_set(state: AppState, args: list[str]) -> str:
    if len(args) != 2:
        raise UsageError("Usage: /set <id> <NEW|IN_PROGRESS|DONE>")
    return _apply_edit(state, _lookup(state, args[0]), {"status": args[1]})


def cmd_del(state: AppState, args: list[str]) -> str:
    if len(args) != 1:
        raise UsageError("Usage: /del <id>")
    found = _lookup(state, args[0])
    service = state.service
    if found.kind is TaskKind.TASK:
        service.delete_task_by_id(found.id)
        return f"Deleted task #{found.id}."
    if found.kind is TaskKind.EPIC:
        n = len(found.subtask_ids)
        service.delete_epic_by_id(found.id)
        return f"Deleted epic #{found.id} and {n} subtask(s)."
    service.delete_subtask_by_id(found.id)
    return f"Deleted subtask #{found.id}."


def cmd_clear(state: AppState, args: list[str]) -> str:
    what = args[0].lower() if args else ""
    service = state.service
    if what == "tasks":
        service.delete_all_tasks()
        return "All tasks deleted."
    if what == "subtasks":
        service.delete_all_subtasks()
        return "All subtasks deleted."
    if what == "epics":
        service.delete_all_epics()
        return "All epics and their subtasks deleted."
    raise UsageError("Usage: /clear tasks|epics|subtasks")


def cmd_subs(state: AppState, args: list[str]) -> str:
    if len(args) != 1:
        raise UsageError("Usage: /subs <epic_id>")
    epic_id = _parse_id(args[0])
    return _format_list(f"Subtasks of epic #{epic_id}", state.service.get_subtasks_by_epic_id(epic_id))


def cmd_prio(state: AppState, args: list[str]) -> str:
    return _format_list("By start time", state.service.get_prioritized_tasks())


def cmd_history(state: AppState, args: list[str]) -> str:
    return _format_list("Recently viewed (oldest first)", state.service.get_history())


def cmd_save(state: AppState, args: list[str]) -> str:
    state.service.save()
    backing = state.service.backing
    return f"Saved to {backing.describe() if backing is not None else 'nowhere'}."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show storage and counters.")
registry.register("list", cmd_list, help_text="List entities: /list [tasks|epics|subtasks|all].", aliases=["ls"])
registry.register("add", cmd_add, help_text="Create: /add task|epic|sub ... (see /add).")
registry.register("show", cmd_show, help_text="Show one entity (recorded in history): /show <id>.")
registry.register("edit", cmd_edit, help_text="Edit a task/subtask: /edit <id> key=value ...")
registry.register("set", cmd_set, help_text="Set status: /set <id> NEW|IN_PROGRESS|DONE.")
registry.register("del", cmd_del, help_text="Delete by id (epics take their subtasks): /del <id>.", aliases=["rm"])
registry.register("clear", cmd_clear, help_text="Delete all: /clear tasks|epics|subtasks.")
registry.register("subs", cmd_subs, help_text="Subtasks of an epic: /subs <epic_id>.")
registry.register("prio", cmd_prio, help_text="Scheduled tasks ordered by start time.")
registry.register("history", cmd_history, help_text="Recently viewed entities.")
registry.register("save", cmd_save, help_text="Write everything to storage now.")
