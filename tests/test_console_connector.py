# tests/test_console_connector.py

from __future__ import annotations

import pytest

from taskkeeper.cli import commands
from taskkeeper.connectors.console_connector import run_console_loop
from taskkeeper.core.state import AppState

from .fakes import ScriptedInput


def test_console_runs_commands_until_eof(state: AppState) -> None:
    read = ScriptedInput(["", "/add task T", "hello", "/list tasks"])
    out: list[str] = []

    run_console_loop(state, read_line=read, write=out.append)

    assert out[0] == "Type /help for commands, /exit to quit."
    assert out[1] == "Created task #1."
    assert out[2] == "Commands start with '/'. Try /help."
    assert out[3].startswith("Tasks:\n  #1 [TASK] T")
    assert read.prompts == ["taskkeeper> "] * 5


@pytest.mark.parametrize("cmd", ["/exit", "/QUIT"])
def test_console_exit_commands_stop_the_loop(state: AppState, cmd: str) -> None:
    read = ScriptedInput([cmd, "/add task never"])
    out: list[str] = []

    run_console_loop(state, read_line=read, write=out.append)

    assert state.service.get_all_tasks() == []
    assert len(read.prompts) == 1


def test_console_survives_a_crashing_handler(state: AppState, monkeypatch) -> None:
    def boom(st, args):
        raise RuntimeError("boom")

    monkeypatch.setitem(commands.registry._handlers, "boom", boom)
    read = ScriptedInput(["/boom", "/add task after"])
    out: list[str] = []

    run_console_loop(state, read_line=read, write=out.append)

    assert "Internal error while handling a command." in out
    assert out[-1] == "Created task #1."


def test_console_keyboard_interrupt_ends_loop(state: AppState) -> None:
    def interrupted(prompt: str) -> str:
        raise KeyboardInterrupt

    out: list[str] = []
    run_console_loop(state, read_line=interrupted, write=out.append)

    assert out == ["Type /help for commands, /exit to quit."]
