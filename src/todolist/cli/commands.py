# src/todolist/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from typing import cast

from ..core.state import AppState
from ..tasks.errors import StorageFailure, TaskNotFound
from ..tasks.task_api import (
    create_task,
    edit_task,
    format_task,
    remove_task,
    set_completed,
    summarize,
    toggle_task,
)

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class UsageError(ValueError):
    """Bad command arguments; the message is shown to the user as-is."""


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /add, ...)."""

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

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        try:
            if nparams >= 3:
                h3 = cast(CommandHandler3, handler)
                return h3(state, args, emit)
            h2 = cast(CommandHandler2, handler)
            return h2(state, args)
        except TaskNotFound as e:
            return f"No such task: #{e.task_id}."
        except StorageFailure as e:
            logger.error("Command /%s failed: %s", name, e)
            return f"Storage error: {e}"
        except ValueError as e:
            return str(e)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _parse_id(args: list[str], usage: str) -> int:
    if not args:
        raise UsageError(f"Usage: {usage}")
    raw = args[0].lstrip("#")
    try:
        task_id = int(raw)
    except ValueError:
        raise UsageError(f"Not a task id: {args[0]!r}. Usage: {usage}") from None
    if task_id <= 0:
        raise UsageError(f"Task ids are positive numbers. Usage: {usage}")
    return task_id


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_list(state: AppState, args: list[str]) -> str:
    snapshot = state.task_store.list_tasks()
    if not snapshot:
        return "No tasks yet. Add one with /add <text>."
    lines = [f"Tasks ({summarize(snapshot)}):"]
    lines.extend(f"  {format_task(t)}" for t in snapshot)
    return "\n".join(lines)


def cmd_add(state: AppState, args: list[str]) -> str:
    if not args:
        raise UsageError("Usage: /add <text>")
    task = create_task(state, " ".join(args))
    return f"Added {format_task(task)}"


def cmd_edit(state: AppState, args: list[str]) -> str:
    usage = "/edit <id> <text>"
    task_id = _parse_id(args, usage)
    if len(args) < 2:
        raise UsageError(f"Usage: {usage}")
    task = edit_task(state, task_id, " ".join(args[1:]))
    return f"Updated {format_task(task)}"


def cmd_done(state: AppState, args: list[str]) -> str:
    task = set_completed(state, _parse_id(args, "/done <id>"), True)
    return format_task(task)


def cmd_undo(state: AppState, args: list[str]) -> str:
    task = set_completed(state, _parse_id(args, "/undo <id>"), False)
    return format_task(task)


def cmd_toggle(state: AppState, args: list[str]) -> str:
    task = toggle_task(state, _parse_id(args, "/toggle <id>"))
    return format_task(task)


def cmd_rm(state: AppState, args: list[str]) -> str:
    task_id = _parse_id(args, "/rm <id>")
    if remove_task(state, task_id):
        return f"Removed #{task_id}."
    # Deleting a missing task is a no-op, not an error.
    return f"Nothing to remove: #{task_id} does not exist."


def cmd_clear(
    state: AppState,
    args: list[str],
    emit: CommandEmitter | None = None,
) -> str:
    """
    /clear -> delete every completed task
    """
    completed = [t for t in state.task_store.list_tasks() if t.is_completed]
    if not completed:
        return "No completed tasks to clear."
    for task in completed:
        state.task_store.delete(task)
        if emit:
            emit(f"Removed {format_task(task)}")
    return f"Cleared {len(completed)} completed task(s)."


def cmd_status(state: AppState, args: list[str]) -> str:
    store = state.task_store
    db_path = getattr(store, "db_path", None) or getattr(state.settings, "tasks_db_path", "?")
    subscribers = store.subscriber_count() if hasattr(store, "subscriber_count") else "?"
    return (
        "Status:\n"
        f"  Database: {db_path}\n"
        f"  Tasks: {summarize(store.list_tasks())}\n"
        f"  Live subscribers: {subscribers}"
    )


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("list", cmd_list, help_text="List all tasks.", aliases=["ls"])
registry.register("add", cmd_add, help_text="Add a task: /add <text>.", aliases=["new"])
registry.register("edit", cmd_edit, help_text="Change a task's text: /edit <id> <text>.")
registry.register("done", cmd_done, help_text="Mark a task completed: /done <id>.")
registry.register("undo", cmd_undo, help_text="Mark a task not completed: /undo <id>.")
registry.register("toggle", cmd_toggle, help_text="Flip a task's completion: /toggle <id>.")
registry.register("rm", cmd_rm, help_text="Delete a task: /rm <id>.", aliases=["del"])
registry.register("clear", cmd_clear, help_text="Delete all completed tasks.")
registry.register("status", cmd_status, help_text="Show database path and totals.")
