# src/todo_keeper/cli/commands.py

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from ..core.state import AppState
from ..tasks.errors import ValidationError
from ..tasks.task_models import Priority, Task

CommandHandler = Callable[[AppState, list[str]], str]

logger = logging.getLogger(__name__)

DUE_FORMATS = ("%Y-%m-%d %H:%M", "%Y-%m-%dT%H:%M", "%Y-%m-%d")


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

    def handle(self, state: AppState, line: str) -> str | None:
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
            return handler(state, args)
        except ValidationError as e:
            return f"Invalid task: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- helpers ----


def format_task(task: Task, now: datetime | None = None) -> str:
    now = now or datetime.now()
    mark = "[x]" if task.completed else "[ ]"
    line = f"{mark} #{task.id} ({task.priority.label}) {task.title}"
    if task.due_date is not None:
        line += f" - due {task.formatted_due_date}"
    if task.is_overdue_at(now):
        line += " OVERDUE"
    return line


def format_tasks(tasks, empty: str = "No tasks.") -> str:
    tasks = list(tasks)
    if not tasks:
        return empty
    now = datetime.now()
    return "\n".join(format_task(t, now) for t in tasks)


def parse_due(raw: str, now: datetime | None = None) -> datetime:
    """Accept '+<minutes>', 'YYYY-MM-DD HH:MM', 'YYYY-MM-DDTHH:MM' or 'YYYY-MM-DD'."""
    text = raw.strip()
    if text.startswith("+"):
        try:
            minutes = int(text[1:])
        except ValueError:
            raise ValidationError(f"bad relative due date: {raw!r}") from None
        return (now or datetime.now()) + timedelta(minutes=minutes)

    for fmt in DUE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    raise ValidationError(f"bad due date: {raw!r} (use +MIN or YYYY-MM-DD HH:MM)")


def parse_priority(raw: str) -> Priority:
    text = raw.strip().upper()
    try:
        return Priority(text)
    except ValueError:
        raise ValidationError(f"unknown priority: {raw!r} (low/medium/high)") from None


def _parse_id(args: list[str]) -> int | None:
    if not args:
        return None
    try:
        return int(args[0].lstrip("#"))
    except ValueError:
        return None


# ---- commands ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_list(state: AppState, args: list[str]) -> str:
    """
    /list            -> all tasks (display order)
    /list done       -> completed
    /list pending    -> not completed
    /list overdue    -> overdue
    /list high|medium|low -> by priority
    """
    service = state.service
    which = args[0].lower() if args else "all"

    if which == "all":
        return format_tasks(service.get_all_tasks())
    if which in ("done", "completed"):
        return format_tasks(service.get_completed(), "No completed tasks.")
    if which in ("pending", "open"):
        return format_tasks(service.get_pending(), "No pending tasks.")
    if which == "overdue":
        return format_tasks(service.get_overdue(), "Nothing is overdue.")
    if which.upper() in Priority.__members__:
        return format_tasks(service.get_by_priority(Priority(which.upper())), "No tasks.")

    return "Usage: /list [all|done|pending|overdue|high|medium|low]"


def cmd_add(state: AppState, args: list[str]) -> str:
    """
    /add <title> [| description] [| priority] [| due]
    """
    fields = [f.strip() for f in " ".join(args).split("|")]
    if not fields or not fields[0]:
        return "Usage: /add <title> [| description] [| low|medium|high] [| +MIN or YYYY-MM-DD HH:MM]"

    task = Task(title=fields[0])
    if len(fields) > 1:
        task.description = fields[1]
    if len(fields) > 2 and fields[2]:
        task.priority = parse_priority(fields[2])
    if len(fields) > 3 and fields[3]:
        task.due_date = parse_due(fields[3])

    created = state.service.create(task)
    suffix = "" if state.service.is_store_available() else " (in-memory only)"
    return f"Created: {format_task(created)}{suffix}"


def _set_completed(state: AppState, args: list[str], completed: bool) -> str:
    task_id = _parse_id(args)
    if task_id is None:
        return "Usage: /done <id> or /undo <id>"

    service = state.service
    if completed:
        if not service.complete(task_id):
            return f"No task #{task_id}."
        return f"Completed task #{task_id}."

    task = service.cached_task(task_id)
    if task is None:
        return f"No task #{task_id}."
    task.completed = False
    service.update(task)
    return f"Reopened task #{task_id}."


def cmd_done(state: AppState, args: list[str]) -> str:
    return _set_completed(state, args, True)


def cmd_undo(state: AppState, args: list[str]) -> str:
    return _set_completed(state, args, False)


def cmd_snooze(state: AppState, args: list[str]) -> str:
    task_id = _parse_id(args)
    if task_id is None:
        return "Usage: /snooze <id> [minutes]"

    minutes = state.scheduler.snooze_minutes
    if len(args) > 1:
        try:
            minutes = max(1, int(args[1]))
        except ValueError:
            return "Usage: /snooze <id> [minutes]"

    if not state.service.snooze(task_id, minutes):
        return f"No task #{task_id}."
    return f"Snoozed task #{task_id} for {minutes} minutes."


def cmd_delete(state: AppState, args: list[str]) -> str:
    task_id = _parse_id(args)
    if task_id is None:
        return "Usage: /delete <id>"
    if not state.service.delete_by_id(task_id):
        return f"No task #{task_id}."
    return f"Deleted task #{task_id}."


def cmd_search(state: AppState, args: list[str]) -> str:
    text = " ".join(args)
    return format_tasks(state.service.search(text), f"Nothing matches {text!r}.")


def cmd_due(state: AppState, args: list[str]) -> str:
    """/due <minutes> -> tasks due between now and now + minutes."""
    try:
        minutes = int(args[0]) if args else 60
    except ValueError:
        return "Usage: /due [minutes]"
    now = datetime.now()
    tasks = state.service.get_due_between(now, now + timedelta(minutes=minutes))
    return format_tasks(tasks, f"Nothing due in the next {minutes} minutes.")


def cmd_refresh(state: AppState, args: list[str]) -> str:
    state.service.refresh()
    return f"Reloaded. {state.service.total_count()} tasks."


def cmd_status(state: AppState, args: list[str]) -> str:
    service = state.service
    mode = "DATABASE" if service.is_store_available() else "IN-MEMORY (changes are not saved)"
    return (
        "Status:\n"
        f"  Storage: {mode}\n"
        f"  Tasks: {service.total_count()} total, {service.pending_count()} pending, "
        f"{service.completed_count()} completed, {service.overdue_count()} overdue\n"
        f"  Reminders pending: {state.scheduler.pending_count()}"
    )


def cmd_notify_test(state: AppState, args: list[str]) -> str:
    if state.service.test_notification():
        return "Test notification sent."
    return "Test notification failed; see the log."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register(
    "list", cmd_list, help_text="List tasks: /list [all|done|pending|overdue|high|medium|low].",
    aliases=["ls"],
)
registry.register(
    "add", cmd_add, help_text="Add a task: /add title [| description] [| priority] [| due]."
)
registry.register("done", cmd_done, help_text="Mark a task completed: /done <id>.")
registry.register("undo", cmd_undo, help_text="Reopen a completed task: /undo <id>.")
registry.register("snooze", cmd_snooze, help_text="Push a due date back: /snooze <id> [minutes].")
registry.register("delete", cmd_delete, help_text="Delete a task: /delete <id>.", aliases=["rm"])
registry.register("search", cmd_search, help_text="Search title/description: /search <text>.")
registry.register("due", cmd_due, help_text="Tasks due soon: /due [minutes] (default 60).")
registry.register("refresh", cmd_refresh, help_text="Reload tasks from the database.")
registry.register("status", cmd_status, help_text="Show storage mode and task counts.")
registry.register("notify-test", cmd_notify_test, help_text="Send a test notification.")
