# src/todo_keeper/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The service depends on Protocols instead of concrete implementations.
This keeps the store and the notification sinks swappable and makes testing easier.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from ..tasks.task_models import Priority, Task
    from ..tasks.task_scheduler import Reminder, ReminderResponse


class TaskRepo(Protocol):
    """
    Persistent CRUD + query operations over tasks.

    Any call may raise. The service does not distinguish transient from
    permanent failures and never retries.
    """

    def insert(self, task: Task) -> int: ...
    def update(self, task: Task) -> bool: ...
    def delete_by_id(self, task_id: int) -> bool: ...
    def find_by_id(self, task_id: int) -> Task | None: ...

    # Newest first.
    def find_all(self) -> list[Task]: ...

    def find_by_completed(self, completed: bool) -> list[Task]: ...
    def find_by_priority(self, priority: Priority) -> list[Task]: ...
    def find_overdue(self, now: datetime) -> list[Task]: ...
    def find_due_between(self, start: datetime, end: datetime) -> list[Task]: ...
    def search(self, text: str) -> list[Task]: ...

    def count(self) -> int: ...
    def count_by_completed(self, completed: bool) -> int: ...
    def count_overdue(self, now: datetime) -> int: ...

    def close(self) -> None: ...


class Notifier(Protocol):
    """
    Sink for "task due" events (tray toast, dialog, console line, log record).

    notify() may block until the user answers; it runs on a reminder worker thread.
    """

    def notify(self, reminder: Reminder) -> ReminderResponse: ...
    def close(self) -> None: ...


class ReminderTarget(Protocol):
    """What the reminder scheduler needs from the service at fire time."""

    def cached_task(self, task_id: int) -> Task | None: ...
    def cached_tasks(self) -> list[Task]: ...
    def complete(self, task_id: int) -> bool: ...
    def snooze(self, task_id: int, minutes: int) -> bool: ...
