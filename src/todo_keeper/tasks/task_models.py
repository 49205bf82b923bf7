# src/todo_keeper/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

from .errors import ValidationError

TITLE_MAX_LENGTH = 255
DESCRIPTION_MAX_LENGTH = 500

DISPLAY_FORMAT = "%b %d, %Y %H:%M"


class Priority(StrEnum):
    """Task priority. Values are what the store persists."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"

    @property
    def label(self) -> str:
        return _PRIORITY_LABELS[self]

    @property
    def color(self) -> str:
        return _PRIORITY_COLORS[self]

    @classmethod
    def from_db(cls, raw: str | None) -> Priority:
        if not raw:
            return cls.MEDIUM
        try:
            return cls(raw.strip().upper())
        except ValueError:
            return cls.MEDIUM


_PRIORITY_LABELS = {
    Priority.LOW: "Low",
    Priority.MEDIUM: "Medium",
    Priority.HIGH: "High",
}

_PRIORITY_COLORS = {
    Priority.LOW: "#4CAF50",
    Priority.MEDIUM: "#FF9800",
    Priority.HIGH: "#F44336",
}


@dataclass(slots=True)
class Task:
    """
    A single to-do record.

    id is 0 while the task is transient; it becomes persistent once the store
    (or, in degraded mode, the service) assigns an id via assign_id().
    created_at is set once here and is never changed by updates.
    """

    title: str
    description: str = ""
    priority: Priority = Priority.MEDIUM
    due_date: datetime | None = None
    completed: bool = False
    created_at: datetime = field(default_factory=datetime.now)
    id: int = 0

    def __str__(self) -> str:
        return self.title

    @property
    def is_persistent(self) -> bool:
        return self.id > 0

    def assign_id(self, new_id: int) -> None:
        if new_id <= 0:
            raise ValueError(f"task id must be positive, got {new_id}")
        if self.id and self.id != new_id:
            raise ValueError(f"task already has id {self.id}; refusing to reassign {new_id}")
        self.id = new_id

    def is_overdue_at(self, now: datetime) -> bool:
        return self.due_date is not None and self.due_date < now and not self.completed

    @property
    def is_overdue(self) -> bool:
        return self.is_overdue_at(datetime.now())

    @property
    def formatted_created_at(self) -> str:
        return self.created_at.strftime(DISPLAY_FORMAT)

    @property
    def formatted_due_date(self) -> str:
        if self.due_date is None:
            return "No due date"
        return self.due_date.strftime(DISPLAY_FORMAT)


def validate_task(task: Task | None) -> Task:
    """Check structural constraints. Returns the task so callers can chain."""
    if task is None:
        raise ValidationError("task cannot be None")

    title = task.title if isinstance(task.title, str) else ""
    if not title.strip():
        raise ValidationError("task title cannot be empty")
    if len(title) > TITLE_MAX_LENGTH:
        raise ValidationError(
            f"task title cannot exceed {TITLE_MAX_LENGTH} characters (got {len(title)})"
        )

    description = task.description or ""
    if len(description) > DESCRIPTION_MAX_LENGTH:
        raise ValidationError(
            f"task description cannot exceed {DESCRIPTION_MAX_LENGTH} characters "
            f"(got {len(description)})"
        )

    if not isinstance(task.priority, Priority):
        raise ValidationError("task priority must be set")

    return task
