# src/todo_keeper/tasks/errors.py

from __future__ import annotations

from typing import Any


class TaskError(Exception):
    """Base class for task subsystem errors."""


class ValidationError(TaskError, ValueError):
    """A task violates a structural constraint; raised before any storage call."""


class StoreUnavailable(TaskError):
    """
    A storage call failed.

    The service treats every storage failure the same way (connectivity loss,
    constraint violation, missing schema): it logs, flips the store health flag
    and continues against the in-memory cache.
    """

    def __init__(self, operation: str, message: str, *, entity_id: Any = None) -> None:
        self.operation = operation
        self.entity_id = entity_id
        if entity_id is None:
            super().__init__(f"Store operation '{operation}' failed: {message}")
        else:
            super().__init__(
                f"Store operation '{operation}' failed for task id '{entity_id}': {message}"
            )
