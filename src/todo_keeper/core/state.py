# src/todo_keeper/core/state.py

from __future__ import annotations

from dataclasses import dataclass

from ..core.ports import TaskRepo
from ..tasks.task_scheduler import ReminderScheduler
from ..tasks.task_service import TaskService


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: object

    store: TaskRepo
    scheduler: ReminderScheduler
    service: TaskService
