# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from todo_keeper.tasks.task_scheduler import ReminderScheduler
from todo_keeper.tasks.task_service import TaskService

from .fakes import FakeClock, FakeTaskStore, RecordingNotifier


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with the composition root.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="todo-keeper-test",
        log_level="DEBUG",
        data_dir=tmp_path / "data",
        db_path=tmp_path / "data" / "tasks.sqlite3",
        reminder_lead_minutes=5,
        reminder_sweep_seconds=60,
        reminder_workers=2,
        snooze_minutes=10,
        console_notifications=False,
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store() -> FakeTaskStore:
    return FakeTaskStore()


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def scheduler(notifier: RecordingNotifier, clock: FakeClock):
    """Scheduler that is never started: timers are registered but never fire."""
    sched = ReminderScheduler(notifier, clock=clock)
    yield sched
    sched.shutdown()


@pytest.fixture()
def service(store: FakeTaskStore, scheduler: ReminderScheduler, clock: FakeClock) -> TaskService:
    return TaskService(store, scheduler, clock=clock)
