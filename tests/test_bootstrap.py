# tests/test_bootstrap.py

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from todo_keeper.cli.bootstrap import create_initial_state, open_store
from todo_keeper.config import Settings
from todo_keeper.connectors.notifiers import ConsoleNotifier, LogNotifier
from todo_keeper.logging_setup import resolve_level, setup_logging
from todo_keeper.tasks.task_models import Task
from todo_keeper.tasks.task_scheduler import Reminder
from todo_keeper.tasks.task_service import PLACEHOLDER_TITLE
from todo_keeper.tasks.task_store import OfflineTaskStore, SqliteTaskStore

from .fakes import RecordingNotifier


def test_state_persists_through_sqlite(settings) -> None:
    state = create_initial_state(settings=settings, notifier=RecordingNotifier(), start_scheduler=False)
    try:
        assert isinstance(state.store, SqliteTaskStore)
        assert state.service.is_store_available()
        created = state.service.create(Task(title="persisted"))
    finally:
        state.service.shutdown()

    again = create_initial_state(settings=settings, notifier=RecordingNotifier(), start_scheduler=False)
    try:
        assert [t.id for t in again.service.get_all_tasks()] == [created.id]
        assert again.service.get_all_tasks()[0].title == "persisted"
    finally:
        again.service.shutdown()


def test_unopenable_database_starts_in_memory_mode(settings, tmp_path: Path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x")
    settings.db_path = blocker / "tasks.sqlite3"

    store = open_store(settings)
    assert isinstance(store, OfflineTaskStore)

    state = create_initial_state(
        settings=settings, store=store, notifier=RecordingNotifier(), start_scheduler=False
    )
    try:
        assert not state.service.is_store_available()
        assert state.service.get_all_tasks()[0].title == PLACEHOLDER_TITLE
        assert state.service.create(Task(title="offline")).id == 2
    finally:
        state.service.shutdown()


def test_settings_from_env(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("TODO_DATA_DIR", str(tmp_path / "d"))
    monkeypatch.setenv("TODO_REMINDER_LEAD_MINUTES", "15")
    monkeypatch.setenv("TODO_REMINDER_WORKERS", "0")
    monkeypatch.setenv("TODO_SNOOZE_MINUTES", "abc")
    monkeypatch.setenv("TODO_CONSOLE_NOTIFICATIONS", "off")
    monkeypatch.delenv("TODO_DB_PATH", raising=False)

    s = Settings.from_env()
    assert s.data_dir == tmp_path / "d"
    assert s.db_path == tmp_path / "d" / "tasks.sqlite3"
    assert s.reminder_lead_minutes == 15
    assert s.reminder_workers == 2
    assert s.snooze_minutes == 10
    assert s.console_notifications is False


def test_notifiers_dismiss(capsys) -> None:
    reminder = Reminder(
        task_id=4,
        title="Stretch",
        description="",
        priority=Task(title="x").priority,
        due_date=Task(title="x").created_at,
        lead_minutes=5,
    )
    assert LogNotifier().notify(reminder).action.value == "dismiss"

    console = ConsoleNotifier()
    console.notify(reminder)
    out = capsys.readouterr().out
    assert "'Stretch' is due in 5 minutes!" in out
    assert "/done 4" in out

    console.close()
    console.notify(reminder)
    assert capsys.readouterr().out == ""


def test_setup_logging_writes_file(tmp_path: Path) -> None:
    root = logging.getLogger()
    saved = list(root.handlers)
    try:
        log_file = setup_logging(log_dir=tmp_path, console_level="warning")
        logging.getLogger("todo_keeper.test").debug("hello file")

        console, rotating = root.handlers
        assert console.level == logging.WARNING
        assert isinstance(rotating, RotatingFileHandler)

        scheduler_info = logging.LogRecord(
            "todo_keeper.tasks.task_scheduler", logging.INFO, __file__, 1, "x", None, None
        )
        sqlite_warning = logging.LogRecord("sqlite3", logging.WARNING, __file__, 1, "x", None, None)
        service_info = logging.LogRecord(
            "todo_keeper.tasks.task_service", logging.INFO, __file__, 1, "x", None, None
        )
        assert not console.filter(scheduler_info)
        assert not console.filter(sqlite_warning)
        assert console.filter(service_info)
        for h in root.handlers:
            h.flush()
        assert "hello file" in log_file.read_text("utf-8")
    finally:
        for h in list(root.handlers):
            root.removeHandler(h)
            h.close()
        for h in saved:
            root.addHandler(h)
        logging.captureWarnings(False)


def test_resolve_level_accepts_names_and_numbers() -> None:
    assert resolve_level("debug") == logging.DEBUG
    assert resolve_level(" WARNING ") == logging.WARNING
    assert resolve_level("15") == 15
    assert resolve_level(logging.ERROR) == logging.ERROR
    assert resolve_level("") == logging.INFO
    assert resolve_level("chatty", logging.DEBUG) == logging.DEBUG
