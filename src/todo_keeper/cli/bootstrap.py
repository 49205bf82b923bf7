# src/todo_keeper/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the store, notifier, reminder scheduler and task service into AppState.

Nothing here is a global: every collaborator is constructed once and passed down.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..connectors.notifiers import ConsoleNotifier, LogNotifier
from ..core.ports import Notifier, TaskRepo
from ..core.state import AppState
from ..tasks.task_scheduler import ReminderScheduler
from ..tasks.task_service import TaskService
from ..tasks.task_store import OfflineTaskStore, SqliteTaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    # The database directory is created by the store itself, so a bad db_path only degrades storage.


def open_store(settings) -> TaskRepo:
    """Open the SQLite store; fall back to the offline store so the app still starts."""
    try:
        return SqliteTaskStore(settings.db_path)
    except Exception as e:
        logger.error("Failed to open task database %s: %s", settings.db_path, e)
        logger.warning("The application will continue without database functionality.")
        return OfflineTaskStore(reason=str(e))


def create_initial_state(
    *,
    settings=None,
    store: TaskRepo | None = None,
    notifier: Notifier | None = None,
    start_scheduler: bool = True,
) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings (and the store/notifier) injectable makes the app easier to test
    and avoids hidden global config reads. If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    if store is None:
        store = open_store(settings)

    if notifier is None:
        notifier = ConsoleNotifier() if settings.console_notifications else LogNotifier()

    scheduler = ReminderScheduler(
        notifier,
        lead_minutes=settings.reminder_lead_minutes,
        sweep_interval_seconds=settings.reminder_sweep_seconds,
        workers=settings.reminder_workers,
        snooze_minutes=settings.snooze_minutes,
    )
    service = TaskService(store, scheduler)

    if start_scheduler:
        scheduler.start()

    return AppState(settings=settings, store=store, scheduler=scheduler, service=service)
