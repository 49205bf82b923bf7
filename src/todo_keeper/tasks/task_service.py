# src/todo_keeper/tasks/task_service.py

"""
Resilient task service.

Owns the in-memory cache (the source of truth for display), keeps it in sync
with the store while the store is healthy, and keeps the reminder scheduler in
step with every mutation.

Failure policy:
- ValidationError is the only error that reaches callers.
- Any store failure is logged, flips the health flag to False and the call
  completes against the cache. The flag never flips back.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timedelta
from typing import TypeVar

from ..core.ports import TaskRepo
from .errors import ValidationError
from .task_cache import TaskCache, TaskListView
from .task_models import Priority, Task, validate_task
from .task_scheduler import ReminderScheduler

logger = logging.getLogger(__name__)

T = TypeVar("T")

PLACEHOLDER_TITLE = "Welcome to todo-keeper (in-memory mode)"
PLACEHOLDER_DESCRIPTION = "Database connection failed. Your data will not be persisted."


class TaskService:
    def __init__(
        self,
        store: TaskRepo,
        scheduler: ReminderScheduler,
        *,
        clock: Callable[[], datetime] = datetime.now,
        load: bool = True,
    ) -> None:
        self._store = store
        self._scheduler = scheduler
        self._clock = clock
        self._cache = TaskCache()
        self._lock = threading.RLock()
        self._store_available = True
        self._placeholder_seeded = False

        scheduler.attach(self)

        if load:
            self.refresh()

    # ---- store health ----

    def is_store_available(self) -> bool:
        with self._lock:
            return self._store_available

    def _mark_store_unavailable(self, operation: str, exc: Exception) -> None:
        if self._store_available:
            logger.error(
                "Store failed during %s; switching to in-memory mode: %s",
                operation,
                exc,
                exc_info=exc,
            )
        else:
            logger.warning("Store failed during %s, using in-memory data: %s", operation, exc)
        self._store_available = False

    def _query(self, operation: str, from_store: Callable[[], T], from_cache: Callable[[], T]) -> T:
        with self._lock:
            if self._store_available:
                try:
                    return from_store()
                except Exception as e:
                    self._mark_store_unavailable(operation, e)
            return from_cache()

    # ---- mutations ----

    def create(self, task: Task) -> Task:
        validate_task(task)
        if task.id:
            raise ValidationError(f"task already has id {task.id}; use update()")

        with self._lock:
            if self._store_available:
                try:
                    task.assign_id(self._store.insert(task))
                except Exception as e:
                    self._mark_store_unavailable("insert", e)

            if not task.id:
                task.assign_id(self._cache.next_local_id())
                logger.info("Created task %s %r (in-memory only)", task.id, task.title)
            else:
                logger.info("Created task %s %r", task.id, task.title)

            self._cache.prepend(task)

            if task.due_date is not None and not task.completed:
                self._scheduler.schedule(task)

            return task

    def update(self, task: Task) -> None:
        validate_task(task)

        with self._lock:
            existing = self._cache.get(task.id)
            if existing is None:
                logger.warning("Attempted to update non-existent task with id: %s", task.id)
                return

            self._cache.restore_created_at(task)

            if self._store_available:
                try:
                    if not self._store.update(task):
                        logger.warning("Store has no row for task %s; updated in memory only", task.id)
                except Exception as e:
                    self._mark_store_unavailable("update", e)

            self._cache.replace(task)
            logger.info("Updated task %s %r", task.id, task.title)

            if task.completed or task.due_date is None:
                self._scheduler.cancel(task)
            else:
                self._scheduler.schedule(task)

    def delete(self, task: Task) -> bool:
        return self.delete_by_id(task.id)

    def delete_by_id(self, task_id: int) -> bool:
        with self._lock:
            if self._cache.get(task_id) is None:
                logger.warning("Attempted to delete non-existent task with id: %s", task_id)
                return False

            if self._store_available:
                try:
                    if not self._store.delete_by_id(task_id):
                        logger.warning("Store has no row for task %s", task_id)
                except Exception as e:
                    self._mark_store_unavailable("delete_by_id", e)

            removed = self._cache.remove(task_id)
            self._scheduler.cancel_id(task_id)
            logger.info("Deleted task %s %r", task_id, removed.title if removed else "")
            return True

    def complete(self, task_id: int) -> bool:
        with self._lock:
            task = self._cache.get(task_id)
            if task is None:
                logger.warning("Attempted to complete non-existent task with id: %s", task_id)
                return False
            task.completed = True
            self.update(task)
            return True

    def snooze(self, task_id: int, minutes: int) -> bool:
        with self._lock:
            task = self._cache.get(task_id)
            if task is None:
                logger.warning("Attempted to snooze non-existent task with id: %s", task_id)
                return False
            base = task.due_date if task.due_date is not None else self._clock()
            task.due_date = base + timedelta(minutes=int(minutes))
            self.update(task)
            logger.info("Snoozed task %s for %s minutes", task_id, minutes)
            return True

    # ---- queries ----

    def find_by_id(self, task_id: int) -> Task | None:
        return self._query(
            "find_by_id",
            lambda: self._store.find_by_id(task_id),
            lambda: self._cache.get(task_id),
        )

    def get_all_tasks(self) -> TaskListView:
        return self._cache.view()

    def get_completed(self) -> list[Task]:
        return self._query(
            "find_by_completed",
            lambda: self._store.find_by_completed(True),
            lambda: [t for t in self._cache if t.completed],
        )

    def get_pending(self) -> list[Task]:
        return self._query(
            "find_by_completed",
            lambda: self._store.find_by_completed(False),
            lambda: [t for t in self._cache if not t.completed],
        )

    def get_overdue(self) -> list[Task]:
        now = self._clock()
        return self._query(
            "find_overdue",
            lambda: self._store.find_overdue(now),
            lambda: _by_due_date(t for t in self._cache if t.is_overdue_at(now)),
        )

    def get_by_priority(self, priority: Priority) -> list[Task]:
        return self._query(
            "find_by_priority",
            lambda: self._store.find_by_priority(priority),
            lambda: [t for t in self._cache if t.priority is priority],
        )

    def search(self, text: str | None) -> list[Task]:
        needle = (text or "").strip()
        if not needle:
            with self._lock:
                return self._cache.snapshot()

        folded = needle.casefold()
        return self._query(
            "search",
            lambda: self._store.search(needle),
            lambda: [
                t
                for t in self._cache
                if folded in t.title.casefold() or folded in (t.description or "").casefold()
            ],
        )

    def get_due_between(self, start: datetime, end: datetime) -> list[Task]:
        return self._query(
            "find_due_between",
            lambda: self._store.find_due_between(start, end),
            lambda: _by_due_date(
                t for t in self._cache if t.due_date is not None and start <= t.due_date <= end
            ),
        )

    # ---- counts ----

    def total_count(self) -> int:
        with self._lock:
            return len(self._cache)

    def completed_count(self) -> int:
        return self._query(
            "count_by_completed",
            lambda: self._store.count_by_completed(True),
            lambda: sum(1 for t in self._cache if t.completed),
        )

    def pending_count(self) -> int:
        return self._query(
            "count_by_completed",
            lambda: self._store.count_by_completed(False),
            lambda: sum(1 for t in self._cache if not t.completed),
        )

    def overdue_count(self) -> int:
        now = self._clock()
        return self._query(
            "count_overdue",
            lambda: self._store.count_overdue(now),
            lambda: sum(1 for t in self._cache if t.is_overdue_at(now)),
        )

    # ---- scheduler-facing reads ----

    def cached_task(self, task_id: int) -> Task | None:
        with self._lock:
            task = self._cache.get(task_id)
            return replace(task) if task is not None else None

    def cached_tasks(self) -> list[Task]:
        with self._lock:
            return [replace(t) for t in self._cache]

    # ---- lifecycle ----

    def refresh(self) -> None:
        """
        Reload the cache wholesale from the store.

        Once the store is marked unavailable this does not probe it again; it only
        makes sure degraded mode is visible (placeholder task when the cache is empty).
        """
        with self._lock:
            if self._store_available:
                try:
                    loaded = self._store.find_all()
                except Exception as e:
                    self._mark_store_unavailable("find_all", e)
                else:
                    self._cache.load(loaded)
                    logger.info("Loaded %d tasks from store", len(loaded))

                    self._scheduler.cancel_all()
                    for task in self._cache:
                        if not task.completed and task.due_date is not None:
                            self._scheduler.schedule(task)
                    return
            else:
                logger.warning("Store unavailable; refresh keeps the in-memory tasks")

            self._seed_placeholder()

    def _seed_placeholder(self) -> None:
        if self._placeholder_seeded or len(self._cache):
            return
        self._placeholder_seeded = True

        logger.info("Loading placeholder task for in-memory mode")
        task = Task(
            title=PLACEHOLDER_TITLE,
            description=PLACEHOLDER_DESCRIPTION,
            priority=Priority.HIGH,
        )
        task.assign_id(self._cache.next_local_id())
        self._cache.prepend(task)

    def test_notification(self) -> bool:
        return self._scheduler.test_notification()

    def shutdown(self) -> None:
        # Not under the service lock: reminder workers may be waiting on it.
        self._scheduler.shutdown()
        logger.info("TaskService shutdown completed")


def _by_due_date(tasks) -> list[Task]:
    return sorted(tasks, key=lambda t: t.due_date)
