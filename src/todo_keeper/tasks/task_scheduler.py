# src/todo_keeper/tasks/task_scheduler.py

"""
Reminder scheduler.

One scheduler thread owns a min-heap of (fire_at, seq, task_id) timers:
- at most one live timer per task id (the registry maps task id -> timer),
- replaced timers stay in the heap and are skipped when popped,
- due timers are handed to a small worker pool that calls the notifier.

A periodic sweep re-reads the cached tasks and submits anything due within the
reminder window. Both paths end in _deliver(), which re-reads the task and
records (task_id, due_date) so a due date is announced once.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import threading
import time
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from ..core.ports import Notifier, ReminderTarget
from .task_models import DISPLAY_FORMAT, Priority, Task

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

# How long shutdown waits for reminders that are already being delivered.
DRAIN_TIMEOUT_S = 5.0


class ReminderAction(str, Enum):
    COMPLETE = "complete"
    SNOOZE = "snooze"
    DISMISS = "dismiss"


@dataclass(slots=True, frozen=True)
class ReminderResponse:
    """What the user chose on the notification. minutes=0 means the default snooze."""

    action: ReminderAction
    minutes: int = 0

    @classmethod
    def complete(cls) -> ReminderResponse:
        return cls(ReminderAction.COMPLETE)

    @classmethod
    def snooze(cls, minutes: int = 0) -> ReminderResponse:
        return cls(ReminderAction.SNOOZE, max(0, int(minutes)))

    @classmethod
    def dismiss(cls) -> ReminderResponse:
        return cls(ReminderAction.DISMISS)


@dataclass(slots=True, frozen=True)
class Reminder:
    """The task as read at fire time, passed to the notifier."""

    task_id: int
    title: str
    description: str
    priority: Priority
    due_date: datetime
    lead_minutes: int

    @classmethod
    def from_task(cls, task: Task, lead_minutes: int) -> Reminder:
        if task.due_date is None:
            raise ValueError(f"task {task.id} has no due date")
        return cls(
            task_id=task.id,
            title=task.title,
            description=task.description,
            priority=task.priority,
            due_date=task.due_date,
            lead_minutes=lead_minutes,
        )

    @property
    def message(self) -> str:
        return (
            f"'{self.title}' is due in {self.lead_minutes} minutes!\n"
            f"Due: {self.due_date.strftime(DISPLAY_FORMAT)}"
        )


@dataclass(slots=True)
class _Timer:
    seq: int
    fire_at: datetime


class ReminderScheduler:
    def __init__(
        self,
        notifier: Notifier,
        *,
        lead_minutes: int = 5,
        sweep_interval_seconds: float = 60.0,
        workers: int = 2,
        snooze_minutes: int = 10,
        clock: Clock = datetime.now,
    ) -> None:
        self._notifier = notifier
        self.lead_minutes = max(0, int(lead_minutes))
        self.snooze_minutes = max(1, int(snooze_minutes))
        self._lead = timedelta(minutes=self.lead_minutes)
        self._sweep_s = max(0.01, float(sweep_interval_seconds))
        self._workers = max(1, int(workers))
        self._clock = clock

        self._target: ReminderTarget | None = None

        self._cond = threading.Condition()
        self._heap: list[tuple[datetime, int, int]] = []
        self._timers: dict[int, _Timer] = {}
        self._notified: dict[int, datetime] = {}
        self._seq = itertools.count(1)
        self._inflight: set[Future] = set()

        self._executor: ThreadPoolExecutor | None = None
        self._thread: threading.Thread | None = None
        self._stopped = False

    # ---- lifecycle ----

    def attach(self, target: ReminderTarget) -> None:
        self._target = target

    def start(self) -> None:
        with self._cond:
            if self._stopped:
                raise RuntimeError("ReminderScheduler was shut down")
            if self._thread is not None:
                return
            self._executor = ThreadPoolExecutor(
                max_workers=self._workers, thread_name_prefix="reminder-worker"
            )
            self._thread = threading.Thread(
                target=self._run, name="reminder-scheduler", daemon=True
            )
            self._thread.start()
        logger.info(
            "Reminder scheduler started (lead=%smin sweep=%ss workers=%s)",
            self.lead_minutes,
            self._sweep_s,
            self._workers,
        )

    @property
    def running(self) -> bool:
        return self._thread is not None and not self._stopped

    def shutdown(self) -> None:
        """Stop the scheduler thread and the worker pool, then close the notifier. Idempotent."""
        with self._cond:
            if self._stopped:
                return
            self._stopped = True
            self._timers.clear()
            self._heap.clear()
            self._cond.notify_all()
            thread, executor = self._thread, self._executor

        if thread is not None:
            thread.join(timeout=5.0)
        if executor is not None:
            # Queued deliveries are dropped; running ones may still call the notifier.
            executor.shutdown(wait=False, cancel_futures=True)
            with self._cond:
                inflight = list(self._inflight)
            _, not_done = wait(inflight, timeout=DRAIN_TIMEOUT_S)
            if not_done:
                logger.warning(
                    "%d reminder deliveries still running after %.0fs; closing notifier anyway",
                    len(not_done),
                    DRAIN_TIMEOUT_S,
                )

        try:
            self._notifier.close()
        except Exception:
            logger.exception("Notifier close failed")

        logger.info("Reminder scheduler shutdown completed")

    # ---- timers ----

    def schedule(self, task: Task) -> bool:
        """
        Arm (or re-arm) the reminder for a task. Returns True if a timer is pending.

        Reminders whose notify time has already passed are not caught up here.
        """
        if not task.id:
            return False

        if task.due_date is None or task.completed:
            self.cancel_id(task.id)
            return False

        notify_at = task.due_date - self._lead
        now = self._clock()

        with self._cond:
            if self._stopped:
                return False
            self._timers.pop(task.id, None)
            if notify_at <= now:
                logger.debug(
                    "Reminder time for task %s already passed (notify_at=%s)", task.id, notify_at
                )
                return False

            seq = next(self._seq)
            self._timers[task.id] = _Timer(seq=seq, fire_at=notify_at)
            heapq.heappush(self._heap, (notify_at, seq, task.id))
            self._cond.notify_all()

        logger.info(
            "Scheduled reminder for task %s %r in %.0f seconds",
            task.id,
            task.title,
            (notify_at - now).total_seconds(),
        )
        return True

    def cancel(self, task: Task) -> bool:
        return self.cancel_id(task.id)

    def cancel_id(self, task_id: int) -> bool:
        with self._cond:
            had_timer = self._timers.pop(task_id, None) is not None
            self._notified.pop(task_id, None)
            if had_timer:
                self._cond.notify_all()
        if had_timer:
            logger.info("Reminder cancelled for task %s", task_id)
        return had_timer

    def cancel_all(self) -> None:
        with self._cond:
            self._timers.clear()
            self._heap.clear()
            self._notified.clear()
            self._cond.notify_all()

    def is_scheduled(self, task_id: int) -> bool:
        with self._cond:
            return task_id in self._timers

    def scheduled_at(self, task_id: int) -> datetime | None:
        with self._cond:
            timer = self._timers.get(task_id)
            return timer.fire_at if timer else None

    def pending_count(self) -> int:
        with self._cond:
            return len(self._timers)

    # ---- scheduler thread ----

    def _run(self) -> None:
        next_sweep = time.monotonic()

        while True:
            due: list[int] = []
            with self._cond:
                if self._stopped:
                    return

                now = self._clock()
                while self._heap and self._heap[0][0] <= now:
                    _, seq, task_id = heapq.heappop(self._heap)
                    timer = self._timers.get(task_id)
                    if timer is not None and timer.seq == seq:
                        del self._timers[task_id]
                        due.append(task_id)

                sweep_now = time.monotonic() >= next_sweep
                if not due and not sweep_now:
                    timeout = next_sweep - time.monotonic()
                    if self._heap:
                        timeout = min(timeout, (self._heap[0][0] - now).total_seconds())
                    self._cond.wait(timeout=max(0.0, timeout))
                    continue

            for task_id in due:
                self._submit(task_id, "timer")

            if sweep_now:
                self._sweep()
                next_sweep = time.monotonic() + self._sweep_s

    def _submit(self, task_id: int, source: str) -> None:
        executor = self._executor
        if executor is None or self._stopped:
            return
        try:
            future = executor.submit(self._deliver, task_id, source)
        except RuntimeError:
            logger.debug("Reminder pool closed; dropping task %s (%s)", task_id, source)
            return

        with self._cond:
            self._inflight.add(future)
        # Registered after add(): an already finished future is discarded right here.
        future.add_done_callback(self._forget)

    def _forget(self, future: Future) -> None:
        with self._cond:
            self._inflight.discard(future)

    def _sweep(self) -> None:
        target = self._target
        if target is None:
            return

        try:
            tasks = target.cached_tasks()
        except Exception:
            logger.exception("Reminder sweep could not read tasks")
            return

        now = self._clock()
        horizon = now + self._lead + timedelta(minutes=1)

        for task in tasks:
            if not task.id or task.completed or task.due_date is None:
                continue
            if not (now < task.due_date < horizon):
                continue
            with self._cond:
                if self._notified.get(task.id) == task.due_date:
                    continue
            self._submit(task.id, "sweep")

    # ---- delivery (worker threads) ----

    def _deliver(self, task_id: int, source: str) -> None:
        target = self._target
        if target is None:
            return

        try:
            task = target.cached_task(task_id)
        except Exception:
            logger.exception("Reminder lookup failed task_id=%s", task_id)
            return

        if task is None:
            logger.debug("Reminder skipped: task %s no longer exists", task_id)
            return
        if task.completed or task.due_date is None:
            logger.debug("Reminder skipped: task %s completed or has no due date", task_id)
            return

        with self._cond:
            if self._stopped:
                return
            if self._notified.get(task_id) == task.due_date:
                logger.debug("Reminder for task %s already sent (%s)", task_id, source)
                return
            self._notified[task_id] = task.due_date

        reminder = Reminder.from_task(task, self.lead_minutes)
        logger.info("Sending reminder for task %s %r (%s)", task_id, task.title, source)

        try:
            response = self._notifier.notify(reminder)
        except Exception:
            logger.exception("Notifier failed task_id=%s", task_id)
            response = ReminderResponse.dismiss()

        self._apply(task_id, response or ReminderResponse.dismiss())

    def _apply(self, task_id: int, response: ReminderResponse) -> None:
        target = self._target
        if target is None or response.action is ReminderAction.DISMISS:
            logger.debug("Reminder for task %s dismissed", task_id)
            return

        try:
            if response.action is ReminderAction.COMPLETE:
                applied = target.complete(task_id)
            else:
                minutes = response.minutes or self.snooze_minutes
                applied = target.snooze(task_id, minutes)
        except Exception:
            logger.exception(
                "Reminder response %s failed task_id=%s", response.action.value, task_id
            )
            return

        if applied:
            logger.info("Reminder response %s applied to task %s", response.action.value, task_id)
        else:
            logger.warning(
                "Reminder response %s ignored: task %s no longer exists",
                response.action.value,
                task_id,
            )

    # ---- diagnostics ----

    def test_notification(self) -> bool:
        """Send a diagnostic reminder straight to the notifier. Returns False if it raised."""
        reminder = Reminder(
            task_id=0,
            title="Test notification",
            description="If you can see this, notifications are working!",
            priority=Priority.LOW,
            due_date=self._clock(),
            lead_minutes=0,
        )
        try:
            self._notifier.notify(reminder)
        except Exception:
            logger.exception("Test notification failed")
            return False
        return True
