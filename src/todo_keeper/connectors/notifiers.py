# src/todo_keeper/connectors/notifiers.py

from __future__ import annotations

import logging
import sys
import threading
from datetime import datetime
from typing import TextIO

from ..tasks.task_scheduler import Reminder, ReminderResponse

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


class LogNotifier:
    """Headless sink: records the reminder in the log and dismisses it."""

    def notify(self, reminder: Reminder) -> ReminderResponse:
        logger.warning("Task reminder: %s", reminder.message.replace("\n", " "))
        return ReminderResponse.dismiss()

    def close(self) -> None:
        return


class ConsoleNotifier:
    """
    Prints reminders into the interactive console.

    Reminders fire on worker threads while the prompt is waiting for input, so the
    notifier cannot ask a question itself; the user answers with /done or /snooze.
    """

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream
        self._lock = threading.Lock()
        self._closed = False

    def notify(self, reminder: Reminder) -> ReminderResponse:
        stream = self._stream or sys.stdout
        lines = [
            f"[{_ts_local()}] [REMINDER] {reminder.message}",
            f"  Use /done {reminder.task_id} or /snooze {reminder.task_id} [minutes]."
            if reminder.task_id
            else "",
        ]
        with self._lock:
            if self._closed:
                return ReminderResponse.dismiss()
            print("\n" + "\n".join(line for line in lines if line), file=stream, flush=True)
        logger.debug("Console reminder shown for task %s", reminder.task_id)
        return ReminderResponse.dismiss()

    def close(self) -> None:
        with self._lock:
            self._closed = True
