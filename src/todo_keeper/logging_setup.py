# src/todo_keeper/logging_setup.py

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FILE_NAME = "todo-keeper.log"
LOG_FILE_MAX_BYTES = 1_000_000
LOG_FILE_BACKUPS = 3

# Background loggers whose INFO lines would land in the middle of the prompt.
_BACKGROUND_LOGGERS = ("todo_keeper.tasks.task_scheduler",)


def resolve_level(name: str | int | None, default: int = logging.INFO) -> int:
    """Map TODO_LOG_LEVEL values ("debug", "WARNING", "10") to a logging level."""
    if isinstance(name, int):
        return name
    text = (name or "").strip().upper()
    if not text:
        return default
    if text.isdigit():
        return int(text)
    level = logging.getLevelName(text)
    return level if isinstance(level, int) else default


class _PromptFilter(logging.Filter):
    """
    Console filter for the interactive shell.

    Reminder delivery logs from worker threads only reach the console at WARNING+;
    the reminder itself is already printed by the notifier. Everything outside the
    package (sqlite3, py.warnings, dotenv) is shown only at ERROR+.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if not name.startswith("todo_keeper."):
            return record.levelno >= logging.ERROR
        if name.startswith(_BACKGROUND_LOGGERS):
            return record.levelno >= logging.WARNING
        return True


def setup_logging(
    *,
    log_dir: str | Path = ".local/todo-keeper",
    console_level: str | int = logging.INFO,
    file_level: str | int = logging.DEBUG,
) -> Path:
    """
    Install a filtered stderr handler and a size-rotated DEBUG log file.

    Reminders are long-lived, so the file rotates instead of growing forever.
    Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(threadName)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(resolve_level(console_level))
    console.setFormatter(fmt)
    console.addFilter(_PromptFilter())
    root.addHandler(console)

    file_handler = RotatingFileHandler(
        str(log_file),
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8",
    )
    file_handler.setLevel(resolve_level(file_level, logging.DEBUG))
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    logging.captureWarnings(True)

    return log_file
