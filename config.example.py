# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "TODO_APP_NAME": "App display name (default: todo-keeper).",
    "TODO_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    # Paths (gitignored)
    "TODO_DATA_DIR": "Local data directory for the database and log (default: .local/todo-keeper).",
    "TODO_DB_PATH": "SQLite task database path (default: <data_dir>/tasks.sqlite3).",
    # Reminders
    "TODO_REMINDER_LEAD_MINUTES": "How long before the due time a reminder fires (default: 5).",
    "TODO_REMINDER_SWEEP_SECONDS": "Interval of the backstop sweep over pending tasks (default: 60).",
    "TODO_REMINDER_WORKERS": "Threads delivering reminders to the notifier (default: 2).",
    "TODO_SNOOZE_MINUTES": "Default snooze length for /snooze and notifier responses (default: 10).",
    "TODO_CONSOLE_NOTIFICATIONS": "Print reminders in the console (true) or only log them (false).",
}
