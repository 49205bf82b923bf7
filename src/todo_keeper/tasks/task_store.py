# src/todo_keeper/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import time
from collections.abc import Iterator
from datetime import datetime
from pathlib import Path
from typing import Any

from .errors import StoreUnavailable
from .task_models import Priority, Task

logger = logging.getLogger(__name__)


def _to_ts(value: datetime | None) -> float | None:
    return value.timestamp() if value is not None else None


def _from_ts(value: Any) -> datetime | None:
    return datetime.fromtimestamp(float(value)) if value is not None else None


def _casefold(value: Any) -> str | None:
    return str(value).casefold() if value is not None else None


def _like_pattern(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class SqliteTaskStore:
    """
    SQLite task store.

    The schema is intentionally simple and migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Every sqlite3.Error is re-raised as StoreUnavailable.

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            total = self.count()
        except StoreUnavailable:
            total = -1
        logger.info("SqliteTaskStore ready db=%s total=%s", self._db_path, total)

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        # LIKE folds ASCII only; search compares Unicode-casefolded text instead.
        conn.create_function("casefold", 1, _casefold, deterministic=True)

    @contextlib.contextmanager
    def _connect(self, operation: str, entity_id: Any = None) -> Iterator[sqlite3.Connection]:
        conn: sqlite3.Connection | None = None
        try:
            conn = self._get_conn()
            yield conn
        except sqlite3.Error as e:
            raise StoreUnavailable(operation, str(e), entity_id=entity_id) from e
        finally:
            if conn is not None:
                conn.close()

    def _ensure_schema(self) -> None:
        with self._connect("ensure_schema") as conn:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    priority TEXT NOT NULL DEFAULT 'MEDIUM',
                    completed INTEGER NOT NULL DEFAULT 0,
                    created_at REAL NOT NULL,
                    due_date REAL,
                    updated_at REAL NOT NULL
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("SqliteTaskStore migration: added column %s", name)

            add_col("description", "TEXT NOT NULL DEFAULT ''")
            add_col("priority", "TEXT NOT NULL DEFAULT 'MEDIUM'")
            add_col("completed", "INTEGER NOT NULL DEFAULT 0")
            add_col("due_date", "REAL")
            add_col("updated_at", "REAL NOT NULL DEFAULT 0")

            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_tasks_completed_due ON tasks(completed, due_date)"
            )
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_created ON tasks(created_at)")

            conn.commit()

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=int(row["id"]),
            title=str(row["title"] or ""),
            description=str(row["description"] or ""),
            priority=Priority.from_db(row["priority"]),
            completed=bool(row["completed"]),
            created_at=_from_ts(row["created_at"]) or datetime.fromtimestamp(0),
            due_date=_from_ts(row["due_date"]),
        )

    def _query(self, operation: str, sql: str, params: tuple[Any, ...] = ()) -> list[Task]:
        with self._connect(operation) as conn:
            rows = conn.execute(sql, params).fetchall()
            return [self._row_to_task(r) for r in rows]

    def _scalar(self, operation: str, sql: str, params: tuple[Any, ...] = ()) -> int:
        with self._connect(operation) as conn:
            (n,) = conn.execute(sql, params).fetchone()
            return int(n)

    # ---- CRUD ----

    def insert(self, task: Task) -> int:
        now = time.time()
        with self._connect("insert") as conn:
            cur = conn.execute(
                """
                INSERT INTO tasks(title, description, priority, completed, created_at, due_date, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    task.title,
                    task.description or "",
                    task.priority.value,
                    int(task.completed),
                    _to_ts(task.created_at),
                    _to_ts(task.due_date),
                    now,
                ),
            )
            conn.commit()
            rowid = cur.lastrowid
            if rowid is None:
                raise StoreUnavailable("insert", "SQLite did not return lastrowid")
            task_id = int(rowid)
            logger.debug("Task inserted id=%s title=%r", task_id, task.title)
            return task_id

    def update(self, task: Task) -> bool:
        with self._connect("update", task.id) as conn:
            cur = conn.execute(
                """
                UPDATE tasks
                SET title = ?, description = ?, priority = ?, completed = ?,
                    due_date = ?, updated_at = ?
                WHERE id = ?
                """,
                (
                    task.title,
                    task.description or "",
                    task.priority.value,
                    int(task.completed),
                    _to_ts(task.due_date),
                    time.time(),
                    int(task.id),
                ),
            )
            conn.commit()
            return cur.rowcount == 1

    def delete_by_id(self, task_id: int) -> bool:
        with self._connect("delete_by_id", task_id) as conn:
            cur = conn.execute("DELETE FROM tasks WHERE id = ?", (int(task_id),))
            conn.commit()
            return cur.rowcount == 1

    def find_by_id(self, task_id: int) -> Task | None:
        with self._connect("find_by_id", task_id) as conn:
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (int(task_id),)).fetchone()
            return self._row_to_task(row) if row else None

    # ---- queries ----

    def find_all(self) -> list[Task]:
        return self._query("find_all", "SELECT * FROM tasks ORDER BY created_at DESC, id DESC")

    def find_by_completed(self, completed: bool) -> list[Task]:
        return self._query(
            "find_by_completed",
            "SELECT * FROM tasks WHERE completed = ? ORDER BY created_at DESC, id DESC",
            (int(completed),),
        )

    def find_by_priority(self, priority: Priority) -> list[Task]:
        return self._query(
            "find_by_priority",
            "SELECT * FROM tasks WHERE priority = ? ORDER BY created_at DESC, id DESC",
            (priority.value,),
        )

    def find_overdue(self, now: datetime) -> list[Task]:
        return self._query(
            "find_overdue",
            """
            SELECT * FROM tasks
            WHERE due_date IS NOT NULL AND due_date < ? AND completed = 0
            ORDER BY due_date ASC
            """,
            (_to_ts(now),),
        )

    def find_due_between(self, start: datetime, end: datetime) -> list[Task]:
        return self._query(
            "find_due_between",
            """
            SELECT * FROM tasks
            WHERE due_date IS NOT NULL AND due_date BETWEEN ? AND ?
            ORDER BY due_date ASC
            """,
            (_to_ts(start), _to_ts(end)),
        )

    def search(self, text: str) -> list[Task]:
        pattern = _like_pattern(text.strip().casefold())
        return self._query(
            "search",
            """
            SELECT * FROM tasks
            WHERE casefold(title) LIKE ? ESCAPE '\\' OR casefold(description) LIKE ? ESCAPE '\\'
            ORDER BY created_at DESC, id DESC
            """,
            (pattern, pattern),
        )

    # ---- counts ----

    def count(self) -> int:
        return self._scalar("count", "SELECT COUNT(*) FROM tasks")

    def count_by_completed(self, completed: bool) -> int:
        return self._scalar(
            "count_by_completed",
            "SELECT COUNT(*) FROM tasks WHERE completed = ?",
            (int(completed),),
        )

    def count_overdue(self, now: datetime) -> int:
        return self._scalar(
            "count_overdue",
            "SELECT COUNT(*) FROM tasks WHERE due_date IS NOT NULL AND due_date < ? AND completed = 0",
            (_to_ts(now),),
        )


class OfflineTaskStore:
    """
    Store used when the database cannot be opened.

    Every call raises StoreUnavailable, so the service starts (and stays) in
    degraded, memory-only mode.
    """

    def __init__(self, reason: str = "no database configured") -> None:
        self.reason = reason

    def _fail(self, operation: str, entity_id: Any = None) -> Any:
        raise StoreUnavailable(operation, self.reason, entity_id=entity_id)

    def insert(self, task: Task) -> int:
        return self._fail("insert")

    def update(self, task: Task) -> bool:
        return self._fail("update", task.id)

    def delete_by_id(self, task_id: int) -> bool:
        return self._fail("delete_by_id", task_id)

    def find_by_id(self, task_id: int) -> Task | None:
        return self._fail("find_by_id", task_id)

    def find_all(self) -> list[Task]:
        return self._fail("find_all")

    def find_by_completed(self, completed: bool) -> list[Task]:
        return self._fail("find_by_completed")

    def find_by_priority(self, priority: Priority) -> list[Task]:
        return self._fail("find_by_priority")

    def find_overdue(self, now: datetime) -> list[Task]:
        return self._fail("find_overdue")

    def find_due_between(self, start: datetime, end: datetime) -> list[Task]:
        return self._fail("find_due_between")

    def search(self, text: str) -> list[Task]:
        return self._fail("search")

    def count(self) -> int:
        return self._fail("count")

    def count_by_completed(self, completed: bool) -> int:
        return self._fail("count_by_completed")

    def count_overdue(self, now: datetime) -> int:
        return self._fail("count_overdue")

    def close(self) -> None:
        return
