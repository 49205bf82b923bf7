# src/todo_keeper/tasks/task_cache.py

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from datetime import datetime
from typing import overload

from .task_models import Task


class TaskListView(Sequence[Task]):
    """
    Read-only view over the live cache list.

    Holders of a view observe later mutations made through the service;
    the view itself exposes no way to mutate the list.
    """

    __slots__ = ("_items",)

    def __init__(self, items: list[Task]) -> None:
        self._items = items

    @overload
    def __getitem__(self, index: int) -> Task: ...

    @overload
    def __getitem__(self, index: slice) -> list[Task]: ...

    def __getitem__(self, index: int | slice) -> Task | list[Task]:
        return self._items[index]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Task]:
        return iter(self._items)

    def __repr__(self) -> str:
        return f"TaskListView({self._items!r})"


class TaskCache:
    """
    In-memory mirror of all tasks, in display order (newest first).

    The cache also remembers each task's created_at by id, so an update can never
    move it, even when the caller edits the cached object itself.

    Owned by TaskService; not synchronized on its own (the service lock guards it).
    """

    def __init__(self) -> None:
        self._items: list[Task] = []
        self._created_at: dict[int, datetime] = {}
        self._view = TaskListView(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Task]:
        return iter(self._items)

    def view(self) -> TaskListView:
        return self._view

    def snapshot(self) -> list[Task]:
        return list(self._items)

    def load(self, tasks: Iterable[Task]) -> None:
        # Mutate in place so existing views keep tracking the cache.
        self._items[:] = list(tasks)
        self._created_at = {t.id: t.created_at for t in self._items}

    def prepend(self, task: Task) -> None:
        self._items.insert(0, task)
        self._created_at[task.id] = task.created_at

    def restore_created_at(self, task: Task) -> None:
        pinned = self._created_at.get(task.id)
        if pinned is not None and task.created_at != pinned:
            task.created_at = pinned

    def get(self, task_id: int) -> Task | None:
        for task in self._items:
            if task.id == task_id:
                return task
        return None

    def replace(self, task: Task) -> Task | None:
        """Swap the first entry with the same id. Returns the previous entry, or None."""
        self.restore_created_at(task)
        for i, existing in enumerate(self._items):
            if existing.id == task.id:
                self._items[i] = task
                return existing
        return None

    def remove(self, task_id: int) -> Task | None:
        self._created_at.pop(task_id, None)
        for i, existing in enumerate(self._items):
            if existing.id == task_id:
                return self._items.pop(i)
        return None

    def max_id(self) -> int:
        return max((t.id for t in self._items), default=0)

    def next_local_id(self) -> int:
        return self.max_id() + 1
