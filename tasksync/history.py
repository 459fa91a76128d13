"""Bounded undo history of tree snapshots."""

from __future__ import annotations

import os
from typing import List, Optional

from .models import Task, UndoEntry

DEFAULT_HISTORY_LIMIT = 20


class UndoHistory:
    """Append-only stack of pre-mutation snapshots, oldest dropped first."""

    LIMIT_ENV = "TASKSYNC_HISTORY_LIMIT"

    def __init__(self, limit: Optional[int] = None):
        if limit is None:
            limit = int(os.getenv(self.LIMIT_ENV, DEFAULT_HISTORY_LIMIT))
        if limit < 1:
            raise ValueError("History limit must be at least 1")
        self.limit = limit
        self._entries: List[UndoEntry] = []

    def push(self, tasks: List[Task]) -> UndoEntry:
        """Record a snapshot taken before a mutation."""
        entry = UndoEntry(tasks=tasks)
        self._entries.append(entry)
        if len(self._entries) > self.limit:
            del self._entries[: len(self._entries) - self.limit]
        return entry

    def pop(self) -> Optional[UndoEntry]:
        """Remove and return the latest snapshot, if any."""
        if not self._entries:
            return None
        return self._entries.pop()

    def peek(self) -> Optional[UndoEntry]:
        return self._entries[-1] if self._entries else None

    @property
    def can_undo(self) -> bool:
        return bool(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
