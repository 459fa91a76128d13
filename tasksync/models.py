"""Data models for tasksync.

This module contains the core data structures used throughout the tasksync
engine: the task tree node, the todo list that owns a markdown/tree pair,
undo history entries and the small enums shared by the sync controller and
the tree filters.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple


def _new_id() -> str:
    return uuid.uuid4().hex


def utc_timestamp() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


class SyncSource(str, Enum):
    """Which representation caused the pending change."""

    IDLE = "idle"
    FROM_MARKDOWN = "from_markdown"
    FROM_TASKS = "from_tasks"


class MovePosition(str, Enum):
    """Drop position relative to a target task."""

    BEFORE = "before"
    AFTER = "after"
    INSIDE = "inside"


class DueBucket(str, Enum):
    """Due-date buckets used by grouping and filtering."""

    OVERDUE = "overdue"
    TODAY = "today"
    TOMORROW = "tomorrow"
    THIS_WEEK = "this_week"
    LATER = "later"
    NO_DUE_DATE = "no_due_date"


@dataclass(slots=True)
class Task:
    """A single node of a task tree.

    Header nodes are section markers. They take part in the tree structure
    but are left out of completion counts and due-date semantics.
    """

    id: str
    text: str
    completed: bool = False
    level: int = 0
    is_header: bool = False
    children: List["Task"] = field(default_factory=list)
    completed_at: Optional[str] = None
    due_date: Optional[str] = None

    @classmethod
    def new(cls, text: str, *, level: int = 0, is_header: bool = False, completed: bool = False) -> "Task":
        """Create a task with a fresh id."""
        return cls(id=_new_id(), text=text, completed=completed, level=level, is_header=is_header)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "text": self.text,
            "completed": self.completed,
            "completed_at": self.completed_at,
            "level": self.level,
            "is_header": self.is_header,
            "due_date": self.due_date,
            "children": [child.to_dict() for child in self.children],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        """Create from dictionary representation.

        Accepts both the snake_case keys written by ``to_dict`` and the
        camelCase keys of the browser storage format.
        """
        return cls(
            id=data.get("id") or _new_id(),
            text=data.get("text", ""),
            completed=bool(data.get("completed", False)),
            level=int(data.get("level", 0)),
            is_header=bool(data.get("is_header", data.get("isHeader", False))),
            children=[cls.from_dict(child) for child in data.get("children") or []],
            completed_at=data.get("completed_at", data.get("completedAt")),
            due_date=data.get("due_date", data.get("dueDate")),
        )

    def outline(self) -> Tuple[int, bool, bool, str]:
        """The structural fingerprint compared by round-trip checks."""
        return (self.level, self.is_header, self.completed, self.text)


def walk(tasks: List[Task]) -> Iterator[Task]:
    """Yield every task in depth-first pre-order."""
    stack = list(reversed(tasks))
    while stack:
        task = stack.pop()
        yield task
        if task.children:
            stack.extend(reversed(task.children))


def count_tasks(tasks: List[Task]) -> Tuple[int, int]:
    """Count (total, completed) non-header tasks recursively."""
    total = 0
    completed = 0
    for task in walk(tasks):
        if task.is_header:
            continue
        total += 1
        if task.completed:
            completed += 1
    return total, completed


@dataclass(slots=True)
class UndoEntry:
    """Pre-mutation snapshot of a list's tree."""

    tasks: List[Task]
    timestamp: str = field(default_factory=utc_timestamp)


@dataclass(slots=True)
class TodoList:
    """One named list owning a markdown document and its task tree."""

    id: str
    name: str
    tasks: List[Task] = field(default_factory=list)
    markdown: str = ""
    is_minimized: bool = False
    created_at: str = field(default_factory=utc_timestamp)
    updated_at: str = field(default_factory=utc_timestamp)

    @classmethod
    def create(cls, name: str = "New List") -> "TodoList":
        """Create an empty list with a fresh id."""
        return cls(id=_new_id(), name=name)

    def touch(self) -> None:
        """Bump the modification timestamp."""
        self.updated_at = utc_timestamp()

    def completion_rate(self) -> float:
        """Completed task percentage, headers excluded."""
        total, completed = count_tasks(self.tasks)
        if total == 0:
            return 0.0
        return (completed / total) * 100

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "name": self.name,
            "tasks": [task.to_dict() for task in self.tasks],
            "markdown": self.markdown,
            "is_minimized": self.is_minimized,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TodoList":
        """Create from dictionary representation."""
        return cls(
            id=data["id"],
            name=data.get("name", "New List"),
            tasks=[Task.from_dict(task) for task in data.get("tasks") or []],
            markdown=data.get("markdown", ""),
            is_minimized=bool(data.get("is_minimized", data.get("isMinimized", False))),
            created_at=str(data.get("created_at", data.get("createdAt", utc_timestamp()))),
            updated_at=str(data.get("updated_at", data.get("updatedAt", utc_timestamp()))),
        )


class TaskNotFoundError(LookupError):
    """Raised by strict lookups when a task id is not in the tree."""

    def __init__(self, task_id: str):
        super().__init__(f"Task '{task_id}' not found")
        self.task_id = task_id
