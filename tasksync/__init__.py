"""tasksync - markdown to task-tree synchronization engine."""

from .exporter import export_single_task_to_markdown, export_tasks_to_markdown
from .merge import merge_tasks
from .models import DueBucket, MovePosition, SyncSource, Task, TaskNotFoundError, TodoList, UndoEntry
from .parser import parse_markdown_to_tasks
from .sync import SyncController, SyncEvent

__all__ = [
    "parse_markdown_to_tasks",
    "export_tasks_to_markdown",
    "export_single_task_to_markdown",
    "merge_tasks",
    "SyncController",
    "SyncEvent",
    "Task",
    "TodoList",
    "UndoEntry",
    "DueBucket",
    "MovePosition",
    "SyncSource",
    "TaskNotFoundError",
]
