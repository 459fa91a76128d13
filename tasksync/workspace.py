"""List workspace for tasksync.

Hosts the todo lists of one project root: a registry of ``TodoList``
records, one ``SyncController`` and one ``UndoHistory`` per list, routing of
tree mutations, and JSON persistence under ``<root>/.tasksync``.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import date
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from .filters import count_by_due_status, filter_by_due_status, filter_by_search, filter_completed, group_by_due_date
from .history import UndoHistory
from .merge import merge_tasks
from .models import MovePosition, SyncSource, Task, TodoList, count_tasks
from .parser import parse_markdown_to_tasks
from .sync import SyncController, SyncEvent
from . import tree
from .tasksync_logging import (
    log_error_with_context,
    log_list_event,
    log_operation,
    log_performance,
)

logger = logging.getLogger("tasksync.workspace")

Mutation = Callable[[List[Task]], List[Task]]

DEFAULT_LIST_NAME = "My First List"


class Workspace:
    """Manage todo lists and keep each list's markdown and tree in sync."""

    STORAGE_DIR_ENV = "TASKSYNC_STORAGE_DIR"
    STORAGE_DIR_DEFAULT = ".tasksync"
    STORE_FILENAME = "lists.json"

    def __init__(self, root: Path | str, *, debounce_seconds: Optional[float] = None):
        """Initialize workspace with given root directory."""
        self.root = Path(root).resolve()
        self.base_dir = self.root / (os.getenv(self.STORAGE_DIR_ENV) or self.STORAGE_DIR_DEFAULT)
        self.debounce_seconds = debounce_seconds
        self.lists: Dict[str, TodoList] = {}
        self.current_list_id: Optional[str] = None
        self._controllers: Dict[str, SyncController] = {}
        self._histories: Dict[str, UndoHistory] = {}

    @property
    def store_path(self) -> Path:
        """Path of the JSON store."""
        return self.base_dir / self.STORE_FILENAME

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> "Workspace":
        """Load lists from disk, creating a default list on first use."""
        data: Dict[str, Any] = {"lists": {}, "current_list_id": None}
        if self.store_path.exists():
            try:
                raw = json.loads(self.store_path.read_text(encoding="utf-8"))
                if isinstance(raw, dict) and isinstance(raw.get("lists"), dict):
                    data = raw
                else:
                    logger.warning(f"Invalid store structure in {self.store_path}, resetting")
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"Failed to read {self.store_path}: {e}")

        self.close()
        for list_id, payload in data["lists"].items():
            todo_list = TodoList.from_dict({**payload, "id": payload.get("id", list_id)})
            self._register(todo_list)

        current = data.get("current_list_id", data.get("currentListId"))
        self.current_list_id = current if current in self.lists else next(iter(self.lists), None)

        if not self.lists:
            self.create_list(DEFAULT_LIST_NAME)
        logger.info(f"Workspace loaded {len(self.lists)} lists from {self.root}")
        return self

    @log_performance("save_workspace")
    def save(self) -> Path:
        """Write every list to the JSON store."""
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            payload = {
                "lists": {list_id: todo_list.to_dict() for list_id, todo_list in self.lists.items()},
                "current_list_id": self.current_list_id,
            }
            self.store_path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
            return self.store_path
        except OSError as e:
            log_error_with_context(e, {"operation": "save_workspace", "path": str(self.store_path)})
            raise

    # ------------------------------------------------------------------
    # List management
    # ------------------------------------------------------------------

    def _register(self, todo_list: TodoList) -> None:
        controller = SyncController(
            todo_list.id,
            todo_list.markdown,
            todo_list.tasks,
            debounce_seconds=self.debounce_seconds,
        )
        controller.on_tasks_changed(self._handle_tasks_changed)
        controller.on_markdown_changed(self._handle_markdown_changed)
        self.lists[todo_list.id] = todo_list
        self._controllers[todo_list.id] = controller
        self._histories[todo_list.id] = UndoHistory()

    def _handle_tasks_changed(self, event: SyncEvent) -> None:
        todo_list = self.lists.get(event.list_id)
        if todo_list is None:
            return
        todo_list.tasks = event.tasks
        if event.source is SyncSource.FROM_MARKDOWN and event.first_population:
            todo_list.is_minimized = True
        todo_list.touch()

    def _handle_markdown_changed(self, event: SyncEvent) -> None:
        todo_list = self.lists.get(event.list_id)
        if todo_list is None:
            return
        todo_list.markdown = event.markdown
        todo_list.touch()

    def get_list(self, list_id: Optional[str] = None) -> TodoList:
        """Return a list by id, defaulting to the current list."""
        list_id = list_id or self.current_list_id
        if not list_id or list_id not in self.lists:
            raise ValueError(f"List '{list_id}' not found")
        return self.lists[list_id]

    def controller(self, list_id: Optional[str] = None) -> SyncController:
        return self._controllers[self.get_list(list_id).id]

    def history(self, list_id: Optional[str] = None) -> UndoHistory:
        return self._histories[self.get_list(list_id).id]

    def list_summaries(self) -> List[Dict[str, Any]]:
        """Short description of every list."""
        summaries = []
        for todo_list in self.lists.values():
            total, completed = count_tasks(todo_list.tasks)
            summaries.append({
                "id": todo_list.id,
                "name": todo_list.name,
                "total": total,
                "completed": completed,
                "current": todo_list.id == self.current_list_id,
                "updated_at": todo_list.updated_at,
            })
        return summaries

    def create_list(self, name: str = "New List") -> TodoList:
        """Create a list and make it current."""
        todo_list = TodoList.create(name)
        self._register(todo_list)
        self.switch_list(todo_list.id)
        log_list_event("created", todo_list.id, name=name)
        return todo_list

    def switch_list(self, list_id: str) -> TodoList:
        """Make ``list_id`` current, invalidating the previous list's timers."""
        todo_list = self.get_list(list_id)
        previous = self.current_list_id
        if previous and previous != list_id and previous in self._controllers:
            self._controllers[previous].cancel()
        self.current_list_id = list_id
        return todo_list

    def rename_list(self, list_id: str, name: str) -> TodoList:
        if not name or not name.strip():
            raise ValueError("List name cannot be empty")
        todo_list = self.get_list(list_id)
        todo_list.name = name.strip()
        todo_list.touch()
        return todo_list

    def delete_list(self, list_id: str) -> None:
        """Delete a list; the workspace always keeps at least one list."""
        self.get_list(list_id)
        self._controllers.pop(list_id).close()
        self._histories.pop(list_id)
        del self.lists[list_id]
        log_list_event("deleted", list_id)

        if self.current_list_id == list_id:
            self.current_list_id = None
            if self.lists:
                self.switch_list(next(iter(self.lists)))
            else:
                self.create_list(DEFAULT_LIST_NAME)

    def close(self) -> None:
        """Tear down every controller."""
        for controller in self._controllers.values():
            controller.close()
        self._controllers.clear()
        self._histories.clear()
        self.lists.clear()
        self.current_list_id = None

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def set_markdown(self, markdown: str, list_id: Optional[str] = None, *, flush: bool = True) -> TodoList:
        """Replace a list's markdown; the tree follows after the debounce."""
        todo_list = self.get_list(list_id)
        controller = self._controllers[todo_list.id]
        controller.set_markdown(markdown)
        if flush:
            controller.flush()
        return todo_list

    def apply_mutation(
        self,
        mutation: Mutation,
        list_id: Optional[str] = None,
        *,
        operation: str = "mutation",
        flush: bool = True,
    ) -> TodoList:
        """Run a tree mutation, recording the previous tree for undo."""
        todo_list = self.get_list(list_id)
        controller = self._controllers[todo_list.id]
        try:
            with log_operation(operation, list_id=todo_list.id):
                before = controller.tasks
                after = mutation(before)
                if after is before:
                    logger.debug(f"{operation} left list {todo_list.id} unchanged")
                    return todo_list
                self._histories[todo_list.id].push(before)
                controller.set_tasks(after)
                if flush:
                    controller.flush()
                return todo_list
        except Exception as e:
            log_error_with_context(e, {"operation": operation, "list_id": todo_list.id})
            raise

    def toggle_task(self, task_id: str, list_id: Optional[str] = None) -> TodoList:
        return self.apply_mutation(lambda tasks: tree.toggle_task(tasks, task_id), list_id, operation="toggle_task")

    def update_task(self, task_id: str, text: str, list_id: Optional[str] = None) -> TodoList:
        return self.apply_mutation(
            lambda tasks: tree.update_task_text(tasks, task_id, text), list_id, operation="update_task"
        )

    def set_due_date(self, task_id: str, due_date: Optional[str], list_id: Optional[str] = None) -> TodoList:
        return self.apply_mutation(
            lambda tasks: tree.set_due_date(tasks, task_id, due_date), list_id, operation="set_due_date"
        )

    def delete_task(self, task_id: str, list_id: Optional[str] = None) -> TodoList:
        return self.apply_mutation(lambda tasks: tree.delete_task(tasks, task_id), list_id, operation="delete_task")

    def add_task(self, text: str = "New task", list_id: Optional[str] = None) -> TodoList:
        return self.apply_mutation(lambda tasks: tree.add_root_task(tasks, text), list_id, operation="add_task")

    def add_section(self, text: str = "New Section", list_id: Optional[str] = None) -> TodoList:
        return self.apply_mutation(lambda tasks: tree.add_section(tasks, text), list_id, operation="add_section")

    def add_subtask(self, parent_id: str, text: str = "New subtask", list_id: Optional[str] = None) -> TodoList:
        return self.apply_mutation(
            lambda tasks: tree.add_subtask(tasks, parent_id, text), list_id, operation="add_subtask"
        )

    def move_task(
        self,
        dragged_id: str,
        target_id: str,
        position: Union[MovePosition, str],
        list_id: Optional[str] = None,
    ) -> TodoList:
        """Drag-and-drop reparenting; dropping a task onto itself is rejected."""
        if dragged_id == target_id:
            raise ValueError("Cannot move a task relative to itself")
        try:
            position = MovePosition(position)
        except ValueError:
            raise ValueError(f"Position must be one of: {', '.join(p.value for p in MovePosition)}") from None
        return self.apply_mutation(
            lambda tasks: tree.move_task(tasks, dragged_id, target_id, position), list_id, operation="move_task"
        )

    def add_tasks_from_markdown(
        self, markdown: str, parent_id: Optional[str] = None, list_id: Optional[str] = None
    ) -> TodoList:
        """Parse a fragment and merge it at the root or under ``parent_id``.

        Raises ``TaskNotFoundError`` when ``parent_id`` is not in the tree.
        """
        incoming = parse_markdown_to_tasks(markdown)
        return self.apply_mutation(
            lambda tasks: merge_tasks(tasks, incoming, parent_id, strict=True),
            list_id,
            operation="add_tasks_from_markdown",
        )

    def undo(self, list_id: Optional[str] = None) -> bool:
        """Restore the latest snapshot. Returns False when history is empty."""
        todo_list = self.get_list(list_id)
        entry = self._histories[todo_list.id].pop()
        if entry is None:
            return False
        controller = self._controllers[todo_list.id]
        controller.set_tasks(entry.tasks)
        controller.flush()
        log_list_event("undo", todo_list.id, snapshot=entry.timestamp)
        return True

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def visible_tasks(
        self,
        list_id: Optional[str] = None,
        *,
        query: str = "",
        hide_completed: bool = False,
        due_status: Optional[str] = None,
        today: Optional[date] = None,
    ) -> List[Task]:
        """The current tree with search, completion and due filters applied."""
        tasks = self.get_list(list_id).tasks
        if hide_completed:
            tasks = filter_completed(tasks)
        if due_status:
            tasks = filter_by_due_status(tasks, due_status, today=today)
        return filter_by_search(tasks, query)

    def due_summary(self, list_id: Optional[str] = None, *, today: Optional[date] = None) -> Dict[str, Any]:
        tasks = self.get_list(list_id).tasks
        return {
            "counts": count_by_due_status(tasks, today=today),
            "groups": {
                bucket: [task.to_dict() for task in items]
                for bucket, items in group_by_due_date(tasks, today=today).items()
            },
        }
