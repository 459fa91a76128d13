"""MCP server exposing markdown todo lists backed by the tasksync engine."""

from __future__ import annotations

import os
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from tasksync import export_tasks_to_markdown, parse_markdown_to_tasks
from tasksync.models import Task, TodoList
from tasksync.tasksync_logging import setup_logging
from tasksync.workspace import Workspace

mcp = FastMCP("tasksync")


# Workspaces stay open between tool calls so undo history survives.
_WORKSPACES: Dict[Path, Workspace] = {}


def _resolve_root(root: Optional[str]) -> Path:
    if root:
        resolved = Path(root).expanduser().resolve()
        if not resolved.exists():
            raise ValueError(f"Provided root '{root}' does not exist.")
        return resolved

    env_root = os.getenv("TASKSYNC_PROJECT_ROOT")
    if env_root:
        env_path = Path(env_root).expanduser().resolve()
        if not env_path.exists():
            raise ValueError(
                f"Environment variable TASKSYNC_PROJECT_ROOT points to '{env_root}', which does not exist."
            )
        return env_path

    return Path.cwd().resolve()


def _workspace(root: Optional[str]) -> Workspace:
    resolved = _resolve_root(root)
    workspace = _WORKSPACES.get(resolved)
    if workspace is None:
        workspace = Workspace(resolved).load()
        _WORKSPACES[resolved] = workspace
    return workspace


def _serialize_tasks(tasks: List[Task]) -> List[Dict[str, Any]]:
    return [task.to_dict() for task in tasks]


def _serialize_list(workspace: Workspace, todo_list: TodoList) -> Dict[str, Any]:
    payload = todo_list.to_dict()
    payload["can_undo"] = workspace.history(todo_list.id).can_undo
    payload["completion_rate"] = round(todo_list.completion_rate())
    return payload


def _commit(workspace: Workspace, todo_list: TodoList) -> Dict[str, Any]:
    workspace.save()
    return {"list": _serialize_list(workspace, todo_list), "store_path": str(workspace.store_path)}


@mcp.tool()
def parse_markdown(markdown: str) -> Dict[str, Any]:
    """Parse markdown headers and bullet/checkbox lines into a task tree without storing it."""

    return {"tasks": _serialize_tasks(parse_markdown_to_tasks(markdown))}


@mcp.tool()
def export_markdown(tasks: List[Dict[str, Any]]) -> Dict[str, str]:
    """Render a task tree (as returned by parse_markdown) back to markdown."""

    return {"markdown": export_tasks_to_markdown([Task.from_dict(task) for task in tasks])}


@mcp.tool()
def list_lists(root: Optional[str] = None) -> Dict[str, Any]:
    """List every todo list with completion counts."""

    workspace = _workspace(root)
    return {"lists": workspace.list_summaries(), "current_list_id": workspace.current_list_id}


@mcp.tool()
def create_list(name: str = "New List", markdown: Optional[str] = None, root: Optional[str] = None) -> Dict[str, Any]:
    """Create a todo list, optionally seeded from markdown, and make it current."""

    workspace = _workspace(root)
    todo_list = workspace.create_list(name)
    if markdown:
        workspace.set_markdown(markdown, todo_list.id)
    return _commit(workspace, todo_list)


@mcp.tool()
def get_list(
    list_id: Optional[str] = None,
    query: str = "",
    hide_completed: bool = False,
    due_status: Optional[str] = None,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """Return a list with its markdown and the filtered task tree.

    due_status is one of overdue, today, tomorrow, this_week, later, no_due_date or upcoming."""

    workspace = _workspace(root)
    todo_list = workspace.get_list(list_id)
    visible = workspace.visible_tasks(
        todo_list.id, query=query, hide_completed=hide_completed, due_status=due_status
    )
    payload = _serialize_list(workspace, todo_list)
    payload["visible_tasks"] = _serialize_tasks(visible)
    return payload


@mcp.tool()
def switch_list(list_id: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Make a list current."""

    workspace = _workspace(root)
    return _commit(workspace, workspace.switch_list(list_id))


@mcp.tool()
def rename_list(list_id: str, name: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Rename a list."""

    workspace = _workspace(root)
    return _commit(workspace, workspace.rename_list(list_id, name))


@mcp.tool()
def delete_list(list_id: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Delete a list. A fresh default list is created when the last one goes."""

    workspace = _workspace(root)
    workspace.delete_list(list_id)
    return _commit(workspace, workspace.get_list())


@mcp.tool()
def set_markdown(markdown: str, list_id: Optional[str] = None, root: Optional[str] = None) -> Dict[str, Any]:
    """Replace a list's markdown. The task tree is rebuilt from it."""

    workspace = _workspace(root)
    return _commit(workspace, workspace.set_markdown(markdown, list_id))


@mcp.tool()
def toggle_task(task_id: str, list_id: Optional[str] = None, root: Optional[str] = None) -> Dict[str, Any]:
    """Flip a task's completion; all of its subtasks follow."""

    workspace = _workspace(root)
    return _commit(workspace, workspace.toggle_task(task_id, list_id))


@mcp.tool()
def update_task(task_id: str, text: str, list_id: Optional[str] = None, root: Optional[str] = None) -> Dict[str, Any]:
    """Change the text of a task or section."""

    workspace = _workspace(root)
    return _commit(workspace, workspace.update_task(task_id, text, list_id))


@mcp.tool()
def set_due_date(
    task_id: str, due_date: Optional[str] = None, list_id: Optional[str] = None, root: Optional[str] = None
) -> Dict[str, Any]:
    """Set (YYYY-MM-DD) or clear a task's due date."""

    workspace = _workspace(root)
    return _commit(workspace, workspace.set_due_date(task_id, due_date, list_id))


@mcp.tool()
def delete_task(task_id: str, list_id: Optional[str] = None, root: Optional[str] = None) -> Dict[str, Any]:
    """Delete a task together with its subtasks."""

    workspace = _workspace(root)
    return _commit(workspace, workspace.delete_task(task_id, list_id))


@mcp.tool()
def add_task(text: str = "New task", list_id: Optional[str] = None, root: Optional[str] = None) -> Dict[str, Any]:
    """Append a root-level task."""

    workspace = _workspace(root)
    return _commit(workspace, workspace.add_task(text, list_id))


@mcp.tool()
def add_section(text: str = "New Section", list_id: Optional[str] = None, root: Optional[str] = None) -> Dict[str, Any]:
    """Append a root-level section header."""

    workspace = _workspace(root)
    return _commit(workspace, workspace.add_section(text, list_id))


@mcp.tool()
def add_subtask(
    parent_id: str, text: str = "New subtask", list_id: Optional[str] = None, root: Optional[str] = None
) -> Dict[str, Any]:
    """Append a subtask under an existing task or section."""

    workspace = _workspace(root)
    return _commit(workspace, workspace.add_subtask(parent_id, text, list_id))


@mcp.tool()
def move_task(
    dragged_id: str,
    target_id: str,
    position: str = "after",
    list_id: Optional[str] = None,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """Move a task (with its subtasks) before, after or inside another task."""

    workspace = _workspace(root)
    return _commit(workspace, workspace.move_task(dragged_id, target_id, position, list_id))


@mcp.tool()
def add_tasks_from_markdown(
    markdown: str, parent_id: Optional[str] = None, list_id: Optional[str] = None, root: Optional[str] = None
) -> Dict[str, Any]:
    """Merge tasks parsed from a markdown fragment at the root or under parent_id."""

    workspace = _workspace(root)
    return _commit(workspace, workspace.add_tasks_from_markdown(markdown, parent_id, list_id))


@mcp.tool()
def undo(list_id: Optional[str] = None, root: Optional[str] = None) -> Dict[str, Any]:
    """Revert the latest tree change of a list."""

    workspace = _workspace(root)
    restored = workspace.undo(list_id)
    result = _commit(workspace, workspace.get_list(list_id))
    result["restored"] = restored
    return result


@mcp.tool()
def search_tasks(query: str, list_id: Optional[str] = None, root: Optional[str] = None) -> Dict[str, Any]:
    """Case-insensitive search keeping the ancestors of every match."""

    workspace = _workspace(root)
    return {"query": query, "tasks": _serialize_tasks(workspace.visible_tasks(list_id, query=query))}


@mcp.tool()
def due_summary(list_id: Optional[str] = None, today: Optional[str] = None, root: Optional[str] = None) -> Dict[str, Any]:
    """Group tasks into overdue, today, tomorrow, this_week, later and no_due_date buckets."""

    workspace = _workspace(root)
    reference = date.fromisoformat(today) if today else None
    return workspace.due_summary(list_id, today=reference)


if __name__ == "__main__":
    log_file = os.getenv("TASKSYNC_LOG_FILE")
    setup_logging(os.getenv("TASKSYNC_LOG_LEVEL", "INFO").upper(), Path(log_file) if log_file else None)
    mcp.run(transport="stdio")
