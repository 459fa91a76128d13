"""Pure structural operations over task trees.

Every function takes a forest (``List[Task]``) and returns a new forest.
Inputs are never mutated: nodes on the path to a change are copied with
``dataclasses.replace`` and untouched subtrees are shared. Lookups by an id
that is not in the tree return the input unchanged.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from typing import Callable, List, Optional, Tuple, Union

from .models import MovePosition, Task, utc_timestamp, walk

logger = logging.getLogger("tasksync.tree")


# ----------------------------------------------------------------------
# Lookup helpers
# ----------------------------------------------------------------------

def find_task(tasks: List[Task], task_id: str) -> Optional[Task]:
    """Return the first node with ``task_id`` or None."""
    for task in walk(tasks):
        if task.id == task_id:
            return task
    return None


def find_parent(tasks: List[Task], task_id: str) -> Optional[Task]:
    """Return the parent of ``task_id``; None for roots and unknown ids."""
    for task in walk(tasks):
        if any(child.id == task_id for child in task.children):
            return task
    return None


def contains(tasks: List[Task], task_id: str) -> bool:
    return find_task(tasks, task_id) is not None


# ----------------------------------------------------------------------
# Copying and level maintenance
# ----------------------------------------------------------------------

def clone_tasks(tasks: List[Task]) -> List[Task]:
    """Structural deep copy keeping ids and every field."""
    return [replace(task, children=clone_tasks(task.children)) for task in tasks]


def relevel(tasks: List[Task], base_level: int = 0) -> List[Task]:
    """Recompute levels top-down so roots sit at ``base_level``."""
    return [_relevel_task(task, base_level) for task in tasks]


def _relevel_task(task: Task, level: int) -> Task:
    children = relevel(task.children, level + 1)
    if task.level == level and all(a is b for a, b in zip(children, task.children)):
        return task
    return replace(task, level=level, children=children)


def levels_consistent(tasks: List[Task], base_level: int = 0) -> bool:
    """True when every node sits exactly one level below its parent."""
    for task in tasks:
        if task.level != base_level or not levels_consistent(task.children, base_level + 1):
            return False
    return True


def map_task(tasks: List[Task], task_id: str, updater: Callable[[Task], Task]) -> List[Task]:
    """Apply ``updater`` to the node with ``task_id`` and return the new forest."""
    updated, _ = _map_task(tasks, task_id, updater)
    return updated


def _map_task(
    tasks: List[Task], task_id: str, updater: Callable[[Task], Task]
) -> Tuple[List[Task], bool]:
    for index, task in enumerate(tasks):
        if task.id == task_id:
            result = list(tasks)
            result[index] = updater(task)
            return result, True
        if task.children:
            children, found = _map_task(task.children, task_id, updater)
            if found:
                result = list(tasks)
                result[index] = replace(task, children=children)
                return result, True
    return tasks, False


# ----------------------------------------------------------------------
# Mutations
# ----------------------------------------------------------------------

def toggle_task(tasks: List[Task], task_id: str, *, now: Optional[str] = None) -> List[Task]:
    """Flip completion on a node and cascade the new state to its descendants.

    ``completed_at`` is stamped only on nodes that go from open to done and
    cleared on every node that ends up open. Parents are never touched.
    """
    target = find_task(tasks, task_id)
    if target is None:
        return tasks
    completed = not target.completed
    stamp = now or utc_timestamp()
    logger.debug("Toggling task %s to completed=%s", task_id, completed)
    return map_task(tasks, task_id, lambda task: _cascade(task, completed, stamp))


def _cascade(task: Task, completed: bool, stamp: str) -> Task:
    if completed:
        completed_at = task.completed_at if task.completed else stamp
    else:
        completed_at = None
    return replace(
        task,
        completed=completed,
        completed_at=completed_at,
        children=[_cascade(child, completed, stamp) for child in task.children],
    )


def update_task_text(tasks: List[Task], task_id: str, text: str) -> List[Task]:
    """Replace the text of one node."""
    return map_task(tasks, task_id, lambda task: replace(task, text=text))


def set_due_date(tasks: List[Task], task_id: str, due_date: Optional[Union[str, date]]) -> List[Task]:
    """Set or clear (``None``) the due date of one node.

    Raises ValueError when ``due_date`` is not a ``YYYY-MM-DD`` date.
    """
    if isinstance(due_date, date):
        value: Optional[str] = due_date.isoformat()
    elif due_date:
        value = date.fromisoformat(due_date).isoformat()
    else:
        value = None
    return map_task(tasks, task_id, lambda task: replace(task, due_date=value))


def delete_task(tasks: List[Task], task_id: str) -> List[Task]:
    """Remove a node and its whole subtree wherever it occurs."""
    if not contains(tasks, task_id):
        return tasks
    return _without(tasks, task_id)


def _without(tasks: List[Task], task_id: str) -> List[Task]:
    result = []
    for task in tasks:
        if task.id == task_id:
            continue
        if task.children:
            task = replace(task, children=_without(task.children, task_id))
        result.append(task)
    return result


def add_subtask(tasks: List[Task], parent_id: str, text: str = "New subtask") -> List[Task]:
    """Append a new leaf under ``parent_id``."""

    def append(parent: Task) -> Task:
        child = Task.new(text, level=parent.level + 1)
        return replace(parent, children=[*parent.children, child])

    return map_task(tasks, parent_id, append)


def add_root_task(tasks: List[Task], text: str = "New task") -> List[Task]:
    return [*tasks, Task.new(text, level=0)]


def add_section(tasks: List[Task], text: str = "New Section") -> List[Task]:
    return [*tasks, Task.new(text, level=0, is_header=True)]


def move_task(
    tasks: List[Task],
    dragged_id: str,
    target_id: str,
    position: Union[MovePosition, str],
) -> List[Task]:
    """Reparent ``dragged_id`` relative to ``target_id``.

    ``before``/``after`` insert the dragged subtree as a sibling of the
    target, ``inside`` appends it as the target's last child. Levels of the
    moved subtree are recomputed from the attach point down.

    Returns the input unchanged when the dragged node is missing, or when the
    target cannot be found once the dragged subtree is lifted out (dropping a
    node onto itself or onto one of its own descendants).
    """
    position = MovePosition(position)
    remaining, dragged = _extract(tasks, dragged_id)
    if dragged is None:
        return tasks
    result, inserted = _insert(remaining, dragged, target_id, position)
    if not inserted:
        logger.debug("Move of %s onto %s rejected: target not reachable", dragged_id, target_id)
        return tasks
    return result


def _extract(tasks: List[Task], task_id: str) -> Tuple[List[Task], Optional[Task]]:
    result: List[Task] = []
    found: Optional[Task] = None
    for task in tasks:
        if found is None and task.id == task_id:
            found = task
            continue
        if found is None and task.children:
            children, found = _extract(task.children, task_id)
            if found is not None:
                task = replace(task, children=children)
        result.append(task)
    return result, found


def _insert(
    tasks: List[Task], dragged: Task, target_id: str, position: MovePosition
) -> Tuple[List[Task], bool]:
    for index, task in enumerate(tasks):
        if task.id == target_id:
            result = list(tasks)
            if position is MovePosition.INSIDE:
                moved = _relevel_task(dragged, task.level + 1)
                result[index] = replace(task, children=[*task.children, moved])
            elif position is MovePosition.BEFORE:
                result.insert(index, _relevel_task(dragged, task.level))
            else:
                result.insert(index + 1, _relevel_task(dragged, task.level))
            return result, True
        if task.children:
            children, inserted = _insert(task.children, dragged, target_id, position)
            if inserted:
                result = list(tasks)
                result[index] = replace(task, children=children)
                return result, True
    return tasks, False
