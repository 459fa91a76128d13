"""Merge freshly parsed markdown fragments into an existing tree."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import List, Optional

from .models import Task, TaskNotFoundError
from .tree import map_task, relevel

logger = logging.getLogger("tasksync.merge")


def merge_tasks(
    existing: List[Task],
    incoming: List[Task],
    parent_id: Optional[str] = None,
    *,
    strict: bool = False,
) -> List[Task]:
    """Add ``incoming`` roots to ``existing``.

    Without ``parent_id`` the incoming roots are re-leveled to 0 and appended
    after the existing roots. With ``parent_id`` they become the last
    children of that node at ``parent.level + 1``. Relative depth inside the
    fragment is preserved either way.

    An unknown ``parent_id`` leaves the tree unchanged, or raises
    ``TaskNotFoundError`` when ``strict`` is set.
    """
    if not incoming:
        return existing

    if not parent_id:
        return [*existing, *relevel(incoming, 0)]

    def adopt(parent: Task) -> Task:
        return replace(parent, children=[*parent.children, *relevel(incoming, parent.level + 1)])

    merged = map_task(existing, parent_id, adopt)
    if merged is existing:
        logger.warning("Merge target %s not found; %d tasks not merged", parent_id, len(incoming))
        if strict:
            raise TaskNotFoundError(parent_id)
    return merged
