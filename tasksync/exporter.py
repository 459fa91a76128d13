"""Task-tree to markdown exporter.

The output is regenerated purely from the tree, so non-task markdown is not
preserved. Headers become ``#`` lines (level 0 is ``###``) followed by a
blank line, tasks become ``* [ ]`` / ``* [x]`` bullets indented two spaces
per nesting step below their nearest enclosing header.
"""

from __future__ import annotations

import logging
import re
from typing import List

from .models import Task
from .parser import HEADER_BASE_DEPTH

logger = logging.getLogger("tasksync.exporter")

_BLANK_RUN = re.compile(r"\n{3,}")
_MAX_HEADER_DEPTH = 6


def export_tasks_to_markdown(tasks: List[Task]) -> str:
    """Serialize a whole forest."""
    lines: List[str] = []
    for task in tasks or []:
        _emit(task, lines, base_level=0, depth=0)
    return _finish(lines)


def export_single_task_to_markdown(task: Task) -> str:
    """Serialize one node and its subtree with the node's level as base 0."""
    lines: List[str] = []
    _emit(task, lines, base_level=task.level, depth=0)
    return _finish(lines)


def _emit(
    task: Task,
    lines: List[str],
    *,
    base_level: int,
    depth: int,
    offset: int = 0,
    in_section: bool = False,
) -> None:
    # Bullets outside any section parse one level deeper than their tree
    # level, so headers nested below them need one extra ``#``.
    children = task.children or []
    if task.is_header:
        header_depth = task.level - base_level + HEADER_BASE_DEPTH + offset
        hashes = "#" * max(1, min(_MAX_HEADER_DEPTH, header_depth))
        lines.append(f"{hashes} {task.text}")
        lines.append("")
        child_depth = 0
        child_offset = offset
        in_section = True
    else:
        checkbox = "[x]" if task.completed else "[ ]"
        lines.append(f"{'  ' * depth}* {checkbox} {task.text}")
        child_depth = depth + 1
        child_offset = offset if in_section else 1

    for child in children:
        _emit(child, lines, base_level=base_level, depth=child_depth, offset=child_offset, in_section=in_section)

    if task.is_header and children:
        lines.append("")


def _finish(lines: List[str]) -> str:
    markdown = _BLANK_RUN.sub("\n\n", "\n".join(lines)).strip()
    logger.debug("Exported %d lines", markdown.count("\n") + 1 if markdown else 0)
    return markdown
