"""Markdown to task-tree parser.

Only two line grammars are structural:

* headers, ``#`` to ``######`` followed by text. ``###`` is level 0 and
  every further ``#`` adds one level.
* bullets, ``*``, ``-`` or ``+`` with optional leading indentation and an
  optional ``[ ]`` / ``[x]`` checkbox.

Everything else (blank lines, ``---`` rules, prose, tables, code) is
dropped. The parser never raises.
"""

from __future__ import annotations

import logging
import re
from typing import List, Tuple

from .models import Task
from .tree import relevel

logger = logging.getLogger("tasksync.parser")

_HEADER_PATTERN = re.compile(r"^(?P<hashes>#{1,6})\s+(?P<text>.+)")
_BULLET_PATTERN = re.compile(r"^(?P<indent>\s*)[*\-+]\s+(?P<text>.+)")
_CHECKBOX_PATTERN = re.compile(r"^\[(?P<mark>[ xX])\]\s+(?P<text>.+)")

# Header depth that maps to level 0.
HEADER_BASE_DEPTH = 3


def parse_markdown_to_tasks(markdown: str, *, normalize_levels: bool = True) -> List[Task]:
    """Parse markdown into a forest of tasks.

    Levels come from header depth and bullet indentation; the open-ancestor
    stack decides parenting. With ``normalize_levels`` (the default) the
    finished forest is re-leveled top-down so every node sits one level below
    its parent, which also lifts negative levels from ``#``/``##`` headers.
    Pass ``normalize_levels=False`` to keep the raw computed levels.
    """
    tasks: List[Task] = []
    stack: List[Tuple[Task, int]] = []
    last_header_depth = -1

    for line in markdown.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("---"):
            continue

        header = _HEADER_PATTERN.match(line)
        if header:
            last_header_depth = len(header.group("hashes"))
            level = last_header_depth - HEADER_BASE_DEPTH
            text = header.group("text").replace("**", "").strip()
            task = Task.new(text, level=level, is_header=True)
            _add_to_hierarchy(task, level, tasks, stack)
            continue

        bullet = _BULLET_PATTERN.match(line)
        if bullet:
            indentation = len(bullet.group("indent"))
            base_level = last_header_depth - HEADER_BASE_DEPTH if last_header_depth >= 0 else 0
            level = base_level + 1 + indentation // 2
            text = bullet.group("text").strip()
            completed = False
            checkbox = _CHECKBOX_PATTERN.match(text)
            if checkbox:
                completed = checkbox.group("mark").lower() == "x"
                text = checkbox.group("text").strip()
            task = Task.new(text, level=level, completed=completed)
            _add_to_hierarchy(task, level, tasks, stack)

    logger.debug("Parsed %d root tasks from %d characters", len(tasks), len(markdown))
    if normalize_levels:
        return relevel(tasks)
    return tasks


def _add_to_hierarchy(
    task: Task, level: int, tasks: List[Task], stack: List[Tuple[Task, int]]
) -> None:
    # Close every open ancestor at the same depth or deeper.
    while stack and stack[-1][1] >= level:
        stack.pop()

    if stack:
        stack[-1][0].children.append(task)
    else:
        tasks.append(task)

    stack.append((task, level))
