"""Recursive views over a task tree: search, hide-completed and due dates."""

from __future__ import annotations

from dataclasses import replace
from datetime import date, timedelta
from typing import Callable, Dict, List, Optional, Union

from .models import DueBucket, Task, walk

UPCOMING = "upcoming"


def filter_by_search(tasks: List[Task], query: str) -> List[Task]:
    """Keep nodes whose text contains ``query`` (case-insensitive) or that
    have a matching descendant.

    A matching node whose descendants do not match keeps its original,
    unfiltered children.
    """
    if not query or not query.strip():
        return tasks
    needle = query.lower()
    return _filter_recursive(tasks, lambda task: needle in task.text.lower())


def _filter_recursive(tasks: List[Task], matches: Callable[[Task], bool]) -> List[Task]:
    result = []
    for task in tasks:
        filtered_children = _filter_recursive(task.children, matches) if task.children else []
        if matches(task) or filtered_children:
            result.append(replace(task, children=filtered_children or task.children))
    return result


def filter_completed(tasks: List[Task]) -> List[Task]:
    """Hide completed tasks and headers left without visible children."""
    result = []
    for task in tasks:
        if task.is_header:
            children = filter_completed(task.children)
            if children:
                result.append(replace(task, children=children))
        elif not task.completed:
            result.append(replace(task, children=filter_completed(task.children)))
    return result


# ----------------------------------------------------------------------
# Due dates
# ----------------------------------------------------------------------

def _parse_due(due_date: Optional[str]) -> Optional[date]:
    if not due_date:
        return None
    try:
        return date.fromisoformat(due_date[:10])
    except ValueError:
        return None


def due_bucket(due_date: Optional[str], today: Optional[date] = None) -> DueBucket:
    """Classify a ``YYYY-MM-DD`` string against ``today``.

    Unparseable dates count as having no due date.
    """
    today = today or date.today()
    due = _parse_due(due_date)
    if due is None:
        return DueBucket.NO_DUE_DATE
    if due < today:
        return DueBucket.OVERDUE
    if due == today:
        return DueBucket.TODAY
    if due == today + timedelta(days=1):
        return DueBucket.TOMORROW
    if due <= today + timedelta(days=7):
        return DueBucket.THIS_WEEK
    return DueBucket.LATER


def _status_matcher(status: Union[DueBucket, str], today: date) -> Callable[[Task], bool]:
    if status == UPCOMING:
        allowed = {DueBucket.TOMORROW, DueBucket.THIS_WEEK, DueBucket.LATER}
    else:
        allowed = {DueBucket(status)}
    return lambda task: not task.is_header and due_bucket(task.due_date, today) in allowed


def filter_by_due_status(
    tasks: List[Task], status: Union[DueBucket, str], *, today: Optional[date] = None
) -> List[Task]:
    """Keep tasks in the ``status`` bucket plus the ancestors leading to them.

    ``status`` is a bucket name or ``"upcoming"`` (any date after today).
    Raises ValueError for an unknown status.
    """
    matches = _status_matcher(status, today or date.today())
    return _filter_recursive(tasks, matches)


def group_by_due_date(tasks: List[Task], *, today: Optional[date] = None) -> Dict[str, List[Task]]:
    """Bucket every non-header task by due date.

    Entries are leaf copies so a nested task never shows up twice.
    """
    today = today or date.today()
    groups: Dict[str, List[Task]] = {bucket.value: [] for bucket in DueBucket}
    for task in walk(tasks):
        if task.is_header:
            continue
        groups[due_bucket(task.due_date, today).value].append(replace(task, children=[]))
    return groups


def count_by_due_status(tasks: List[Task], *, today: Optional[date] = None) -> Dict[str, int]:
    """Number of non-header tasks per due bucket."""
    return {name: len(items) for name, items in group_by_due_date(tasks, today=today).items()}
