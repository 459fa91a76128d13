"""Unit tests for search, hide-completed and due-date views."""

from datetime import date

import pytest

from tasksync import tree
from tasksync.filters import (
    count_by_due_status,
    due_bucket,
    filter_by_due_status,
    filter_by_search,
    filter_completed,
    group_by_due_date,
)
from tasksync.models import DueBucket, walk
from tasksync.parser import parse_markdown_to_tasks

TODAY = date(2026, 10, 19)


def texts(tasks):
    return [task.text for task in walk(tasks)]


def by_text(tasks, text):
    return next(task for task in walk(tasks) if task.text == text)


@pytest.fixture
def tasks():
    return parse_markdown_to_tasks(
        "### Groceries\n- [ ] Milk\n- [x] Bread\n  - [x] Rye\n"
        "### Chores\n- [x] Laundry\n- [ ] Vacuum\n  - [ ] Living room\n  - [x] Kitchen\n"
        "### Done section\n- [x] Old"
    )


class TestSearch:
    """Test cases for filter_by_search."""

    def test_blank_query_returns_input(self, tasks):
        """Test that an empty query filters nothing."""
        assert filter_by_search(tasks, "   ") is tasks

    def test_match_keeps_ancestors(self, tasks):
        """Test that matching a leaf keeps its ancestors."""
        result = filter_by_search(tasks, "kitchen")

        assert texts(result) == ["Chores", "Vacuum", "Kitchen"]

    def test_case_insensitive(self, tasks):
        """Test that matching ignores case."""
        assert texts(filter_by_search(tasks, "MILK")) == ["Groceries", "Milk"]

    def test_matching_parent_keeps_unfiltered_children(self, tasks):
        """Test that a match whose descendants do not match keeps all its children."""
        result = filter_by_search(tasks, "vacuum")

        assert texts(result) == ["Chores", "Vacuum", "Living room", "Kitchen"]

    def test_no_match(self, tasks):
        """Test that nothing matches."""
        assert filter_by_search(tasks, "zebra") == []


class TestHideCompleted:
    """Test cases for filter_completed."""

    def test_completed_tasks_hidden(self, tasks):
        """Test that completed tasks and their subtrees disappear."""
        result = filter_completed(tasks)

        assert texts(result) == ["Groceries", "Milk", "Chores", "Vacuum", "Living room"]

    def test_empty_sections_dropped(self, tasks):
        """Test that a section with nothing visible is removed."""
        assert "Done section" not in texts(filter_completed(tasks))

    def test_idempotent(self, tasks):
        """Test that filtering twice equals filtering once."""
        once = filter_completed(tasks)
        twice = filter_completed(once)

        assert [t.outline() for t in walk(twice)] == [t.outline() for t in walk(once)]


class TestDueDates:
    """Test cases for due-date bucketing."""

    @pytest.mark.parametrize(
        "due, bucket",
        [
            (None, DueBucket.NO_DUE_DATE),
            ("not a date", DueBucket.NO_DUE_DATE),
            ("2026-10-18", DueBucket.OVERDUE),
            ("2026-10-19", DueBucket.TODAY),
            ("2026-10-20", DueBucket.TOMORROW),
            ("2026-10-21", DueBucket.THIS_WEEK),
            ("2026-10-26", DueBucket.THIS_WEEK),
            ("2026-10-27", DueBucket.LATER),
        ],
    )
    def test_due_bucket(self, due, bucket):
        """Test bucket boundaries around a fixed today."""
        assert due_bucket(due, TODAY) is bucket

    @pytest.fixture
    def dated(self, tasks):
        tasks = tree.set_due_date(tasks, by_text(tasks, "Milk").id, "2026-10-10")
        tasks = tree.set_due_date(tasks, by_text(tasks, "Living room").id, "2026-10-19")
        tasks = tree.set_due_date(tasks, by_text(tasks, "Kitchen").id, "2026-12-01")
        return tasks

    def test_filter_by_status(self, dated):
        """Test that filtering keeps matches and the sections leading to them."""
        result = filter_by_due_status(dated, "today", today=TODAY)

        assert texts(result) == ["Chores", "Vacuum", "Living room"]

    def test_filter_upcoming(self, dated):
        """Test the upcoming pseudo-status."""
        result = filter_by_due_status(dated, "upcoming", today=TODAY)

        assert texts(result) == ["Chores", "Vacuum", "Kitchen"]

    def test_filter_unknown_status(self, dated):
        """Test that an unknown status raises ValueError."""
        with pytest.raises(ValueError):
            filter_by_due_status(dated, "someday", today=TODAY)

    def test_group_excludes_headers(self, dated):
        """Test grouping every non-header task."""
        groups = group_by_due_date(dated, today=TODAY)

        assert set(groups) == {bucket.value for bucket in DueBucket}
        assert [t.text for t in groups["overdue"]] == ["Milk"]
        assert [t.text for t in groups["today"]] == ["Living room"]
        assert [t.text for t in groups["later"]] == ["Kitchen"]
        assert not any(t.is_header for items in groups.values() for t in items)
        assert all(t.children == [] for items in groups.values() for t in items)

    def test_counts(self, dated):
        """Test bucket counts."""
        counts = count_by_due_status(dated, today=TODAY)

        assert counts["overdue"] == 1
        assert counts["today"] == 1
        assert counts["later"] == 1
        assert counts["no_due_date"] == 5
