"""Unit tests for the tree merge engine."""

import pytest

from tasksync.merge import merge_tasks
from tasksync.models import TaskNotFoundError, walk
from tasksync.parser import parse_markdown_to_tasks


@pytest.fixture
def existing():
    """Two sections with a few tasks each."""
    return parse_markdown_to_tasks("### Work\n- [ ] report\n- [ ] email\n### Home\n- [ ] dishes")


class TestMergeTasks:
    """Test cases for merge_tasks."""

    def test_merge_into_empty_tree(self):
        """Test merging a fragment into an empty list."""
        merged = merge_tasks([], parse_markdown_to_tasks("- [ ] X"), None)

        assert len(merged) == 1
        assert merged[0].text == "X"
        assert merged[0].level == 0

    def test_empty_incoming_returns_existing(self, existing):
        """Test that nothing to merge is a no-op."""
        assert merge_tasks(existing, []) is existing

    def test_append_at_root(self, existing):
        """Test appending after existing roots with levels reset to 0."""
        incoming = parse_markdown_to_tasks("- a\n  - b", normalize_levels=False)
        merged = merge_tasks(existing, incoming)

        assert [task.text for task in merged] == ["Work", "Home", "a"]
        assert merged[2].level == 0
        assert merged[2].children[0].level == 1

    def test_merge_under_parent(self, existing):
        """Test adding a fragment as children of a nested task."""
        report = existing[0].children[0]
        incoming = parse_markdown_to_tasks("- draft\n  - outline\n- review")

        merged = merge_tasks(existing, incoming, report.id)

        new_report = merged[0].children[0]
        assert [child.text for child in new_report.children] == ["draft", "review"]
        assert new_report.children[0].level == report.level + 1
        assert new_report.children[0].children[0].level == report.level + 2

    def test_merge_appends_after_existing_children(self, existing):
        """Test that merged nodes go after the parent's current children."""
        work = existing[0]
        merged = merge_tasks(existing, parse_markdown_to_tasks("- slides"), work.id)

        assert [child.text for child in merged[0].children] == ["report", "email", "slides"]
        assert merged[0].children[-1].level == 1

    def test_unknown_parent_is_noop(self, existing):
        """Test that a missing parent leaves the tree untouched."""
        merged = merge_tasks(existing, parse_markdown_to_tasks("- lost"), "missing-id")

        assert merged is existing

    def test_unknown_parent_strict(self, existing):
        """Test that strict mode reports the missing parent."""
        with pytest.raises(TaskNotFoundError, match="missing-id"):
            merge_tasks(existing, parse_markdown_to_tasks("- lost"), "missing-id", strict=True)

    def test_inputs_not_mutated(self, existing):
        """Test that merging builds a new tree."""
        before = [task.outline() for task in walk(existing)]
        incoming = parse_markdown_to_tasks("- new")

        merge_tasks(existing, incoming, existing[1].id)

        assert [task.outline() for task in walk(existing)] == before
        assert incoming[0].level == 0
