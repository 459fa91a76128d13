"""Unit tests for tasksync logging.

This module tests the logging setup, operation timing and the event records
written by the sync controller and the workspace.
"""

import json
import logging
import pytest

from tasksync import tasksync_logging
from tasksync.tasksync_logging import (
    EVENT_LOGGER,
    JsonFormatter,
    log_error_with_context,
    log_list_event,
    log_operation,
    log_performance,
    log_sync_event,
    setup_logging,
)


class TestJsonFormatter:
    """Test cases for JsonFormatter."""

    def test_json_formatter_basic(self):
        """Test basic JSON formatting."""
        formatter = JsonFormatter()
        record = logging.getLogger("test").makeRecord(
            "test", logging.INFO, __file__, 10, "Test message", (), None
        )

        data = json.loads(formatter.format(record))

        assert data["level"] == "INFO"
        assert data["logger"] == "test"
        assert data["message"] == "Test message"
        assert "timestamp" in data

    def test_json_formatter_extra_fields(self):
        """Test that extra_fields are merged into the entry."""
        formatter = JsonFormatter()
        record = logging.getLogger("test").makeRecord(
            "test", logging.INFO, __file__, 10, "msg", (), None, extra={"extra_fields": {"list_id": "abc"}}
        )

        data = json.loads(formatter.format(record))

        assert data["list_id"] == "abc"

    def test_json_formatter_with_exception(self):
        """Test JSON formatting with exception info."""
        formatter = JsonFormatter()
        try:
            raise ValueError("Test exception")
        except ValueError as e:
            record = logging.getLogger("test").makeRecord(
                "test", logging.ERROR, __file__, 10, "failed", (), (type(e), e, e.__traceback__)
            )

        data = json.loads(formatter.format(record))

        assert "ValueError: Test exception" in data["exception"]


class TestSetupLogging:
    """Test cases for setup_logging."""

    def test_console_and_file_handlers(self, tmp_path):
        """Test that a log file gets a JSON handler."""
        log_file = tmp_path / "tasksync.log"
        setup_logging("DEBUG", log_file)

        logger = logging.getLogger("tasksync")
        try:
            assert len(logger.handlers) == 2
            assert isinstance(logger.handlers[1].formatter, JsonFormatter)
            logger.handlers[1].flush()
            first = log_file.read_text(encoding="utf-8").splitlines()[0]
            assert json.loads(first)["message"] == "tasksync logging initialized"
        finally:
            for handler in logger.handlers:
                handler.close()
            logger.handlers.clear()


class TestPerformance:
    """Test cases for timing helpers."""

    def test_log_performance_success(self, caplog):
        """Test that a decorated call logs its duration."""

        @log_performance("unit_success")
        def work(x):
            return x * 2

        with caplog.at_level(logging.DEBUG, logger="tasksync.performance"):
            assert work(21) == 42

        record = caplog.records[-1]
        assert record.extra_fields["operation"] == "unit_success"
        assert record.extra_fields["status"] == "success"
        assert record.extra_fields["duration"] >= 0
        assert work.__name__ == "work"

    def test_log_performance_failure(self, caplog):
        """Test that failures are logged and re-raised."""

        @log_performance("unit_failure")
        def work():
            raise KeyError("gone")

        with caplog.at_level(logging.ERROR, logger="tasksync.performance"):
            with pytest.raises(KeyError):
                work()

        fields = caplog.records[-1].extra_fields
        assert fields["status"] == "error"
        assert fields["error_type"] == "KeyError"

    def test_log_operation_reraises(self, caplog):
        """Test that the context manager logs and propagates errors."""
        with caplog.at_level(logging.ERROR, logger="tasksync.operations"):
            with pytest.raises(ValueError):
                with log_operation("explode", list_id="l1"):
                    raise ValueError("bad")

        assert "Failed operation: explode" in caplog.text
        assert caplog.records[-1].extra_fields["list_id"] == "l1"

    def test_log_operation_success(self, caplog):
        """Test that a completed block is logged at info."""
        with caplog.at_level(logging.INFO, logger="tasksync.operations"):
            with log_operation("toggle_task", list_id="l1"):
                pass

        assert caplog.records[-1].levelno == logging.INFO
        assert caplog.records[-1].extra_fields["status"] == "completed"


class TestEvents:
    """Test cases for the event and error helpers."""

    def test_event_names_and_fields(self, caplog):
        """Test log_sync_event and log_list_event naming."""
        with caplog.at_level(logging.DEBUG, logger=EVENT_LOGGER):
            log_sync_event("tasks_exported", "l1", length=5)
            log_list_event("CREATED", "l2")

        sync_record, list_record = [r for r in caplog.records if r.name == EVENT_LOGGER]
        assert sync_record.extra_fields == {"event_type": "sync_tasks_exported", "list_id": "l1", "length": 5}
        assert list_record.extra_fields == {"event_type": "list_created", "list_id": "l2"}

    def test_no_in_memory_registries(self):
        """Test that events are plain log records with nothing kept in memory."""
        assert not hasattr(tasksync_logging, "observability_hooks")
        assert not hasattr(tasksync_logging, "performance_monitor")

    def test_log_error_with_context(self, caplog):
        """Test logging an error with context."""
        with caplog.at_level(logging.ERROR, logger="tasksync.errors"):
            log_error_with_context(ValueError("nope"), {"operation": "move_task"})

        assert "Error in move_task: nope" in caplog.text
        assert caplog.records[-1].extra_fields["context"] == {"operation": "move_task"}
