"""Logging helpers for tasksync.

Everything logs below the ``tasksync`` logger. Structured payloads travel in
the ``extra_fields`` record attribute, which :class:`JsonFormatter` merges
into each JSON line written to the optional log file.
"""

from __future__ import annotations

import json
import time
import logging as std_logging
from contextlib import contextmanager
from datetime import datetime, timezone
from functools import wraps
from pathlib import Path
from typing import Any, Dict, Optional, Union

EVENT_LOGGER = "tasksync.events"


def setup_logging(log_level: Union[str, int] = std_logging.INFO, log_file: Optional[Path] = None) -> None:
    """Configure the ``tasksync`` logger with a console and optional JSON file handler."""

    logger = std_logging.getLogger("tasksync")
    logger.setLevel(log_level)
    logger.handlers.clear()

    # stderr only, stdout belongs to the MCP transport
    console_handler = std_logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(std_logging.Formatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(module)s:%(funcName)s:%(lineno)d - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))
    logger.addHandler(console_handler)

    if log_file:
        file_handler = std_logging.FileHandler(log_file)
        file_handler.setLevel(std_logging.DEBUG)
        file_handler.setFormatter(JsonFormatter())
        logger.addHandler(file_handler)

    logger.info("tasksync logging initialized")


class JsonFormatter(std_logging.Formatter):
    """One JSON object per record."""

    def format(self, record: std_logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
        }

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_fields"):
            entry.update(record.extra_fields)

        return json.dumps(entry, default=str)


def log_performance(operation_name: str):
    """Decorator logging how long each call of the wrapped function took."""
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            logger = std_logging.getLogger("tasksync.performance")
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                duration = time.perf_counter() - started
                logger.error(
                    f"{operation_name} failed after {duration:.3f}s: {e}",
                    extra={"extra_fields": {
                        "operation": operation_name,
                        "duration": duration,
                        "status": "error",
                        "error_type": type(e).__name__,
                    }},
                )
                raise

            duration = time.perf_counter() - started
            logger.debug(
                f"{operation_name} took {duration:.3f}s",
                extra={"extra_fields": {"operation": operation_name, "duration": duration, "status": "success"}},
            )
            return result

        return wrapper
    return decorator


@contextmanager
def log_operation(operation_name: str, **extra_fields):
    """Log the start, completion or failure of a block of work."""
    logger = std_logging.getLogger("tasksync.operations")
    started = time.perf_counter()

    logger.debug(f"Starting operation: {operation_name}", extra={"extra_fields": {
        "operation": operation_name,
        "status": "started",
        **extra_fields,
    }})

    try:
        yield
    except Exception as e:
        duration = time.perf_counter() - started
        logger.error(f"Failed operation: {operation_name} after {duration:.3f}s - {e}", extra={"extra_fields": {
            "operation": operation_name,
            "status": "failed",
            "duration": duration,
            "error_type": type(e).__name__,
            **extra_fields,
        }})
        raise

    duration = time.perf_counter() - started
    logger.info(f"Completed operation: {operation_name} in {duration:.3f}s", extra={"extra_fields": {
        "operation": operation_name,
        "status": "completed",
        "duration": duration,
        **extra_fields,
    }})


def _log_event(event_type: str, list_id: Optional[str], data: Dict[str, Any]) -> None:
    std_logging.getLogger(EVENT_LOGGER).debug(
        f"Event: {event_type}",
        extra={"extra_fields": {"event_type": event_type, "list_id": list_id, **data}},
    )


def log_sync_event(event_type: str, list_id: str, **extra_fields) -> None:
    """Log a markdown/tree propagation event as ``sync_<event_type>``."""
    _log_event(f"sync_{event_type.lower()}", list_id, extra_fields)


def log_list_event(event_type: str, list_id: str, **extra_fields) -> None:
    """Log a list lifecycle event as ``list_<event_type>``."""
    _log_event(f"list_{event_type.lower()}", list_id, extra_fields)


def log_error_with_context(error: Exception, context: Dict[str, Any], **extra_fields) -> None:
    """Log ``error`` with its traceback and the operation context it happened in."""
    std_logging.getLogger("tasksync.errors").error(
        f"Error in {context.get('operation', 'unknown operation')}: {error}",
        extra={"extra_fields": {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "error_type": type(error).__name__,
            "error_message": str(error),
            "context": context,
            **extra_fields,
        }},
        exc_info=error,
    )
