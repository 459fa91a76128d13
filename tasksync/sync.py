"""Bidirectional markdown/task-tree synchronization.

A ``SyncController`` owns the canonical ``(markdown, tasks)`` pair of one
list. A markdown edit is parsed into a new tree after a debounce window; a
tree edit is exported to markdown after the same window. Each pass that
replaces the other representation records itself in a one-shot
``SyncSource`` marker so the resulting change is recognized as its own echo
and dropped instead of bouncing back.

Timers use the running asyncio loop when there is one. Without a loop the
host drives them with ``poll()`` or ``flush()``.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .exporter import export_tasks_to_markdown
from .models import SyncSource, Task
from .parser import parse_markdown_to_tasks
from .tasksync_logging import log_sync_event

logger = logging.getLogger("tasksync.sync")

DEFAULT_DEBOUNCE_MS = 300


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class Debouncer:
    """Hold at most one pending callback; rescheduling cancels the previous one."""

    def __init__(
        self,
        delay: float,
        *,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.delay = delay
        self._loop = loop
        self._clock = clock
        self._callback: Optional[Callable[[], None]] = None
        self._deadline: Optional[float] = None
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> bool:
        return self._callback is not None

    def schedule(self, callback: Callable[[], None]) -> None:
        self.cancel()
        self._callback = callback
        self._deadline = self._clock() + self.delay
        loop = self._loop or _running_loop()
        if loop is not None:
            self._handle = loop.call_later(self.delay, self.fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
        self._handle = None
        self._callback = None
        self._deadline = None

    def fire(self) -> bool:
        """Run the pending callback now. Returns False if nothing was pending."""
        callback = self._callback
        self.cancel()
        if callback is None:
            return False
        callback()
        return True

    def poll(self) -> bool:
        """Run the pending callback if its deadline has passed."""
        if self._deadline is not None and self._clock() >= self._deadline:
            return self.fire()
        return False


@dataclass
class SyncEvent:
    """Change notification delivered to subscribers.

    ``source`` is ``IDLE`` for direct edits, ``FROM_MARKDOWN`` when the tree
    was rebuilt from markdown and ``FROM_TASKS`` when the markdown was
    regenerated from the tree.
    """

    list_id: str
    source: SyncSource
    markdown: str
    tasks: List[Task] = field(default_factory=list)
    first_population: bool = False


Listener = Callable[[SyncEvent], None]


class SyncController:
    """Keep one list's markdown and task tree consistent."""

    DEBOUNCE_ENV = "TASKSYNC_DEBOUNCE_MS"

    def __init__(
        self,
        list_id: str,
        markdown: str = "",
        tasks: Optional[List[Task]] = None,
        *,
        debounce_seconds: Optional[float] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if debounce_seconds is None:
            debounce_seconds = int(os.getenv(self.DEBOUNCE_ENV, DEFAULT_DEBOUNCE_MS)) / 1000
        self.list_id = list_id
        self._markdown = markdown
        self._tasks: List[Task] = list(tasks or [])
        self._pending = SyncSource.IDLE
        self._markdown_timer = Debouncer(debounce_seconds, loop=loop, clock=clock)
        self._tasks_timer = Debouncer(debounce_seconds, loop=loop, clock=clock)
        self._markdown_listeners: List[Listener] = []
        self._tasks_listeners: List[Listener] = []
        self._closed = False

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def markdown(self) -> str:
        return self._markdown

    @property
    def tasks(self) -> List[Task]:
        return self._tasks

    @property
    def pending_source(self) -> SyncSource:
        """The echo marker waiting to be consumed, ``IDLE`` if none."""
        return self._pending

    @property
    def has_pending(self) -> bool:
        return self._markdown_timer.pending or self._tasks_timer.pending

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def on_markdown_changed(self, callback: Listener) -> Callable[[], None]:
        """Subscribe to markdown replacements; returns an unsubscribe function."""
        self._markdown_listeners.append(callback)
        return lambda: self._unsubscribe(self._markdown_listeners, callback)

    def on_tasks_changed(self, callback: Listener) -> Callable[[], None]:
        """Subscribe to tree replacements; returns an unsubscribe function."""
        self._tasks_listeners.append(callback)
        return lambda: self._unsubscribe(self._tasks_listeners, callback)

    @staticmethod
    def _unsubscribe(listeners: List[Listener], callback: Listener) -> None:
        if callback in listeners:
            listeners.remove(callback)

    def _notify(self, listeners: List[Listener], event: SyncEvent) -> None:
        for listener in list(listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Sync listener failed for list {self.list_id}: {e}", exc_info=True)

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def set_markdown(self, markdown: str) -> None:
        """Accept a user edit of the markdown text.

        The edit becomes the source of truth: a pending tree export is
        dropped and so is any stale echo marker.
        """
        self._ensure_open()
        if markdown == self._markdown:
            return
        self._tasks_timer.cancel()
        self._pending = SyncSource.IDLE
        self._replace_markdown(markdown, SyncSource.IDLE)

    def set_tasks(self, tasks: List[Task]) -> None:
        """Accept a new tree produced by a mutation."""
        self._ensure_open()
        if tasks is self._tasks:
            return
        self._markdown_timer.cancel()
        self._pending = SyncSource.IDLE
        self._replace_tasks(list(tasks), SyncSource.IDLE)

    def _replace_markdown(self, markdown: str, source: SyncSource) -> None:
        self._markdown = markdown
        self._notify(
            self._markdown_listeners,
            SyncEvent(self.list_id, source, markdown, self._tasks),
        )
        self._markdown_timer.schedule(self._propagate_markdown)

    def _replace_tasks(self, tasks: List[Task], source: SyncSource, first_population: bool = False) -> None:
        self._tasks = tasks
        self._notify(
            self._tasks_listeners,
            SyncEvent(self.list_id, source, self._markdown, tasks, first_population),
        )
        self._tasks_timer.schedule(self._propagate_tasks)

    # ------------------------------------------------------------------
    # Propagation passes
    # ------------------------------------------------------------------

    def _propagate_markdown(self) -> None:
        if self._pending is SyncSource.FROM_TASKS:
            self._pending = SyncSource.IDLE
            logger.debug("Suppressed markdown echo for list %s", self.list_id)
            return

        if self._markdown.strip():
            tasks = parse_markdown_to_tasks(self._markdown)
        else:
            tasks = []
        first_population = not self._tasks and bool(tasks)

        self._pending = SyncSource.FROM_MARKDOWN
        self._replace_tasks(tasks, SyncSource.FROM_MARKDOWN, first_population)
        log_sync_event("markdown_parsed", self.list_id, root_count=len(tasks), first_population=first_population)

    def _propagate_tasks(self) -> None:
        if self._pending is SyncSource.FROM_MARKDOWN:
            self._pending = SyncSource.IDLE
            logger.debug("Suppressed tree echo for list %s", self.list_id)
            return

        markdown = export_tasks_to_markdown(self._tasks)

        self._pending = SyncSource.FROM_TASKS
        self._replace_markdown(markdown, SyncSource.FROM_TASKS)
        log_sync_event("tasks_exported", self.list_id, length=len(markdown))

    # ------------------------------------------------------------------
    # Driving timers
    # ------------------------------------------------------------------

    def poll(self) -> bool:
        """Fire whichever passes are due. Returns True if one ran."""
        ran = self._markdown_timer.poll()
        ran = self._tasks_timer.poll() or ran
        return ran

    def flush(self) -> None:
        """Run pending passes immediately until nothing is left."""
        # A pass schedules at most its own echo, so this settles in two rounds.
        for _ in range(4):
            if self._markdown_timer.fire():
                continue
            if self._tasks_timer.fire():
                continue
            break

    def cancel(self) -> None:
        """Invalidate pending passes and forget any echo marker."""
        self._markdown_timer.cancel()
        self._tasks_timer.cancel()
        self._pending = SyncSource.IDLE

    def close(self) -> None:
        self.cancel()
        self._markdown_listeners.clear()
        self._tasks_listeners.clear()
        self._closed = True

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError(f"Sync controller for list '{self.list_id}' is closed")
