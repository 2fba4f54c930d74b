"""Per-run context shared by the orchestrator, generators, and reminders.

A `TaskContext` is created for each task run and passed explicitly into
every operation that needs the store, the data source, the settings, the
resolved location, cancellation, or progress. Nothing keeps it beyond the
call it was passed to.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field

from sky_calendars.astronomy.source import DataSource
from sky_calendars.errors import TaskCancelled
from sky_calendars.models.location import Location
from sky_calendars.preferences import CalendarSettings
from sky_calendars.store.base import CalendarStore

# Events and reminders written per store call
BATCH_SIZE = 128

# Rows (or events) between two progress updates
PROGRESS_INTERVAL = 8


@dataclass(frozen=True)
class TaskProgress:
    """One level of progress: `current` of `total`, with a display message."""

    current: int
    total: int
    message: str = ""

    @property
    def done(self) -> bool:
        return self.current >= self.total


ProgressListener = Callable[[TaskProgress, TaskProgress | None], None]


class CancelToken:
    """Cooperative cancellation flag, safe to set from any thread."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise TaskCancelled("Task cancelled")


@dataclass
class TaskContext:
    """Collaborators of one task run."""

    settings: CalendarSettings
    store: CalendarStore
    data_source: DataSource
    cancel: CancelToken = field(default_factory=CancelToken)
    listener: ProgressListener | None = None
    location: Location | None = None

    @property
    def cancelled(self) -> bool:
        return self.cancel.cancelled

    def publish(self, outer: TaskProgress, inner: TaskProgress | None = None) -> None:
        """Send both progress levels to the listener together."""
        if self.listener is not None:
            self.listener(outer, inner)
