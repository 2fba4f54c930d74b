"""Exceptions raised while generating and writing calendars.

## Propagation

- `PermissionDenied` aborts the whole task run.
- `StoreUnavailable` / `DataSourceUnavailable` fail the current calendar only.
- `CalendarAlreadyExists` is a refusal; delete the calendar first.
- `CalendarNotFound` marks an unrecognized calendar name in a task item.
- `PartialBatchFailure` is logged per chunk; the loop keeps going.
- `TaskCancelled` is never raised past the task; a cancelled run reports failure.
- `TaskAlreadyRunning` rejects a second concurrent run.
"""

from __future__ import annotations


class CalendarError(Exception):
    """Base exception for calendar generation errors."""


class StoreUnavailable(CalendarError):
    """Raised when the calendar store (or a resource it depends on) cannot be reached."""


class DataSourceUnavailable(StoreUnavailable):
    """Raised when the astronomical data source cannot resolve a query."""

    def __init__(self, resource: str, message: str | None = None):
        super().__init__(message or f"Failed to resolve resource! {resource}")
        self.resource = resource


class PermissionDenied(CalendarError):
    """Raised when the calendar store refuses access."""


class CalendarAlreadyExists(CalendarError):
    """Raised when asked to generate a calendar that is already in the store."""

    def __init__(self, calendar: str):
        super().__init__(f"Calendar {calendar} already exists; delete it first")
        self.calendar = calendar


class CalendarNotFound(CalendarError):
    """Raised for a calendar name with no registered generator."""

    def __init__(self, calendar: str):
        super().__init__(f"Unrecognized calendar {calendar}")
        self.calendar = calendar


class PartialBatchFailure(CalendarError):
    """Raised by a store when one chunk of a batched write fails."""

    def __init__(self, message: str, failed: int = 0):
        super().__init__(message)
        self.failed = failed


class TaskCancelled(CalendarError):
    """Raised when cooperative cancellation is observed."""


class TaskAlreadyRunning(CalendarError):
    """Raised when a task is submitted while another one is still running."""
