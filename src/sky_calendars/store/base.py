"""Calendar store abstraction.

A calendar store holds generated calendars, their events, and the reminders
attached to those events. Task code only talks to this interface; concrete
stores translate it to a database (`SqlCalendarStore`) or a remote calendar
service (`GoogleCalendarStore`).

## Identifiers

Calendars are addressed by their stable name when created, removed, or
looked up, and by a store-assigned opaque string id everywhere else.

## Errors

- `PermissionDenied`: access refused; the caller aborts the whole run
- `StoreUnavailable`: the store cannot be reached
- `PartialBatchFailure`: one batched write failed; earlier batches stay written
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime

from sky_calendars.models.calendar import Event, ReminderMethod


@dataclass(frozen=True)
class StoredEvent:
    """An event row as read back from a store."""

    event_id: str
    start: datetime
    title: str = ""


@dataclass(frozen=True)
class ReminderEntry:
    """One reminder to attach to one stored event."""

    calendar_id: str
    event_id: str
    minutes: int
    method: ReminderMethod


class CalendarStore(ABC):
    """Abstract base class for calendar stores.

    Example:
        ```python
        store = SqlCalendarStore.from_url("sqlite:///calendars.db")
        if not store.has_calendar("daylight"):
            calendar_id = store.create_calendar("daylight", "Daylight", "#FFB300")
            store.create_calendar_events(calendar_id, events)
        ```
    """

    name: str = "store"

    def has_calendar(self, name: str) -> bool:
        """Check if a calendar with this name exists."""
        return self.query_calendar_id(name) is not None

    @abstractmethod
    def create_calendar(self, name: str, title: str, color: str) -> str:
        """Create a calendar and return its id."""

    @abstractmethod
    def query_calendar_id(self, name: str) -> str | None:
        """Return the id of a named calendar, or None if it does not exist."""

    @abstractmethod
    def remove_calendar(self, name: str) -> bool:
        """Remove a calendar with all of its events and reminders.

        Returns:
            True if a calendar was removed
        """

    @abstractmethod
    def remove_calendars(self) -> int:
        """Remove every calendar this store owns. Returns the number removed."""

    @abstractmethod
    def remove_calendar_events_before(self, calendar_id: str, time: datetime) -> int:
        """Remove events starting before `time`. Returns the number removed."""

    @abstractmethod
    def query_calendar_events(self, calendar_id: str) -> list[StoredEvent]:
        """Return every event of a calendar, ordered by start time."""

    @abstractmethod
    def create_calendar_events(self, calendar_id: str, events: Sequence[Event]) -> int:
        """Write one batch of events. Returns the number written."""

    @abstractmethod
    def create_calendar_reminders(self, reminders: Sequence[ReminderEntry]) -> int:
        """Write one batch of reminders. Returns the number written."""

    @abstractmethod
    def remove_reminders(self, calendar_id: str, event_ids: Sequence[str]) -> int:
        """Remove every reminder of the given events. Returns the number removed."""
