"""Pytest fixtures for astronomical calendar tests.

This module provides test fixtures that ensure:
1. No external API calls are made (Google Calendar)
2. No astropy computation outside tests/test_astronomy.py
3. Isolated test environment with controlled configuration
"""

import os
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone

import pytest

# Set test environment BEFORE importing application modules
os.environ.setdefault("SKY_DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SKY_STORE", "sql")
os.environ.setdefault("SKY_LOG_LEVEL", "DEBUG")

from sky_calendars.astronomy.source import RESOURCE_COLUMNS, DataSource
from sky_calendars.context import CancelToken, TaskContext, TaskProgress
from sky_calendars.errors import DataSourceUnavailable
from sky_calendars.models.calendar import CalendarWindow, Event, SourceRow
from sky_calendars.models.location import Coordinates, Location
from sky_calendars.preferences import CalendarSettings, MemoryPreferenceStore
from sky_calendars.store.base import CalendarStore, ReminderEntry, StoredEvent


# =============================================================================
# Fakes
# =============================================================================


class FakeCalendarStore(CalendarStore):
    """In-memory calendar store recording every batch it receives.

    Set `fail_events` / `fail_reminders` to an exception to make the next
    write of that kind raise it.
    """

    name = "fake"

    def __init__(self):
        self.calendars: dict[str, str] = {}
        self.events: dict[str, list[StoredEvent]] = {}
        self.written: dict[str, list[Event]] = {}
        self.reminders: dict[str, list[ReminderEntry]] = {}
        self.event_batches: list[int] = []
        self.reminder_batches: list[int] = []
        self.removed_reminder_batches: list[int] = []
        self.removed_calendars: list[str] = []
        self.pruned: list[tuple[str, datetime]] = []
        self.fail_events: Exception | None = None
        self.fail_reminders: Exception | None = None
        self.fail_remove_reminders: Exception | None = None
        self._next_id = 0

    def _id(self) -> str:
        self._next_id += 1
        return str(self._next_id)

    def add_calendar(self, name: str, event_count: int = 0) -> str:
        """Put a pre-existing calendar with `event_count` events in the store."""
        calendar_id = self.create_calendar(name, name.title(), "#000000")
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        self.events[calendar_id] = [
            StoredEvent(event_id=self._id(), start=start + timedelta(days=i), title=f"e{i}")
            for i in range(event_count)
        ]
        return calendar_id

    def create_calendar(self, name: str, title: str, color: str) -> str:
        calendar_id = self._id()
        self.calendars[name] = calendar_id
        self.events[calendar_id] = []
        self.written[calendar_id] = []
        return calendar_id

    def query_calendar_id(self, name: str) -> str | None:
        return self.calendars.get(name)

    def remove_calendar(self, name: str) -> bool:
        calendar_id = self.calendars.pop(name, None)
        if calendar_id is None:
            return False
        self.removed_calendars.append(name)
        self.events.pop(calendar_id, None)
        return True

    def remove_calendars(self) -> int:
        names = list(self.calendars)
        for name in names:
            self.remove_calendar(name)
        return len(names)

    def remove_calendar_events_before(self, calendar_id: str, time: datetime) -> int:
        self.pruned.append((calendar_id, time))
        before = self.events.get(calendar_id, [])
        self.events[calendar_id] = [e for e in before if e.start >= time]
        return len(before) - len(self.events[calendar_id])

    def query_calendar_events(self, calendar_id: str) -> list[StoredEvent]:
        return sorted(self.events.get(calendar_id, []), key=lambda e: e.start)

    def create_calendar_events(self, calendar_id: str, events: Sequence[Event]) -> int:
        self.event_batches.append(len(events))
        if self.fail_events is not None:
            error, self.fail_events = self.fail_events, None
            raise error
        for event in events:
            self.events[calendar_id].append(
                StoredEvent(event_id=self._id(), start=event.start, title=event.title)
            )
            self.written[calendar_id].append(event)
        return len(events)

    def create_calendar_reminders(self, reminders: Sequence[ReminderEntry]) -> int:
        self.reminder_batches.append(len(reminders))
        if self.fail_reminders is not None:
            error, self.fail_reminders = self.fail_reminders, None
            raise error
        for reminder in reminders:
            self.reminders.setdefault(reminder.calendar_id, []).append(reminder)
        return len(reminders)

    def remove_reminders(self, calendar_id: str, event_ids: Sequence[str]) -> int:
        self.removed_reminder_batches.append(len(event_ids))
        if self.fail_remove_reminders is not None:
            error, self.fail_remove_reminders = self.fail_remove_reminders, None
            raise error
        ids = set(event_ids)
        before = self.reminders.get(calendar_id, [])
        self.reminders[calendar_id] = [r for r in before if r.event_id not in ids]
        return len(before) - len(self.reminders[calendar_id])

    def reminder_count(self, name: str) -> int:
        return len(self.reminders.get(self.calendars.get(name, ""), []))


class FakeDataSource(DataSource):
    """Data source returning canned rows.

    Rows default to one per day with every column set, starting at the
    query start. `rows` overrides that per resource.
    """

    def __init__(
        self,
        location: Location | None = None,
        row_count: int = 10,
        rows: dict[str, list[SourceRow]] | None = None,
    ):
        self.location = location
        self.row_count = row_count
        self.rows = rows or {}
        self.queries: list[tuple[str, datetime, datetime, tuple[str, ...]]] = []

    def query(self, resource, start, end, projection) -> list[SourceRow]:
        self.queries.append((resource, start, end, tuple(projection)))
        if resource not in RESOURCE_COLUMNS:
            raise DataSourceUnavailable(resource)
        if resource in self.rows:
            return list(self.rows[resource])
        return [
            tuple(
                start + timedelta(days=day, hours=1 + column)
                for column in range(len(projection))
            )
            for day in range(self.row_count)
        ]

    def query_location(self) -> Location | None:
        return self.location


class ProgressRecorder:
    """Listener collecting every (outer, inner) pair."""

    def __init__(self):
        self.updates: list[tuple[TaskProgress, TaskProgress | None]] = []

    def __call__(self, outer: TaskProgress, inner: TaskProgress | None) -> None:
        self.updates.append((outer, inner))

    @property
    def inner(self) -> list[TaskProgress]:
        return [inner for _, inner in self.updates if inner is not None]


# =============================================================================
# Test Isolation Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_settings_cache():
    """Reset settings cache before each test to ensure clean state."""
    from sky_calendars.config import get_settings
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def sample_coordinates() -> Coordinates:
    """Sample coordinates for New York City."""
    return Coordinates(latitude=40.7128, longitude=-74.0060)


@pytest.fixture
def sample_location(sample_coordinates: Coordinates) -> Location:
    """Sample location with coordinates and timezone."""
    return Location(
        coordinates=sample_coordinates,
        timezone="America/New_York",
        name="New York City",
    )


@pytest.fixture
def preferences() -> MemoryPreferenceStore:
    return MemoryPreferenceStore()


@pytest.fixture
def calendar_settings(preferences: MemoryPreferenceStore) -> CalendarSettings:
    return CalendarSettings(preferences)


@pytest.fixture
def store() -> FakeCalendarStore:
    return FakeCalendarStore()


@pytest.fixture
def data_source(sample_location: Location) -> FakeDataSource:
    return FakeDataSource(location=sample_location)


@pytest.fixture
def progress() -> ProgressRecorder:
    return ProgressRecorder()


@pytest.fixture
def task_context(
    calendar_settings: CalendarSettings,
    store: FakeCalendarStore,
    data_source: FakeDataSource,
    sample_location: Location,
    progress: ProgressRecorder,
) -> TaskContext:
    """A context as a task run would build it, with the location resolved."""
    return TaskContext(
        settings=calendar_settings,
        store=store,
        data_source=data_source,
        cancel=CancelToken(),
        listener=progress,
        location=sample_location,
    )


@pytest.fixture
def sample_window() -> CalendarWindow:
    return CalendarWindow(
        start=datetime(2024, 1, 1, tzinfo=timezone.utc),
        end=datetime(2025, 1, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def outer() -> TaskProgress:
    return TaskProgress(0, 1, "Updating calendars")
