"""Event generator contract.

Every calendar kind is an `EventGenerator`. Variants only declare what they
read and how one source row becomes events; writing, batching, progress,
cancellation, and reminders are shared here.

## Generating a calendar

`init_calendar` runs these steps, in order:

1. Cancelled already: fail.
2. Calendar already in the store: fail (delete it first).
3. Create the calendar, then resolve its store id.
4. Query the data source for `resource` over the window, restricted to
   `projection`. An unresolvable query fails with the resource name.
5. Save the location name as a note on the calendar.
6. Load flags, strings, and template (user overrides, else defaults).
7. Stream rows through `build_events`, flushing every `BATCH_SIZE` events
   and at the end, publishing progress every `PROGRESS_INTERVAL` rows and
   at the end, and stopping once cancellation is seen.
8. Attach reminders to every written event.

The result is True only when nothing failed and the run was not cancelled.
Partially written events stay in the store.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from datetime import datetime
from typing import ClassVar

from sky_calendars.context import BATCH_SIZE, PROGRESS_INTERVAL, TaskContext, TaskProgress
from sky_calendars.errors import (
    CalendarAlreadyExists,
    CalendarError,
    DataSourceUnavailable,
    PermissionDenied,
)
from sky_calendars.models.calendar import (
    CalendarDescriptor,
    CalendarWindow,
    Event,
    EventFlags,
    EventStrings,
    SourceRow,
)
from sky_calendars.preferences import NOTE_LOCATION_NAME, CalendarSettings
from sky_calendars.reminders import ReminderManager
from sky_calendars.templates import PATTERN_EVENT, EventTemplate, build_context

logger = logging.getLogger(__name__)


def make_event(
    template: EventTemplate,
    data: Mapping[str, str],
    label: str,
    start: datetime,
    end: datetime | None = None,
) -> Event:
    """Render one event, with `label` as the `%M` token."""
    context = dict(data)
    context[PATTERN_EVENT] = label
    title, description, location = template.render(context)
    return Event(title=title, description=description, location=location, start=start, end=end)


class EventGenerator(ABC):
    """Base class of all calendar kinds.

    Subclasses set the class attributes and implement `build_events`.

    Example:
        ```python
        generator = DaylightCalendar()
        generator.init(settings)
        ok = generator.init_calendar(ctx, window, TaskProgress(0, 1))
        if not ok:
            print(generator.last_error)
        ```
    """

    name: ClassVar[str]
    title: ClassVar[str]
    summary: ClassVar[str] = ""
    resource: ClassVar[str]
    projection: ClassVar[tuple[str, ...]]
    labels: ClassVar[tuple[str, ...]]

    def __init__(self):
        self.settings: CalendarSettings | None = None
        self.last_error: str | None = None
        self._descriptor: CalendarDescriptor | None = None

    @property
    def calendar_name(self) -> str:
        return self.name

    def default_template(self) -> EventTemplate:
        return EventTemplate(title="%M", description="%M @ %loc", location="%loc")

    def default_strings(self) -> EventStrings:
        return EventStrings(self.labels)

    @abstractmethod
    def default_flags(self) -> EventFlags:
        """One flag per event type this calendar can emit, all enabled."""

    @abstractmethod
    def flag_label(self, i: int) -> str:
        """Display label of flag `i` (empty if out of range)."""

    @abstractmethod
    def build_events(
        self,
        row: SourceRow,
        flags: EventFlags,
        strings: EventStrings,
        template: EventTemplate,
        data: Mapping[str, str],
    ) -> list[Event]:
        """Turn one source row into events."""

    def init(self, settings: CalendarSettings) -> None:
        """Resolve the descriptor against the current settings."""
        self.settings = settings
        self._descriptor = CalendarDescriptor(
            name=self.name,
            title=self.title,
            summary=self.summary,
            color=settings.calendar_color(self.name),
        )

    def descriptor(self) -> CalendarDescriptor:
        if self._descriptor is None:
            raise RuntimeError(f"{type(self).__name__}.init() has not been called")
        return self._descriptor

    def _fail(self, message: str) -> bool:
        self.last_error = message
        logger.error(message)
        return False

    def init_calendar(
        self,
        ctx: TaskContext,
        window: CalendarWindow,
        outer: TaskProgress,
    ) -> bool:
        """Create the calendar and write its events and reminders.

        Args:
            ctx: Task context
            window: Range to generate events for
            outer: Current outer progress, republished with every update

        Returns:
            True on success; False if anything failed or the run was cancelled

        Raises:
            PermissionDenied: If the store refuses access
            StoreUnavailable: If the store cannot be reached
        """
        self.last_error = None
        if ctx.cancelled:
            return False
        if self._descriptor is None:
            self.init(ctx.settings)

        settings = self.settings
        descriptor = self.descriptor()

        if ctx.store.has_calendar(self.name):
            return self._fail(str(CalendarAlreadyExists(self.name)))

        ctx.store.create_calendar(self.name, descriptor.title, descriptor.color)
        calendar_id = ctx.store.query_calendar_id(self.name)
        if calendar_id is None:
            return self._fail(f"Failed to resolve calendar id of {self.name}")

        try:
            rows = ctx.data_source.query(
                self.resource, window.start, window.end, self.projection
            )
        except DataSourceUnavailable as e:
            return self._fail(str(e))

        location_name = ctx.location.display_name() if ctx.location else ""
        settings.save_calendar_note(self.name, NOTE_LOCATION_NAME, location_name)

        message = f"{descriptor.title} ({location_name})" if location_name else descriptor.title
        total = len(rows)
        ctx.publish(outer, TaskProgress(0, total, message))

        flags = settings.calendar_flags(self.name, self.default_flags())
        strings = settings.calendar_strings(self.name, self.default_strings())
        template = settings.calendar_template(self.name, self.default_template())
        data = build_context(descriptor, ctx.location)

        success = True
        written = 0
        buffer: list[Event] = []

        for i, row in enumerate(rows, start=1):
            if ctx.cancelled:
                logger.info(f"Cancelled {self.name} after {i - 1} of {total} rows")
                break

            buffer.extend(self.build_events(row, flags, strings, template, data))
            while len(buffer) >= BATCH_SIZE:
                chunk = buffer[:BATCH_SIZE]
                del buffer[:BATCH_SIZE]
                written += len(chunk)
                success &= self._flush(ctx, calendar_id, chunk)

            if i % PROGRESS_INTERVAL == 0 or i == total:
                ctx.publish(outer, TaskProgress(i, total, message))

        if buffer:
            written += len(buffer)
            success &= self._flush(ctx, calendar_id, buffer)

        logger.info(f"Generated {written} events for {self.name}")

        if ctx.cancelled:
            return False

        reminders = ReminderManager(settings)
        if not reminders.create_reminders(
            ctx, self.name, calendar_id, outer, message, min_total=total
        ):
            success = False
            self.last_error = self.last_error or f"Failed to create reminders for {self.name}"

        return success and not ctx.cancelled

    def _flush(self, ctx: TaskContext, calendar_id: str, events: list[Event]) -> bool:
        try:
            ctx.store.create_calendar_events(calendar_id, events)
            return True
        except PermissionDenied:
            raise
        except CalendarError as e:
            self.last_error = f"Failed to write {len(events)} events to {self.name}: {e}"
            logger.error(self.last_error)
            return False


class PointEventCalendar(EventGenerator):
    """A calendar emitting one point event per enabled, non-empty column.

    Flag, label, and column `i` all describe the same event type.
    """

    def default_flags(self) -> EventFlags:
        return EventFlags(tuple(True for _ in self.projection))

    def flag_label(self, i: int) -> str:
        if 0 <= i < len(self.labels):
            return self.labels[i]
        return ""

    def build_events(
        self,
        row: SourceRow,
        flags: EventFlags,
        strings: EventStrings,
        template: EventTemplate,
        data: Mapping[str, str],
    ) -> list[Event]:
        events = []
        for i, value in enumerate(row):
            if i < len(flags) and flags[i] and value is not None:
                events.append(make_event(template, data, strings[i], value))
        return events


class RangeEventCalendar(EventGenerator):
    """A calendar emitting time ranges between adjacent columns.

    `ranges[i]` describes flag `i` as `(column, (both, start_only, end_only))`:
    the range runs from `row[column]` to `row[column + 1]`, and the three
    label indices pick the `%M` label when both bounds are present, or the
    label of the point event emitted when only the start or only the end is.
    """

    ranges: ClassVar[tuple[tuple[int, tuple[int, int, int]], ...]]
    flag_labels: ClassVar[tuple[int, ...]]

    def default_template(self) -> EventTemplate:
        return EventTemplate(title="%cal", description="%M @ %loc", location="%loc")

    def default_flags(self) -> EventFlags:
        return EventFlags(tuple(True for _ in self.ranges))

    def flag_label(self, i: int) -> str:
        if 0 <= i < len(self.flag_labels):
            return self.labels[self.flag_labels[i]]
        return ""

    def build_events(
        self,
        row: SourceRow,
        flags: EventFlags,
        strings: EventStrings,
        template: EventTemplate,
        data: Mapping[str, str],
    ) -> list[Event]:
        events = []
        for i, (column, (both, start_only, end_only)) in enumerate(self.ranges):
            if i >= len(flags) or not flags[i]:
                continue
            start, end = row[column], row[column + 1]
            if start is not None and end is not None:
                events.append(make_event(template, data, strings[both], start, end))
            elif start is not None:
                events.append(make_event(template, data, strings[start_only], start))
            elif end is not None:
                events.append(make_event(template, data, strings[end_only], end))
        return events
