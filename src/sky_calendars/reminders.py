"""Per-calendar reminders.

Reminders of a calendar form a dense, 0-based list sized by the calendar's
reminder count. Slots are only ever appended (`add`) or removed from the end
(`remove_last`), so indices `[0, count)` are always populated.

## Defaults

When nothing is stored for a slot:

| index | minutes             | method   |
|-------|---------------------|----------|
| 0     | 0 (at the event)    | DEFAULT  |
| 1     | 5 (five before)     | DEFAULT  |
| 2+    |                     | DISABLED |

The count itself defaults to 1.

## Store sync

`create_reminders` attaches every enabled slot to every event of the
calendar; `remove_reminders` clears them again. Both write in chunks of at
most `BATCH_SIZE`, publish progress every `PROGRESS_INTERVAL` events, and
stop when the run is cancelled.
"""

from __future__ import annotations

import logging

from sky_calendars.context import BATCH_SIZE, PROGRESS_INTERVAL, TaskContext, TaskProgress
from sky_calendars.errors import CalendarError, PermissionDenied
from sky_calendars.models.calendar import Reminder, ReminderMethod
from sky_calendars.preferences import CalendarSettings
from sky_calendars.store.base import ReminderEntry

logger = logging.getLogger(__name__)


class ReminderManager:
    """Maintains reminder preferences and writes reminders to the store.

    Example:
        ```python
        reminders = ReminderManager(settings)
        reminders.add("daylight", minutes=15, method=ReminderMethod.ALERT)
        reminders.count("daylight")  # 2
        reminders.remove_last("daylight")
        ```
    """

    def __init__(self, settings: CalendarSettings):
        self.settings = settings

    # Preferences

    def count(self, calendar: str) -> int:
        return max(0, self.settings.reminder_count(calendar))

    def minutes(self, calendar: str, index: int) -> int:
        return self.settings.reminder_minutes(calendar, index)

    def method(self, calendar: str, index: int) -> ReminderMethod:
        return self.settings.reminder_method(calendar, index)

    def reminder(self, calendar: str, index: int) -> Reminder:
        return Reminder(
            calendar=calendar,
            index=index,
            minutes=self.minutes(calendar, index),
            method=self.method(calendar, index),
        )

    def reminders(self, calendar: str) -> list[Reminder]:
        """All reminder slots of a calendar, enabled or not."""
        return [self.reminder(calendar, i) for i in range(self.count(calendar))]

    def active_reminders(self, calendar: str) -> list[Reminder]:
        return [r for r in self.reminders(calendar) if r.enabled]

    def add(self, calendar: str, minutes: int, method: ReminderMethod) -> Reminder:
        """Append a reminder slot."""
        index = self.count(calendar)
        self.settings.set_reminder(calendar, index, minutes, method)
        self.settings.set_reminder_count(calendar, index + 1)
        logger.debug(f"Added reminder {index} to {calendar}: {minutes}m {method.name}")
        return Reminder(calendar=calendar, index=index, minutes=minutes, method=method)

    def update(self, calendar: str, index: int, minutes: int, method: ReminderMethod) -> Reminder:
        """Change an existing slot in place."""
        if not 0 <= index < self.count(calendar):
            raise IndexError(f"{calendar} has no reminder {index}")
        self.settings.set_reminder(calendar, index, minutes, method)
        return Reminder(calendar=calendar, index=index, minutes=minutes, method=method)

    def remove_last(self, calendar: str) -> bool:
        """Remove the highest slot. Returns False if there was none."""
        count = self.count(calendar)
        if count <= 0:
            return False
        self.settings.remove_reminder(calendar, count - 1)
        self.settings.set_reminder_count(calendar, count - 1)
        return True

    def remove_all(self, calendar: str) -> None:
        while self.remove_last(calendar):
            pass

    # Store

    def create_reminders(
        self,
        ctx: TaskContext,
        calendar: str,
        calendar_id: str,
        outer: TaskProgress,
        message: str = "",
        min_total: int = 0,
    ) -> bool:
        """Attach the calendar's enabled reminders to all of its events.

        Args:
            ctx: Task context
            calendar: Calendar name (selects the reminder preferences)
            calendar_id: Store id of the calendar
            outer: Current outer progress, republished with every update
            message: Progress message
            min_total: Inner total already reported for this calendar; progress
                keeps that total and is scaled to it when there are fewer
                reminders to write

        Returns:
            True if every chunk was written and the run was not cancelled
        """
        reminders = self.active_reminders(calendar)
        if not reminders:
            logger.debug(f"No active reminders for {calendar}")
            return not ctx.cancelled

        events = ctx.store.query_calendar_events(calendar_id)
        count = len(reminders) * len(events)
        total = max(count, min_total)
        ctx.publish(outer, TaskProgress(0 if count else total, total, message))

        success = True
        written = 0
        buffer: list[ReminderEntry] = []

        for i, event in enumerate(events, start=1):
            if ctx.cancelled:
                break

            for reminder in reminders:
                buffer.append(
                    ReminderEntry(
                        calendar_id=calendar_id,
                        event_id=event.event_id,
                        minutes=reminder.minutes,
                        method=reminder.method,
                    )
                )
                written += 1
                if len(buffer) >= BATCH_SIZE:
                    success &= self._flush(ctx, calendar, buffer)

            if i % PROGRESS_INTERVAL == 0 or i == len(events):
                ctx.publish(outer, TaskProgress(written * total // count, total, message))

        if buffer:
            success &= self._flush(ctx, calendar, buffer)

        logger.info(f"Created {written} reminders for {calendar}")
        return success and not ctx.cancelled

    def _flush(self, ctx: TaskContext, calendar: str, buffer: list[ReminderEntry]) -> bool:
        try:
            ctx.store.create_calendar_reminders(buffer)
            return True
        except PermissionDenied:
            raise
        except CalendarError as e:
            logger.error(f"Failed to write {len(buffer)} reminders for {calendar}: {e}")
            return False
        finally:
            buffer.clear()

    def remove_reminders(
        self,
        ctx: TaskContext,
        calendar: str,
        outer: TaskProgress,
        message: str = "",
    ) -> bool:
        """Remove every reminder attached to the calendar's events.

        Event ids are taken from the store's event listing in chunks of at
        most `BATCH_SIZE` events.

        Returns:
            True if every chunk was removed (or the calendar does not exist)
        """
        calendar_id = ctx.store.query_calendar_id(calendar)
        if calendar_id is None:
            return True

        events = ctx.store.query_calendar_events(calendar_id)
        total = len(events)
        ctx.publish(outer, TaskProgress(0, total, message))

        success = True
        removed = 0
        for offset in range(0, total, BATCH_SIZE):
            if ctx.cancelled:
                return False

            chunk = [e.event_id for e in events[offset:offset + BATCH_SIZE]]
            try:
                removed += ctx.store.remove_reminders(calendar_id, chunk)
            except PermissionDenied:
                raise
            except CalendarError as e:
                logger.error(f"Failed to remove reminders of {len(chunk)} {calendar} events: {e}")
                success = False

            ctx.publish(outer, TaskProgress(offset + len(chunk), total, message))

        logger.info(f"Removed {removed} reminders from {calendar}")
        return success
