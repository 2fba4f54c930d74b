"""Domain models for astronomical calendars."""

from sky_calendars.models.location import Coordinates, Location
from sky_calendars.models.calendar import (
    CalendarDescriptor,
    CalendarWindow,
    Event,
    EventFlags,
    EventStrings,
    Reminder,
    ReminderMethod,
    SourceRow,
    TaskAction,
    TaskItem,
)

__all__ = [
    # Location
    "Coordinates",
    "Location",
    # Calendar
    "CalendarDescriptor",
    "CalendarWindow",
    "Event",
    "EventFlags",
    "EventStrings",
    "Reminder",
    "ReminderMethod",
    "SourceRow",
    # Task
    "TaskAction",
    "TaskItem",
]
