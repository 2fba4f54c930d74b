"""Calendar kinds and the event generator contract they share."""

from sky_calendars.calendars.base import (
    EventGenerator,
    PointEventCalendar,
    RangeEventCalendar,
    make_event,
)
from sky_calendars.calendars.registry import CALENDARS, calendar_names, create_generator

__all__ = [
    "EventGenerator",
    "PointEventCalendar",
    "RangeEventCalendar",
    "make_event",
    "CALENDARS",
    "calendar_names",
    "create_generator",
]
