"""Daylight calendar: sunrise, solar noon, and sunset."""

from __future__ import annotations

from sky_calendars.astronomy.source import RESOURCE_SUN
from sky_calendars.calendars.base import PointEventCalendar


class DaylightCalendar(PointEventCalendar):
    """One event per sunrise, solar noon, and sunset."""

    name = "daylight"
    title = "Daylight"
    summary = "Sunrise, solar noon, and sunset"
    resource = RESOURCE_SUN
    projection = ("actual_rise", "noon", "actual_set")
    labels = ("Sunrise", "Solar noon", "Sunset")
