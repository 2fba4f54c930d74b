"""Moon calendars: moonrise/moonset, phases, and apsides."""

from __future__ import annotations

from sky_calendars.astronomy.source import (
    RESOURCE_MOON,
    RESOURCE_MOON_APSIS,
    RESOURCE_MOON_PHASE,
)
from sky_calendars.calendars.base import PointEventCalendar
from sky_calendars.templates import EventTemplate


class MoonriseCalendar(PointEventCalendar):
    """One event per moonrise and moonset."""

    name = "moonrise"
    title = "Moonrise"
    summary = "Moonrise and moonset"
    resource = RESOURCE_MOON
    projection = ("moonrise", "moonset")
    labels = ("Moonrise", "Moonset")


class MoonPhaseCalendar(PointEventCalendar):
    """The four principal phases of every lunation."""

    name = "moonphase"
    title = "Moon Phases"
    summary = "New moon, first quarter, full moon, and third quarter"
    resource = RESOURCE_MOON_PHASE
    projection = ("new", "first_quarter", "full", "third_quarter")
    labels = ("New Moon", "First Quarter", "Full Moon", "Third Quarter")

    def default_template(self) -> EventTemplate:
        return EventTemplate(title="%M", description="%M", location="")


class MoonApsisCalendar(PointEventCalendar):
    """Lunar apogee and perigee."""

    name = "moonapsis"
    title = "Moon Apsis"
    summary = "Lunar apogee and perigee"
    resource = RESOURCE_MOON_APSIS
    projection = ("apogee", "perigee")
    labels = ("Lunar Apogee", "Lunar Perigee")

    def default_template(self) -> EventTemplate:
        return EventTemplate(title="%M", description="%M", location="")
