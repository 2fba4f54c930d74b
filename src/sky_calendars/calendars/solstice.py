"""Solstice calendar: equinoxes and solstices."""

from __future__ import annotations

from sky_calendars.astronomy.source import RESOURCE_SEASON
from sky_calendars.calendars.base import PointEventCalendar
from sky_calendars.templates import EventTemplate


class SolsticeCalendar(PointEventCalendar):
    """The two equinoxes and two solstices of every year."""

    name = "solstice"
    title = "Solstices and Equinoxes"
    summary = "Start of each astronomical season"
    resource = RESOURCE_SEASON
    projection = ("march_equinox", "june_solstice", "september_equinox", "december_solstice")
    labels = ("March Equinox", "June Solstice", "September Equinox", "December Solstice")

    def default_template(self) -> EventTemplate:
        return EventTemplate(title="%M", description="%M", location="")
