"""Calendar registry: calendar name -> generator class."""

from __future__ import annotations

from sky_calendars.calendars.base import EventGenerator
from sky_calendars.calendars.daylight import DaylightCalendar
from sky_calendars.calendars.moon import MoonApsisCalendar, MoonPhaseCalendar, MoonriseCalendar
from sky_calendars.calendars.solstice import SolsticeCalendar
from sky_calendars.calendars.twilight import (
    AstronomicalTwilightCalendar,
    CivilTwilightCalendar,
    GoldenHourCalendar,
    NauticalTwilightCalendar,
)

CALENDARS: dict[str, type[EventGenerator]] = {
    cls.name: cls
    for cls in (
        DaylightCalendar,
        CivilTwilightCalendar,
        NauticalTwilightCalendar,
        AstronomicalTwilightCalendar,
        GoldenHourCalendar,
        MoonriseCalendar,
        MoonPhaseCalendar,
        MoonApsisCalendar,
        SolsticeCalendar,
    )
}


def calendar_names() -> list[str]:
    """All registered calendar names, sorted."""
    return sorted(CALENDARS)


def create_generator(name: str) -> EventGenerator | None:
    """Instantiate the generator of a calendar, or None for an unknown name."""
    cls = CALENDARS.get(name)
    return cls() if cls is not None else None
