"""Twilight and golden hour calendars.

Each of these reads four sun columns and emits up to two ranges per day:
columns 0-1 are the morning pair, columns 2-3 the evening pair. When a
day only has one bound of a pair (high latitudes around the solstices) a
point event is written instead.

## Labels

Twilight calendars:

| index | label                      | used for                      |
|-------|----------------------------|-------------------------------|
| 0     | twilight                   | lone bound                    |
| 1     | morning twilight           | morning range                 |
| 2     | evening twilight           | evening range                 |
| 3     | dawn                       |                               |
| 4     | dusk                       |                               |
| 5     | night of the lighter level | morning start without its end |

Golden hour: 0 morning, 1 evening, 2 golden hour (lone evening-side bound).
"""

from __future__ import annotations

from sky_calendars.astronomy.source import RESOURCE_SUN
from sky_calendars.calendars.base import RangeEventCalendar

TWILIGHT_RANGES = (
    (0, (1, 5, 0)),  # morning
    (2, (2, 0, 0)),  # evening
)


class CivilTwilightCalendar(RangeEventCalendar):
    """Civil twilight: sun between -6° and the horizon."""

    name = "civil"
    title = "Civil Twilight"
    summary = "Sun between 6° below the horizon and sunrise or sunset"
    resource = RESOURCE_SUN
    projection = ("civil_rise", "actual_rise", "actual_set", "civil_set")
    labels = (
        "Civil twilight",
        "Civil twilight (morning)",
        "Civil twilight (evening)",
        "Civil dawn",
        "Civil dusk",
        "White night",
    )
    ranges = TWILIGHT_RANGES
    flag_labels = (1, 2)


class NauticalTwilightCalendar(RangeEventCalendar):
    """Nautical twilight: sun between -12° and -6°."""

    name = "nautical"
    title = "Nautical Twilight"
    summary = "Sun between 12° and 6° below the horizon"
    resource = RESOURCE_SUN
    projection = ("nautical_rise", "civil_rise", "civil_set", "nautical_set")
    labels = (
        "Nautical twilight",
        "Nautical twilight (morning)",
        "Nautical twilight (evening)",
        "Nautical dawn",
        "Nautical dusk",
        "Civil night",
    )
    ranges = TWILIGHT_RANGES
    flag_labels = (1, 2)


class AstronomicalTwilightCalendar(RangeEventCalendar):
    """Astronomical twilight: sun between -18° and -12°."""

    name = "astronomical"
    title = "Astronomical Twilight"
    summary = "Sun between 18° and 12° below the horizon"
    resource = RESOURCE_SUN
    projection = ("astro_rise", "nautical_rise", "nautical_set", "astro_set")
    labels = (
        "Astronomical twilight",
        "Astronomical twilight (morning)",
        "Astronomical twilight (evening)",
        "Astronomical dawn",
        "Astronomical dusk",
        "Nautical night",
    )
    ranges = TWILIGHT_RANGES
    flag_labels = (1, 2)


class GoldenHourCalendar(RangeEventCalendar):
    """Golden hour: from civil twilight until the sun is 6° up, and back."""

    name = "golden"
    title = "Golden Hour"
    summary = "Sun between 6° below and 6° above the horizon"
    resource = RESOURCE_SUN
    projection = ("civil_rise", "golden_morning", "golden_evening", "civil_set")
    labels = (
        "Golden hour (morning)",
        "Golden hour (evening)",
        "Golden hour",
    )
    ranges = (
        (0, (0, 0, 2)),  # civil dawn -> 6° rising
        (2, (1, 1, 2)),  # 6° setting -> civil dusk
    )
    flag_labels = (0, 1)
