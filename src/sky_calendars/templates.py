"""Event text templates.

Each calendar renders an event's title, description, and location from three
pattern strings. Patterns contain tokens that are replaced by plain lookup in
a substitution context:

| Token      | Value                                  |
|------------|----------------------------------------|
| `%M`       | label of the emitted event type        |
| `%cal`     | calendar title                         |
| `%summary` | calendar summary                       |
| `%color`   | calendar color                         |
| `%loc`     | location name                          |
| `%lat`     | location latitude                      |
| `%lon`     | location longitude                     |
| `%lel`     | location elevation (meters)            |

Tokens missing from the context are left in the text as written.
"""

from __future__ import annotations

import re
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict

from sky_calendars.models.calendar import CalendarDescriptor
from sky_calendars.models.location import Location

PATTERN_EVENT = "%M"
PATTERN_CALENDAR = "%cal"
PATTERN_SUMMARY = "%summary"
PATTERN_COLOR = "%color"
PATTERN_LOCATION = "%loc"
PATTERN_LATITUDE = "%lat"
PATTERN_LONGITUDE = "%lon"
PATTERN_ELEVATION = "%lel"

ALL_PATTERNS = (
    PATTERN_EVENT,
    PATTERN_CALENDAR,
    PATTERN_SUMMARY,
    PATTERN_COLOR,
    PATTERN_LOCATION,
    PATTERN_LATITUDE,
    PATTERN_LONGITUDE,
    PATTERN_ELEVATION,
)


def substitute(pattern: str, data: Mapping[str, str]) -> str:
    """Replace every token of `data` found in `pattern`.

    Longer tokens are matched first, so `%loc` never shadows a hypothetical
    `%location` token.
    """
    if not pattern or not data:
        return pattern
    tokens = sorted(data, key=len, reverse=True)
    regex = re.compile("|".join(re.escape(token) for token in tokens))
    return regex.sub(lambda match: data[match.group(0)], pattern)


def calendar_context(descriptor: CalendarDescriptor) -> dict[str, str]:
    """Tokens derived from a calendar."""
    return {
        PATTERN_CALENDAR: descriptor.title,
        PATTERN_SUMMARY: descriptor.summary,
        PATTERN_COLOR: descriptor.color,
    }


def location_context(location: Location | None) -> dict[str, str]:
    """Tokens derived from the resolved location (empty when unresolved)."""
    if location is None:
        return {}
    coords = location.coordinates
    return {
        PATTERN_LOCATION: location.display_name(),
        PATTERN_LATITUDE: f"{coords.latitude:g}",
        PATTERN_LONGITUDE: f"{coords.longitude:g}",
        PATTERN_ELEVATION: f"{coords.elevation_m:g}",
    }


def build_context(
    descriptor: CalendarDescriptor,
    location: Location | None,
) -> dict[str, str]:
    """Merge calendar and location tokens; `%M` is added per event."""
    data = calendar_context(descriptor)
    data.update(location_context(location))
    return data


class EventTemplate(BaseModel):
    """Title/description/location patterns of a calendar."""

    model_config = ConfigDict(frozen=True)

    title: str
    description: str = ""
    location: str = ""

    def get_title(self, data: Mapping[str, str]) -> str:
        return substitute(self.title, data)

    def get_description(self, data: Mapping[str, str]) -> str:
        return substitute(self.description, data)

    def get_location(self, data: Mapping[str, str]) -> str:
        return substitute(self.location, data)

    def render(self, data: Mapping[str, str]) -> tuple[str, str, str]:
        """Resolve all three patterns against one context."""
        return self.get_title(data), self.get_description(data), self.get_location(data)
