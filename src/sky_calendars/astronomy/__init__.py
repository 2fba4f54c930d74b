"""Astronomical calculations and the data source built on them."""

from sky_calendars.astronomy.calculator import (
    AstronomyCalculator,
    find_crossings,
    find_extrema,
    get_sun_position,
)
from sky_calendars.astronomy.source import (
    RESOURCE_COLUMNS,
    RESOURCE_MOON,
    RESOURCE_MOON_APSIS,
    RESOURCE_MOON_PHASE,
    RESOURCE_SEASON,
    RESOURCE_SUN,
    AstronomyDataSource,
    DataSource,
)

__all__ = [
    "AstronomyCalculator",
    "find_crossings",
    "find_extrema",
    "get_sun_position",
    "RESOURCE_COLUMNS",
    "RESOURCE_MOON",
    "RESOURCE_MOON_APSIS",
    "RESOURCE_MOON_PHASE",
    "RESOURCE_SEASON",
    "RESOURCE_SUN",
    "AstronomyDataSource",
    "DataSource",
]
