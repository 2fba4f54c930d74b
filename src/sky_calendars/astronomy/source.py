"""Astronomical data sources.

A data source answers tabular queries: a resource name, a time range, and a
projection (the columns wanted, in order). Each returned row holds one
nullable timestamp per projected column.

## Resources

| Resource    | Row per            | Columns |
|-------------|--------------------|---------|
| `sun`       | local day          | astro_rise, nautical_rise, civil_rise, actual_rise, golden_morning, noon, golden_evening, actual_set, civil_set, nautical_set, astro_set |
| `moon`      | local day          | moonrise, moonset |
| `moonphase` | lunation           | new, first_quarter, full, third_quarter |
| `moonapsis` | anomalistic month  | apogee, perigee |
| `season`    | year               | march_equinox, june_solstice, september_equinox, december_solstice |
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from datetime import datetime

from sky_calendars.astronomy.calculator import (
    ApsisCycle,
    AstronomyCalculator,
    LunarCycle,
    MoonDay,
    SeasonYear,
    SunDay,
    column_names,
)
from sky_calendars.errors import DataSourceUnavailable
from sky_calendars.models.calendar import SourceRow
from sky_calendars.models.location import Location

logger = logging.getLogger(__name__)

RESOURCE_SUN = "sun"
RESOURCE_MOON = "moon"
RESOURCE_MOON_PHASE = "moonphase"
RESOURCE_MOON_APSIS = "moonapsis"
RESOURCE_SEASON = "season"

RESOURCE_COLUMNS: dict[str, tuple[str, ...]] = {
    RESOURCE_SUN: column_names(SunDay),
    RESOURCE_MOON: column_names(MoonDay),
    RESOURCE_MOON_PHASE: column_names(LunarCycle),
    RESOURCE_MOON_APSIS: column_names(ApsisCycle),
    RESOURCE_SEASON: column_names(SeasonYear),
}


class DataSource(ABC):
    """Abstract base class for astronomical data sources."""

    @abstractmethod
    def query(
        self,
        resource: str,
        start: datetime,
        end: datetime,
        projection: Sequence[str],
    ) -> list[SourceRow]:
        """Query rows of a resource in [start, end).

        Args:
            resource: Resource name (see module docstring)
            start: Start of the range (inclusive)
            end: End of the range (exclusive)
            projection: Columns to return, in order

        Returns:
            Rows in chronological order

        Raises:
            DataSourceUnavailable: If the resource or a column cannot be resolved
        """

    @abstractmethod
    def query_location(self) -> Location | None:
        """Return the observer location the data is computed for."""


def project(row: object, columns: Sequence[str]) -> SourceRow:
    """Pick the requested columns of a calculator row, in order."""
    return tuple(getattr(row, column) for column in columns)


class AstronomyDataSource(DataSource):
    """Data source computing events with astropy for a fixed location.

    Example:
        ```python
        source = AstronomyDataSource(Location.from_coordinates(52.52, 13.405))
        rows = source.query("sun", start, end, ["actual_rise", "actual_set"])
        ```
    """

    def __init__(self, location: Location | None):
        """Initialize the data source.

        Args:
            location: Observer location; without one every query fails
        """
        self.location = location
        self._tables: dict[str, Callable[[datetime, datetime], list]] = {}
        # computed tables keyed by (resource, start, end)
        self._cache: dict[tuple[str, datetime, datetime], list] = {}
        if location is not None:
            calculator = AstronomyCalculator(location)
            self._tables = {
                RESOURCE_SUN: calculator.sun_days,
                RESOURCE_MOON: calculator.moon_days,
                RESOURCE_MOON_PHASE: calculator.lunar_cycles,
                RESOURCE_MOON_APSIS: calculator.apsis_cycles,
                RESOURCE_SEASON: calculator.season_years,
            }

    def query(
        self,
        resource: str,
        start: datetime,
        end: datetime,
        projection: Sequence[str],
    ) -> list[SourceRow]:
        if resource not in RESOURCE_COLUMNS:
            raise DataSourceUnavailable(resource)
        table = self._tables.get(resource)
        if table is None:
            raise DataSourceUnavailable(
                resource, f"Failed to resolve resource! {resource} (no location)"
            )

        unknown = [c for c in projection if c not in RESOURCE_COLUMNS[resource]]
        if unknown:
            raise DataSourceUnavailable(
                resource, f"Failed to resolve resource! {resource} (unknown columns: {unknown})"
            )

        key = (resource, start, end)
        rows = self._cache.get(key)
        if rows is None:
            logger.debug(f"Computing {resource} for {start.isoformat()} - {end.isoformat()}")
            rows = self._cache[key] = table(start, end)
            logger.info(
                f"Computed {len(rows)} {resource} rows for {self.location.display_name()}"
            )
        return [project(row, projection) for row in rows]

    def query_location(self) -> Location | None:
        return self.location
