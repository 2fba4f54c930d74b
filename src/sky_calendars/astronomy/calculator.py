"""Astronomical event tables using astropy.

This module computes, over an arbitrary time range:
- Sun events per local day (twilight boundaries, rise/set, golden hour, noon)
- Moonrise/moonset per local day
- Moon phases (new, first quarter, full, third quarter) per lunation
- Lunar apsides (apogee, perigee) per anomalistic month
- Equinoxes and solstices per year

## Method

Positions are sampled on a regular grid covering the whole range in one
vectorized astropy call. Altitude crossings are located by linear
interpolation between neighbouring samples; extrema (solar noon, apsides)
by fitting a parabola through the three samples around a turning point.
Phases and seasons are crossings of an unwrapped ecliptic longitude, so a
360° wrap never hides an event.

With the default steps the error is well under a minute for sun and moon
crossings, which is below the resolution anyone reads off a calendar.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, fields
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Literal
from zoneinfo import ZoneInfo

import numpy as np
from astropy import units as u
from astropy.coordinates import (
    AltAz,
    EarthLocation,
    GeocentricTrueEcliptic,
    get_body,
    get_sun,
)
from astropy.time import Time

from sky_calendars.models.location import Coordinates, Location

# Altitudes (degrees) of the apparent upper limb at rise/set, including refraction
SUNRISE_ALTITUDE = -0.833
MOONRISE_ALTITUDE = 0.125

CIVIL_ALTITUDE = -6.0
NAUTICAL_ALTITUDE = -12.0
ASTRONOMICAL_ALTITUDE = -18.0
GOLDEN_HOUR_ALTITUDE = 6.0

# Sun column -> (altitude, rising)
SUN_CROSSINGS = {
    "astro_rise": (ASTRONOMICAL_ALTITUDE, True),
    "nautical_rise": (NAUTICAL_ALTITUDE, True),
    "civil_rise": (CIVIL_ALTITUDE, True),
    "actual_rise": (SUNRISE_ALTITUDE, True),
    "golden_morning": (GOLDEN_HOUR_ALTITUDE, True),
    "golden_evening": (GOLDEN_HOUR_ALTITUDE, False),
    "actual_set": (SUNRISE_ALTITUDE, False),
    "civil_set": (CIVIL_ALTITUDE, False),
    "nautical_set": (NAUTICAL_ALTITUDE, False),
    "astro_set": (ASTRONOMICAL_ALTITUDE, False),
}

# Sampling steps
ALTITUDE_STEP = timedelta(minutes=10)
PHASE_STEP = timedelta(hours=6)
DISTANCE_STEP = timedelta(hours=3)
SEASON_STEP = timedelta(hours=12)


@dataclass
class SunPosition:
    """Sun position at a specific time and location."""

    altitude_deg: float  # Degrees above horizon (negative = below)
    azimuth_deg: float  # Degrees from north (0=N, 90=E, 180=S, 270=W)
    time: datetime
    is_day: bool  # Sun above horizon


@dataclass
class SunDay:
    """Sun events of one local day, in morning-to-evening order."""

    date: date
    astro_rise: datetime | None = None  # Sun rising past -18°
    nautical_rise: datetime | None = None  # -12°
    civil_rise: datetime | None = None  # -6°
    actual_rise: datetime | None = None  # Sunrise
    golden_morning: datetime | None = None  # +6°, end of morning golden hour
    noon: datetime | None = None  # Highest altitude
    golden_evening: datetime | None = None  # +6°, start of evening golden hour
    actual_set: datetime | None = None  # Sunset
    civil_set: datetime | None = None
    nautical_set: datetime | None = None
    astro_set: datetime | None = None


@dataclass
class MoonDay:
    """Moonrise and moonset of one local day."""

    date: date
    moonrise: datetime | None = None
    moonset: datetime | None = None


@dataclass
class LunarCycle:
    """Principal phases of one lunation, starting at new moon."""

    new: datetime | None = None
    first_quarter: datetime | None = None
    full: datetime | None = None
    third_quarter: datetime | None = None


@dataclass
class ApsisCycle:
    """One apogee and the perigee that follows it."""

    apogee: datetime | None = None
    perigee: datetime | None = None


@dataclass
class SeasonYear:
    """Equinoxes and solstices of one year."""

    year: int
    march_equinox: datetime | None = None
    june_solstice: datetime | None = None
    september_equinox: datetime | None = None
    december_solstice: datetime | None = None


def column_names(row_type: type) -> tuple[str, ...]:
    """Names of the timestamp columns of a row type."""
    return tuple(f.name for f in fields(row_type) if f.name not in ("date", "year"))


def _coords_to_earth_location(coords: Coordinates) -> EarthLocation:
    """Convert our Coordinates to astropy EarthLocation."""
    return EarthLocation(
        lat=coords.latitude * u.deg,
        lon=coords.longitude * u.deg,
        height=coords.elevation_m * u.m,
    )


def _datetime_to_astropy_time(dt: datetime) -> Time:
    """Convert datetime to astropy Time."""
    return Time(dt)


def _to_datetime(seconds: float) -> datetime:
    return datetime.fromtimestamp(float(seconds), tz=timezone.utc)


def _sample_grid(start: datetime, end: datetime, step: timedelta) -> tuple[np.ndarray, Time]:
    """Unix seconds and Time values covering [start - step, end + step]."""
    step_s = step.total_seconds()
    first = start.timestamp() - step_s
    count = int(math.ceil((end.timestamp() - first) / step_s)) + 2
    seconds = first + np.arange(count) * step_s
    return seconds, Time(seconds, format="unix")


def find_crossings(
    seconds: np.ndarray,
    values: np.ndarray,
    target: float,
    rising: bool,
) -> np.ndarray:
    """Find when a sampled series crosses a target value.

    Args:
        seconds: Sample times (unix seconds)
        values: Sampled values
        target: Value to look for
        rising: True for upward crossings, False for downward

    Returns:
        Interpolated crossing times (unix seconds)
    """
    shifted = values - target
    if rising:
        idx = np.nonzero((shifted[:-1] < 0) & (shifted[1:] >= 0))[0]
    else:
        idx = np.nonzero((shifted[:-1] > 0) & (shifted[1:] <= 0))[0]

    a = shifted[idx]
    b = shifted[idx + 1]
    fraction = a / (a - b)
    return seconds[idx] + fraction * (seconds[idx + 1] - seconds[idx])


def find_extrema(seconds: np.ndarray, values: np.ndarray, maximum: bool) -> np.ndarray:
    """Find local maxima (or minima) of a uniformly sampled series."""
    diff = np.diff(values)
    if maximum:
        idx = np.nonzero((diff[:-1] > 0) & (diff[1:] <= 0))[0] + 1
    else:
        idx = np.nonzero((diff[:-1] < 0) & (diff[1:] >= 0))[0] + 1

    y0, y1, y2 = values[idx - 1], values[idx], values[idx + 1]
    denom = y0 - 2 * y1 + y2
    with np.errstate(divide="ignore", invalid="ignore"):
        offset = np.where(denom != 0, 0.5 * (y0 - y2) / denom, 0.0)
    step = seconds[1] - seconds[0] if len(seconds) > 1 else 0.0
    return seconds[idx] + offset * step


def get_sun_position(coords: Coordinates, time: datetime) -> SunPosition:
    """Calculate sun position at a given time and location.

    Args:
        coords: Geographic coordinates
        time: Time to calculate position for (should be timezone-aware)

    Returns:
        SunPosition with altitude and azimuth in degrees
    """
    location = _coords_to_earth_location(coords)
    obs_time = _datetime_to_astropy_time(time)

    altaz_frame = AltAz(obstime=obs_time, location=location)
    sun_altaz = get_sun(obs_time).transform_to(altaz_frame)

    altitude = float(sun_altaz.alt.deg)
    return SunPosition(
        altitude_deg=altitude,
        azimuth_deg=float(sun_altaz.az.deg),
        time=time,
        is_day=altitude > 0,
    )


class AstronomyCalculator:
    """Calculator for astronomical event tables at a specific location.

    Example:
        ```python
        calc = AstronomyCalculator(Location.from_coordinates(40.7128, -74.0060))

        # Sun events for every day of 2024
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        days = calc.sun_days(start, start.replace(year=2025))

        # Moon phases over the same range
        cycles = calc.lunar_cycles(start, start.replace(year=2025))
        ```
    """

    def __init__(self, location: Location):
        """Initialize calculator for a specific location.

        Args:
            location: Observer location; its timezone decides day boundaries
        """
        self.location = location
        self.coordinates = location.coordinates
        self.tz: tzinfo = ZoneInfo(location.timezone) if location.timezone else timezone.utc
        self._earth_location = _coords_to_earth_location(self.coordinates)

    def _altitude_series(
        self, times: Time, body: Literal["sun", "moon"]
    ) -> np.ndarray:
        altaz_frame = AltAz(obstime=times, location=self._earth_location)
        if body == "sun":
            obj = get_sun(times)
        else:
            obj = get_body("moon", times, self._earth_location)
        return np.asarray(obj.transform_to(altaz_frame).alt.deg)

    def _local_days(self, start: datetime, end: datetime) -> list[date]:
        first = start.astimezone(self.tz).date()
        last = (end - timedelta(microseconds=1)).astimezone(self.tz).date()
        return [first + timedelta(days=i) for i in range((last - first).days + 1)]

    def _assign_daily(
        self,
        rows: dict[date, object],
        column: str,
        crossings: np.ndarray,
        start: datetime,
        end: datetime,
    ) -> None:
        """Store each crossing on the row of its local day (first one wins)."""
        for seconds in crossings:
            time = _to_datetime(seconds)
            if not start <= time < end:
                continue
            row = rows.get(time.astimezone(self.tz).date())
            if row is not None and getattr(row, column) is None:
                setattr(row, column, time)

    def sun_days(self, start: datetime, end: datetime) -> list[SunDay]:
        """Sun events for every local day touching [start, end)."""
        seconds, times = _sample_grid(start, end, ALTITUDE_STEP)
        altitude = self._altitude_series(times, "sun")

        days = self._local_days(start, end)
        rows: dict[date, object] = {day: SunDay(date=day) for day in days}
        for column, (target, rising) in SUN_CROSSINGS.items():
            crossings = find_crossings(seconds, altitude, target, rising)
            self._assign_daily(rows, column, crossings, start, end)

        self._assign_daily(rows, "noon", find_extrema(seconds, altitude, maximum=True), start, end)
        return list(rows.values())

    def moon_days(self, start: datetime, end: datetime) -> list[MoonDay]:
        """Moonrise and moonset for every local day touching [start, end)."""
        seconds, times = _sample_grid(start, end, ALTITUDE_STEP)
        altitude = self._altitude_series(times, "moon")

        days = self._local_days(start, end)
        rows: dict[date, object] = {day: MoonDay(date=day) for day in days}
        for column, rising in (("moonrise", True), ("moonset", False)):
            crossings = find_crossings(seconds, altitude, MOONRISE_ALTITUDE, rising)
            self._assign_daily(rows, column, crossings, start, end)
        return list(rows.values())

    def lunar_cycles(self, start: datetime, end: datetime) -> list[LunarCycle]:
        """Moon phases in [start, end), one row per lunation."""
        seconds, times = _sample_grid(start, end, PHASE_STEP)
        frame = GeocentricTrueEcliptic(equinox=times)
        moon = get_body("moon", times).transform_to(frame).lon.deg
        sun = get_sun(times).transform_to(frame).lon.deg
        elongation = np.degrees(np.unwrap(np.radians(np.asarray(moon - sun))))

        events = _quadrant_crossings(seconds, elongation, start, end)
        return _group_cycles(events, LunarCycle)

    def apsis_cycles(self, start: datetime, end: datetime) -> list[ApsisCycle]:
        """Lunar apogees and perigees in [start, end)."""
        seconds, times = _sample_grid(start, end, DISTANCE_STEP)
        distance = np.asarray(get_body("moon", times).distance.to(u.km).value)

        events = [(0, t) for t in find_extrema(seconds, distance, maximum=True)]
        events += [(1, t) for t in find_extrema(seconds, distance, maximum=False)]
        events = [
            (index, _to_datetime(t))
            for index, t in sorted(events, key=lambda e: e[1])
            if start <= _to_datetime(t) < end
        ]
        return _group_cycles(events, ApsisCycle)

    def season_years(self, start: datetime, end: datetime) -> list[SeasonYear]:
        """Equinoxes and solstices in [start, end), one row per year."""
        seconds, times = _sample_grid(start, end, SEASON_STEP)
        frame = GeocentricTrueEcliptic(equinox=times)
        longitude = get_sun(times).transform_to(frame).lon.deg
        unwrapped = np.degrees(np.unwrap(np.radians(np.asarray(longitude))))

        columns = column_names(SeasonYear)
        rows: dict[int, SeasonYear] = {}
        for index, time in _quadrant_crossings(seconds, unwrapped, start, end):
            local = time.astimezone(self.tz)
            row = rows.setdefault(local.year, SeasonYear(year=local.year))
            setattr(row, columns[index], time)
        return [rows[year] for year in sorted(rows)]


def _quadrant_crossings(
    seconds: np.ndarray,
    angle: np.ndarray,
    start: datetime,
    end: datetime,
) -> list[tuple[int, datetime]]:
    """Crossings of multiples of 90° by an increasing angle, as (quadrant, time)."""
    events: list[tuple[int, datetime]] = []
    if len(angle) < 2:
        return events
    for k in range(math.ceil(angle.min() / 90), math.floor(angle.max() / 90) + 1):
        for t in find_crossings(seconds, angle, k * 90.0, rising=True):
            time = _to_datetime(t)
            if start <= time < end:
                events.append((k % 4, time))
    events.sort(key=lambda e: e[1])
    return events


def _group_cycles(events: list[tuple[int, datetime]], row_type: type) -> list:
    """Split an ordered (column index, time) stream into rows.

    A new row starts whenever a column index does not follow the previous
    one, so a range opening mid-cycle yields a leading row with empty columns.
    """
    columns = column_names(row_type)
    rows = []
    row = None
    previous = len(columns)
    for index, time in events:
        if row is None or index <= previous:
            row = row_type()
            rows.append(row)
        setattr(row, columns[index], time)
        previous = index
    return rows
