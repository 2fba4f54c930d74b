"""Tests for astronomical calculations.

Ranges are kept short (days to weeks) so astropy stays fast; one season
test covers a full year on a coarse grid.
"""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import patch
from zoneinfo import ZoneInfo

import numpy as np
import pytest

from sky_calendars.astronomy.calculator import (
    SUNRISE_ALTITUDE,
    AstronomyCalculator,
    find_crossings,
    find_extrema,
    get_sun_position,
)
from sky_calendars.astronomy.source import RESOURCE_COLUMNS, AstronomyDataSource
from sky_calendars.errors import DataSourceUnavailable
from sky_calendars.models.location import Coordinates, Location

NEW_YORK = ZoneInfo("America/New_York")


def minutes_apart(a: datetime, b: datetime) -> float:
    return abs((a - b).total_seconds()) / 60


@pytest.fixture
def calculator(sample_location: Location) -> AstronomyCalculator:
    return AstronomyCalculator(sample_location)


class TestSeriesHelpers:
    """Tests for crossing and extremum search on sampled series."""

    def test_rising_and_falling_crossings(self):
        seconds = np.arange(0.0, 10.0)
        values = np.array([-2, -1, 1, 3, 1, -1, -3, -1, 1, 2], dtype=float)

        np.testing.assert_allclose(find_crossings(seconds, values, 0, rising=True), [1.5, 7.5])
        np.testing.assert_allclose(find_crossings(seconds, values, 0, rising=False), [4.5])

    def test_crossing_target(self):
        seconds = np.array([0.0, 10.0])
        values = np.array([0.0, 10.0])
        np.testing.assert_allclose(find_crossings(seconds, values, 2.5, rising=True), [2.5])

    def test_no_crossing(self):
        seconds = np.arange(0.0, 5.0)
        assert len(find_crossings(seconds, np.ones(5), 0, rising=True)) == 0

    def test_parabolic_extremum(self):
        seconds = np.arange(0.0, 11.0)
        values = -((seconds - 4.3) ** 2)

        np.testing.assert_allclose(find_extrema(seconds, values, maximum=True), [4.3])
        assert len(find_extrema(seconds, values, maximum=False)) == 0


class TestSunPosition:
    """Tests for sun position calculations."""

    def test_sun_position_midday(self, sample_coordinates: Coordinates):
        """Test sun position at midday."""
        midday = datetime(2024, 6, 21, 17, 0, tzinfo=timezone.utc)  # ~1pm EDT
        position = get_sun_position(sample_coordinates, midday)

        assert position.altitude_deg > 50
        assert position.is_day is True

    def test_sun_position_midnight(self, sample_coordinates: Coordinates):
        """Test sun position at midnight."""
        midnight = datetime(2024, 6, 21, 4, 0, tzinfo=timezone.utc)  # ~midnight EDT
        position = get_sun_position(sample_coordinates, midnight)

        assert position.altitude_deg < 0
        assert position.is_day is False


class TestSunDays:
    """Tests for daily sun events."""

    @pytest.fixture
    def summer_day(self, calculator: AstronomyCalculator):
        start = datetime(2024, 6, 21, tzinfo=NEW_YORK)
        days = calculator.sun_days(start, start + timedelta(days=1))
        assert len(days) == 1
        return days[0]

    def test_one_row_per_local_day(self, calculator: AstronomyCalculator):
        start = datetime(2024, 6, 20, tzinfo=NEW_YORK)
        days = calculator.sun_days(start, start + timedelta(days=3))

        assert [d.date.day for d in days] == [20, 21, 22]

    def test_all_events_present_in_summer(self, summer_day):
        """At 40°N every twilight boundary exists around the solstice."""
        assert summer_day.astro_rise is not None
        assert summer_day.actual_rise is not None
        assert summer_day.noon is not None
        assert summer_day.actual_set is not None
        assert summer_day.astro_set is not None

    def test_morning_to_evening_order(self, summer_day):
        times = [
            summer_day.astro_rise,
            summer_day.nautical_rise,
            summer_day.civil_rise,
            summer_day.actual_rise,
            summer_day.golden_morning,
            summer_day.noon,
            summer_day.golden_evening,
            summer_day.actual_set,
            summer_day.civil_set,
            summer_day.nautical_set,
            summer_day.astro_set,
        ]
        assert times == sorted(times)

    def test_sunrise_altitude(self, summer_day, sample_coordinates: Coordinates):
        position = get_sun_position(sample_coordinates, summer_day.actual_rise)
        assert abs(position.altitude_deg - SUNRISE_ALTITUDE) < 0.5

    def test_sunrise_local_time(self, summer_day):
        """NYC sunrise on the solstice is around 05:25 EDT."""
        local = summer_day.actual_rise.astimezone(NEW_YORK)
        assert (local.hour, local.minute // 10) in ((5, 1), (5, 2), (5, 3))

    def test_polar_day_has_no_sunset(self):
        tromso = Location.from_coordinates(69.65, 18.96, timezone="Europe/Oslo")
        start = datetime(2024, 6, 21, tzinfo=ZoneInfo("Europe/Oslo"))

        (day,) = AstronomyCalculator(tromso).sun_days(start, start + timedelta(days=1))

        assert day.actual_rise is None
        assert day.actual_set is None
        assert day.noon is not None


class TestMoon:
    """Tests for moon events."""

    def test_moon_days(self, calculator: AstronomyCalculator):
        start = datetime(2024, 6, 1, tzinfo=NEW_YORK)
        days = calculator.moon_days(start, start + timedelta(days=7))

        assert len(days) == 7
        rises = [d.moonrise for d in days if d.moonrise is not None]
        # the moon rises about 50 minutes later each day, so most days have one
        assert len(rises) >= 6

    def test_lunar_cycles(self, calculator: AstronomyCalculator):
        start = datetime(2024, 6, 1, tzinfo=timezone.utc)
        cycles = calculator.lunar_cycles(start, datetime(2024, 7, 1, tzinfo=timezone.utc))

        new_moons = [c.new for c in cycles if c.new is not None]
        full_moons = [c.full for c in cycles if c.full is not None]
        assert minutes_apart(new_moons[0], datetime(2024, 6, 6, 12, 38, tzinfo=timezone.utc)) < 60
        assert minutes_apart(full_moons[0], datetime(2024, 6, 22, 1, 8, tzinfo=timezone.utc)) < 60

    def test_lunar_cycle_phase_order(self, calculator: AstronomyCalculator):
        start = datetime(2024, 6, 1, tzinfo=timezone.utc)
        cycles = calculator.lunar_cycles(start, datetime(2024, 9, 1, tzinfo=timezone.utc))

        for cycle in cycles:
            phases = [cycle.new, cycle.first_quarter, cycle.full, cycle.third_quarter]
            present = [p for p in phases if p is not None]
            assert present == sorted(present)

    def test_apsis_cycles_alternate(self, calculator: AstronomyCalculator):
        start = datetime(2024, 6, 1, tzinfo=timezone.utc)
        cycles = calculator.apsis_cycles(start, datetime(2024, 8, 1, tzinfo=timezone.utc))

        apogees = [c.apogee for c in cycles if c.apogee is not None]
        perigees = [c.perigee for c in cycles if c.perigee is not None]
        assert len(apogees) >= 2
        assert len(perigees) >= 2
        # anomalistic month: ~27.55 days
        spacing = (apogees[1] - apogees[0]).total_seconds() / 86400
        assert 24 < spacing < 31


class TestSeasons:
    """Tests for equinoxes and solstices."""

    def test_2024(self, calculator: AstronomyCalculator):
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        (year,) = calculator.season_years(start, datetime(2025, 1, 1, tzinfo=timezone.utc))

        assert year.year == 2024
        march = datetime(2024, 3, 20, 3, 6, tzinfo=timezone.utc)
        june = datetime(2024, 6, 20, 20, 51, tzinfo=timezone.utc)
        assert minutes_apart(year.march_equinox, march) < 60
        assert minutes_apart(year.june_solstice, june) < 60
        assert year.september_equinox < year.december_solstice


class TestAstronomyDataSource:
    """Tests for the tabular query interface."""

    def test_projection_order(self, sample_location: Location):
        source = AstronomyDataSource(sample_location)
        start = datetime(2024, 6, 21, tzinfo=NEW_YORK)

        rows = source.query("sun", start, start + timedelta(days=1), ["actual_set", "actual_rise"])

        (row,) = rows
        assert len(row) == 2
        assert row[1] < row[0]

    def test_unknown_resource(self, sample_location: Location):
        source = AstronomyDataSource(sample_location)
        start = datetime(2024, 6, 21, tzinfo=timezone.utc)

        with pytest.raises(DataSourceUnavailable, match="comets"):
            source.query("comets", start, start + timedelta(days=1), ["x"])

    def test_unknown_column(self, sample_location: Location):
        source = AstronomyDataSource(sample_location)
        start = datetime(2024, 6, 21, tzinfo=timezone.utc)

        with pytest.raises(DataSourceUnavailable):
            source.query("sun", start, start + timedelta(days=1), ["sunrise"])

    def test_no_location(self):
        source = AstronomyDataSource(None)
        start = datetime(2024, 6, 21, tzinfo=timezone.utc)

        assert source.query_location() is None
        with pytest.raises(DataSourceUnavailable):
            source.query("sun", start, start + timedelta(days=1), ["noon"])

    def test_resource_columns(self):
        assert RESOURCE_COLUMNS["moonphase"] == ("new", "first_quarter", "full", "third_quarter")
        assert "date" not in RESOURCE_COLUMNS["sun"]

    def test_table_reused_across_projections(self, sample_location: Location):
        start = datetime(2024, 6, 21, tzinfo=timezone.utc)
        end = start + timedelta(days=1)
        day = SimpleNamespace(actual_rise=start, actual_set=end, noon=None)

        with patch.object(AstronomyCalculator, "sun_days", return_value=[day]) as sun_days:
            source = AstronomyDataSource(sample_location)
            assert source.query("sun", start, end, ["actual_rise"]) == [(start,)]
            assert source.query("sun", start, end, ["actual_set", "noon"]) == [(end, None)]
            source.query("sun", start, end + timedelta(days=1), ["noon"])

        assert sun_days.call_count == 2
