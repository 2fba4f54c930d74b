"""Tests for observer location models."""

import pytest
from pydantic import ValidationError

from sky_calendars.models.location import Coordinates, Location


class TestCoordinates:
    """Tests for observer coordinates."""

    def test_defaults_to_sea_level(self, sample_coordinates: Coordinates):
        assert sample_coordinates.elevation_m == 0.0

    @pytest.mark.parametrize(
        "latitude,longitude",
        [(90, 0), (-90, 0), (0, 180), (0, -180)],
    )
    def test_poles_and_date_line_accepted(self, latitude: float, longitude: float):
        coords = Coordinates(latitude=latitude, longitude=longitude)
        assert (coords.latitude, coords.longitude) == (latitude, longitude)

    @pytest.mark.parametrize(
        "latitude,longitude",
        [(91, 0), (-90.5, 0), (0, 181), (0, -200)],
    )
    def test_out_of_range_rejected(self, latitude: float, longitude: float):
        with pytest.raises(ValidationError):
            Coordinates(latitude=latitude, longitude=longitude)

    def test_parse_signed_pair(self):
        coords = Coordinates.from_string("+69.65,-18.96")
        assert coords.latitude == pytest.approx(69.65)
        assert coords.longitude == pytest.approx(-18.96)
        assert coords.elevation_m == 0.0

    def test_parse_with_elevation(self):
        """Sydney Observatory, 58 m."""
        coords = Coordinates.from_string(" -33.8688 , 151.2093 , 58 ")
        assert coords.latitude == pytest.approx(-33.8688)
        assert coords.elevation_m == pytest.approx(58)

    @pytest.mark.parametrize("text", ["north,east", "40.7128", "1,2,3,4", ""])
    def test_parse_rejects_malformed(self, text: str):
        with pytest.raises(ValueError, match="Invalid coordinate format"):
            Coordinates.from_string(text)

    def test_str(self):
        assert str(Coordinates(latitude=69.65, longitude=18.96, elevation_m=10)) == "69.65,18.96"


class TestLocation:
    """Tests for the resolved observer location."""

    def test_from_coordinates(self):
        loc = Location.from_coordinates(69.65, 18.96, elevation_m=10, timezone="Europe/Oslo")

        assert loc.coordinates.latitude == 69.65
        assert loc.coordinates.elevation_m == 10
        assert loc.timezone == "Europe/Oslo"
        assert loc.name is None

    def test_coordinates_required(self):
        with pytest.raises(ValidationError):
            Location(name="Nowhere")

    def test_display_name_prefers_name(self, sample_location: Location):
        assert sample_location.display_name() == "New York City"

    def test_display_name_falls_back_to_coordinates(self):
        loc = Location.from_coordinates(69.65, 18.96)
        assert loc.display_name() == "69.65,18.96"
