"""Observer location models.

Every calendar of a run is computed for one observer position. Elevation
shifts rise and set times slightly, so it travels with the coordinates.
"""

from __future__ import annotations

import re
from typing import Self

from pydantic import BaseModel, Field

# "lat,lon" or "lat,lon,elevation_m"; each part may carry a sign
_NUMBER = r"[-+]?\d*\.?\d+"
COORDINATE_PATTERN = re.compile(
    rf"^(?P<lat>{_NUMBER})\s*,\s*(?P<lon>{_NUMBER})(?:\s*,\s*(?P<elev>{_NUMBER}))?$"
)


class Coordinates(BaseModel):
    """Observer position on the WGS84 ellipsoid.

    Southern latitudes and western longitudes are negative.
    """

    latitude: float = Field(..., ge=-90, le=90, description="Degrees north of the equator")
    longitude: float = Field(..., ge=-180, le=180, description="Degrees east of Greenwich")
    elevation_m: float = Field(default=0.0, description="Height above sea level in meters")

    @classmethod
    def from_string(cls, text: str) -> Self:
        """Parse `lat,lon[,elevation_m]`, e.g. `69.65,18.96` or `-33.87,151.21,58`."""
        parsed = COORDINATE_PATTERN.match(text.strip())
        if parsed is None:
            raise ValueError(
                f"Invalid coordinate format: '{text}'. Expected 'lat,lon' or 'lat,lon,elevation_m'"
            )
        elevation = parsed.group("elev")
        return cls(
            latitude=float(parsed.group("lat")),
            longitude=float(parsed.group("lon")),
            elevation_m=0.0 if elevation is None else float(elevation),
        )

    def __str__(self) -> str:
        return f"{self.latitude},{self.longitude}"


class Location(BaseModel):
    """The resolved observer location used for every calendar in a run.

    Its display name is saved as a note on each generated calendar, so a
    later run can tell a calendar was built for somewhere else.
    """

    coordinates: Coordinates
    name: str | None = Field(default=None, description="Place name shown in event text")
    timezone: str | None = Field(
        default=None,
        description="IANA zone deciding local day boundaries; UTC when unset",
    )

    @classmethod
    def from_coordinates(
        cls,
        latitude: float,
        longitude: float,
        elevation_m: float = 0.0,
        name: str | None = None,
        timezone: str | None = None,
    ) -> Self:
        coordinates = Coordinates(latitude=latitude, longitude=longitude, elevation_m=elevation_m)
        return cls(coordinates=coordinates, name=name, timezone=timezone)

    def display_name(self) -> str:
        """The place name, or the coordinates when the place is unnamed."""
        return self.name or str(self.coordinates)
