"""Application configuration.

Configuration is loaded from environment variables (prefix `SKY_`) or a
`.env` file using pydantic-settings. Per-calendar preferences (colors,
reminders, templates, window) live in the preference store instead.

## Environment Variables

- SKY_DATABASE_URL: SQLAlchemy URL of the calendar and preference database
  (default: sqlite:///sky_calendars.db)
- SKY_STORE: Where calendars are written, `sql` or `google` (default: sql)
- SKY_GOOGLE_TOKEN_FILE: Authorized-user token file for the Google store
- SKY_LATITUDE / SKY_LONGITUDE: Observer coordinates (required to generate)
- SKY_ELEVATION_M: Observer elevation in meters (default: 0)
- SKY_LOCATION_NAME: Friendly location name used in event text
- SKY_TIMEZONE: IANA timezone deciding day boundaries (default: UTC)
- SKY_LOG_LEVEL: Logging level (default: INFO)
- SKY_DEBUG: Enable debug mode (default: false)

## Example .env file

```
SKY_LATITUDE=52.52
SKY_LONGITUDE=13.405
SKY_LOCATION_NAME=Berlin
SKY_TIMEZONE=Europe/Berlin
```
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from sky_calendars.models.location import Location


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SKY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Sky Calendars"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    # Database
    database_url: str = Field(
        default="sqlite:///sky_calendars.db",
        description="SQLAlchemy URL for calendars and preferences",
    )
    database_echo: bool = False  # Log SQL queries

    # Calendar store
    store: Literal["sql", "google"] = "sql"
    google_token_file: str | None = Field(
        default=None,
        description="Authorized-user OAuth token file for the Google store",
    )

    # Observer location
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    elevation_m: float = 0.0
    location_name: str | None = None
    timezone: str | None = Field(
        default=None,
        description="IANA timezone identifier (e.g., 'Europe/Berlin')",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Accept log levels in any case."""
        return v.upper() if isinstance(v, str) else v

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str | None) -> str | None:
        """Ensure the timezone is a known IANA identifier."""
        if v is None:
            return v
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v}") from e
        return v

    @property
    def location(self) -> Location | None:
        """The configured observer location, if coordinates are set."""
        if self.latitude is None or self.longitude is None:
            return None
        return Location.from_coordinates(
            latitude=self.latitude,
            longitude=self.longitude,
            elevation_m=self.elevation_m,
            name=self.location_name,
            timezone=self.timezone,
        )

    @property
    def google_store_configured(self) -> bool:
        """Check if the Google store can be used."""
        return bool(self.google_token_file)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Settings are loaded once and cached. To reload, clear the cache:
    ```python
    get_settings.cache_clear()
    ```
    """
    return Settings()
