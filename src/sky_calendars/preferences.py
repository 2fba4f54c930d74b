"""Preference storage and the typed calendar settings built on it.

## Layers

- `PreferenceStore`: untyped key/value storage (`get`, `set`, `remove`).
  `MemoryPreferenceStore` keeps values in a dict, `SqlPreferenceStore` in a
  SQLAlchemy table next to the calendar store.
- `CalendarSettings`: typed accessors with defaults. One instance is created
  per task run and passed to every component that reads preferences.

## Keys

```
calendars_enabled
calendars_window0                      past offset, ms
calendars_window1                      future offset, ms
calendars_firstlaunch
calendars_lastsync                     ISO timestamp
calendar_enabled_<name>
calendar_color_<name>
calendar_reminder_count_<name>
calendar_reminder_minutes_<i>_<name>
calendar_reminder_method_<i>_<name>
calendar_flags_<name>                  list[bool]
calendar_strings_<name>                list[str]
calendar_template_<name>               {"title", "description", "location"}
calendar_note_<name>_<note>
```
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from pydantic import ValidationError
from sqlalchemy import delete, select
from sqlalchemy.orm import Session, sessionmaker

from sky_calendars.models.calendar import EventFlags, EventStrings, ReminderMethod
from sky_calendars.store.sql import PreferenceRecord
from sky_calendars.templates import EventTemplate
from sky_calendars.window import DEFAULT_WINDOW_FUTURE_MS, DEFAULT_WINDOW_PAST_MS

logger = logging.getLogger(__name__)

KEY_CALENDARS_ENABLED = "calendars_enabled"
KEY_WINDOW_PAST = "calendars_window0"
KEY_WINDOW_FUTURE = "calendars_window1"
KEY_FIRST_LAUNCH = "calendars_firstlaunch"
KEY_LAST_SYNC = "calendars_lastsync"
KEY_CALENDAR_ENABLED = "calendar_enabled_"
KEY_CALENDAR_COLOR = "calendar_color_"
KEY_REMINDER_COUNT = "calendar_reminder_count_"
KEY_REMINDER_MINUTES = "calendar_reminder_minutes_"
KEY_REMINDER_METHOD = "calendar_reminder_method_"
KEY_CALENDAR_FLAGS = "calendar_flags_"
KEY_CALENDAR_STRINGS = "calendar_strings_"
KEY_CALENDAR_TEMPLATE = "calendar_template_"
KEY_CALENDAR_NOTE = "calendar_note_"

NOTE_LOCATION_NAME = "location_name"
ALL_NOTES = (NOTE_LOCATION_NAME,)

DEFAULT_CALENDAR_COLOR = "#F57C00"  # civil twilight orange
DEFAULT_CALENDAR_COLORS = {
    "solstice": "#2E7D32",
    "moonphase": "#5E35B1",
    "moonapsis": "#8E24AA",
    "moonrise": "#3949AB",
    "astronomical": "#0D47A1",
    "nautical": "#1565C0",
    "civil": DEFAULT_CALENDAR_COLOR,
    "golden": "#FBC02D",
    "daylight": "#FFB300",
}


class PreferenceStore(ABC):
    """Key/value preference storage."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Return the stored value, or `default` if the key is unset."""

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store a JSON-compatible value."""

    @abstractmethod
    def remove(self, key: str) -> None:
        """Remove a key (no-op if unset)."""

    def contains(self, key: str) -> bool:
        return self.get(key) is not None


class MemoryPreferenceStore(PreferenceStore):
    """Preferences held in a dict; used by tests and one-off CLI runs."""

    def __init__(self, values: dict[str, Any] | None = None):
        self._values: dict[str, Any] = dict(values or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value

    def remove(self, key: str) -> None:
        self._values.pop(key, None)

    def __len__(self) -> int:
        return len(self._values)


class SqlPreferenceStore(PreferenceStore):
    """Preferences persisted in the `preferences` table."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def get(self, key: str, default: Any = None) -> Any:
        with self._session_factory() as session:
            value = session.scalar(
                select(PreferenceRecord.value).where(PreferenceRecord.key == key)
            )
        return default if value is None else value

    def set(self, key: str, value: Any) -> None:
        with self._session_factory() as session:
            session.merge(PreferenceRecord(key=key, value=value))
            session.commit()

    def remove(self, key: str) -> None:
        with self._session_factory() as session:
            session.execute(delete(PreferenceRecord).where(PreferenceRecord.key == key))
            session.commit()


class CalendarSettings:
    """Typed access to calendar preferences.

    Example:
        ```python
        settings = CalendarSettings(MemoryPreferenceStore())
        settings.window_past_ms()            # 31536000000 (1 year)
        settings.reminder_count("daylight")  # 1
        ```
    """

    def __init__(self, store: PreferenceStore):
        self.store = store

    # Global

    def calendars_enabled(self) -> bool:
        return bool(self.store.get(KEY_CALENDARS_ENABLED, False))

    def set_calendars_enabled(self, enabled: bool) -> None:
        self.store.set(KEY_CALENDARS_ENABLED, enabled)

    def window_past_ms(self) -> int:
        return int(self.store.get(KEY_WINDOW_PAST, DEFAULT_WINDOW_PAST_MS))

    def window_future_ms(self) -> int:
        return int(self.store.get(KEY_WINDOW_FUTURE, DEFAULT_WINDOW_FUTURE_MS))

    def set_window(self, past_ms: int, future_ms: int) -> None:
        self.store.set(KEY_WINDOW_PAST, int(past_ms))
        self.store.set(KEY_WINDOW_FUTURE, int(future_ms))

    def is_first_launch(self) -> bool:
        return bool(self.store.get(KEY_FIRST_LAUNCH, True))

    def save_first_launch(self) -> None:
        self.store.set(KEY_FIRST_LAUNCH, False)

    def last_sync_time(self) -> datetime | None:
        value = self.store.get(KEY_LAST_SYNC)
        return datetime.fromisoformat(value) if value else None

    def save_last_sync_time(self, time: datetime) -> None:
        self.store.set(KEY_LAST_SYNC, time.isoformat())

    # Per calendar

    def calendar_enabled(self, calendar: str) -> bool:
        return bool(self.store.get(KEY_CALENDAR_ENABLED + calendar, False))

    def set_calendar_enabled(self, calendar: str, enabled: bool) -> None:
        self.store.set(KEY_CALENDAR_ENABLED + calendar, enabled)

    def enabled_calendars(self, calendars: Iterable[str]) -> list[str]:
        """The calendars to sync by default; none while calendars are disabled."""
        if not self.calendars_enabled():
            return []
        return [name for name in calendars if self.calendar_enabled(name)]

    def calendar_color(self, calendar: str) -> str:
        return self.store.get(KEY_CALENDAR_COLOR + calendar, default_calendar_color(calendar))

    def set_calendar_color(self, calendar: str, color: str) -> None:
        self.store.set(KEY_CALENDAR_COLOR + calendar, color)

    # Reminders

    def reminder_count(self, calendar: str) -> int:
        return int(self.store.get(KEY_REMINDER_COUNT + calendar, default_reminder_count(calendar)))

    def set_reminder_count(self, calendar: str, count: int) -> None:
        self.store.set(KEY_REMINDER_COUNT + calendar, count)

    def reminder_minutes(self, calendar: str, index: int) -> int:
        key = f"{KEY_REMINDER_MINUTES}{index}_{calendar}"
        return int(self.store.get(key, default_reminder_minutes(calendar, index)))

    def reminder_method(self, calendar: str, index: int) -> ReminderMethod:
        key = f"{KEY_REMINDER_METHOD}{index}_{calendar}"
        return ReminderMethod(int(self.store.get(key, default_reminder_method(calendar, index))))

    def set_reminder(
        self, calendar: str, index: int, minutes: int, method: ReminderMethod
    ) -> None:
        self.store.set(f"{KEY_REMINDER_MINUTES}{index}_{calendar}", int(minutes))
        self.store.set(f"{KEY_REMINDER_METHOD}{index}_{calendar}", int(method))

    def remove_reminder(self, calendar: str, index: int) -> None:
        self.store.remove(f"{KEY_REMINDER_MINUTES}{index}_{calendar}")
        self.store.remove(f"{KEY_REMINDER_METHOD}{index}_{calendar}")

    # Flags, strings, template

    def calendar_flags(self, calendar: str, defaults: EventFlags) -> EventFlags:
        """Stored flags, padded (or truncated) to the length of `defaults`."""
        stored = self.store.get(KEY_CALENDAR_FLAGS + calendar)
        if not stored:
            return defaults
        values = [bool(v) for v in stored[: len(defaults)]]
        values.extend(defaults.values[len(values):])
        return EventFlags(tuple(values))

    def set_calendar_flags(self, calendar: str, flags: EventFlags) -> None:
        self.store.set(KEY_CALENDAR_FLAGS + calendar, list(flags.values))

    def calendar_strings(self, calendar: str, defaults: EventStrings) -> EventStrings:
        """Stored labels, padded (or truncated) to the length of `defaults`."""
        stored = self.store.get(KEY_CALENDAR_STRINGS + calendar)
        if not stored:
            return defaults
        values = [str(v) for v in stored[: len(defaults)]]
        values.extend(defaults.values[len(values):])
        return EventStrings(tuple(values))

    def set_calendar_strings(self, calendar: str, strings: EventStrings) -> None:
        self.store.set(KEY_CALENDAR_STRINGS + calendar, list(strings.values))

    def calendar_template(self, calendar: str, default: EventTemplate) -> EventTemplate:
        stored = self.store.get(KEY_CALENDAR_TEMPLATE + calendar)
        if not stored:
            return default
        try:
            return EventTemplate.model_validate(stored)
        except ValidationError as e:
            logger.warning(f"Ignoring invalid template for {calendar}: {e}")
            return default

    def set_calendar_template(self, calendar: str, template: EventTemplate) -> None:
        self.store.set(KEY_CALENDAR_TEMPLATE + calendar, template.model_dump())

    def reset_calendar_overrides(self, calendar: str) -> None:
        """Drop flag, string, and template overrides (defaults apply again)."""
        for prefix in (KEY_CALENDAR_FLAGS, KEY_CALENDAR_STRINGS, KEY_CALENDAR_TEMPLATE):
            self.store.remove(prefix + calendar)

    # Notes

    def calendar_note(self, calendar: str, note: str) -> str | None:
        return self.store.get(f"{KEY_CALENDAR_NOTE}{calendar}_{note}")

    def save_calendar_note(self, calendar: str, note: str, value: str) -> None:
        self.store.set(f"{KEY_CALENDAR_NOTE}{calendar}_{note}", value)

    def clear_notes(self, calendar: str) -> None:
        for note in ALL_NOTES:
            self.store.remove(f"{KEY_CALENDAR_NOTE}{calendar}_{note}")


def default_calendar_color(calendar: str) -> str:
    return DEFAULT_CALENDAR_COLORS.get(calendar, DEFAULT_CALENDAR_COLOR)


def default_reminder_count(calendar: str) -> int:
    return 1


def default_reminder_method(calendar: str, index: int) -> ReminderMethod:
    if index in (0, 1):
        return ReminderMethod.DEFAULT
    return ReminderMethod.DISABLED


def default_reminder_minutes(calendar: str, index: int) -> int:
    if index == 1:
        return 5  # 5m before
    if index == 2:
        return -5  # 5m after
    return 0
