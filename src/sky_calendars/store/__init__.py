"""Calendar stores.

- `CalendarStore`: the interface task code writes through
- `SqlCalendarStore`: SQLAlchemy database (SQLite by default)
- `GoogleCalendarStore`: Google Calendar API v3
"""

from sky_calendars.store.base import CalendarStore, ReminderEntry, StoredEvent
from sky_calendars.store.sql import SqlCalendarStore

__all__ = [
    "CalendarStore",
    "ReminderEntry",
    "StoredEvent",
    "SqlCalendarStore",
]
