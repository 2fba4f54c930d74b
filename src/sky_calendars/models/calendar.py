"""Calendar, event, and task models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum, IntEnum
from typing import Iterator, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

# One row from the astronomical data source: a nullable timestamp per
# requested projection column, in projection order.
SourceRow = tuple[datetime | None, ...]


class CalendarDescriptor(BaseModel):
    """Resolved identity and display attributes of one calendar kind."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Stable key of the calendar")
    title: str = Field(..., description="Display title")
    summary: str = Field(default="", description="One-line description")
    color: str = Field(default="#1E88E5", description="Calendar color as #RRGGBB")


class CalendarWindow(BaseModel):
    """Absolute, year-aligned range events are generated for."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @model_validator(mode="after")
    def validate_order(self) -> Self:
        """Ensure the window is not empty."""
        if self.end <= self.start:
            raise ValueError("Window end must be after window start")
        return self

    def contains(self, time: datetime) -> bool:
        """Check if a time falls in [start, end)."""
        return self.start <= time < self.end


class TaskAction(str, Enum):
    """What a task should do with one calendar."""

    UPDATE = "update"
    DELETE = "delete"
    REMINDERS_UPDATE = "reminders_update"
    REMINDERS_DELETE = "reminders_delete"


class TaskItem(BaseModel):
    """A (calendar name, action) pair submitted to a task."""

    model_config = ConfigDict(frozen=True)

    calendar: str
    action: TaskAction = TaskAction.UPDATE


class Event(BaseModel):
    """A generated calendar event, the unit written to a calendar store."""

    title: str
    description: str = ""
    location: str = ""
    start: datetime
    end: datetime | None = Field(
        default=None, description="End of a range event; None for point events"
    )


@dataclass(frozen=True)
class EventFlags:
    """Which event types a calendar emits, one flag per type."""

    values: tuple[bool, ...]

    def __getitem__(self, i: int) -> bool:
        return self.values[i]

    def __len__(self) -> int:
        return len(self.values)

    def __iter__(self) -> Iterator[bool]:
        return iter(self.values)


@dataclass(frozen=True)
class EventStrings:
    """User-visible labels, indexed the way each generator documents them."""

    values: tuple[str, ...]

    def __getitem__(self, i: int) -> str:
        return self.values[i]

    def __len__(self) -> int:
        return len(self.values)

    def __iter__(self) -> Iterator[str]:
        return iter(self.values)


class ReminderMethod(IntEnum):
    """Reminder delivery method. DISABLED marks an inactive reminder slot."""

    DISABLED = -1
    DEFAULT = 0
    ALERT = 1
    EMAIL = 2
    SMS = 3
    ALARM = 4


class Reminder(BaseModel):
    """One reminder slot of a calendar."""

    model_config = ConfigDict(frozen=True)

    calendar: str
    index: int = Field(..., ge=0)
    minutes: int = Field(default=0, description="Minutes before the event (negative = after)")
    method: ReminderMethod = ReminderMethod.DEFAULT

    @property
    def enabled(self) -> bool:
        return self.method != ReminderMethod.DISABLED
