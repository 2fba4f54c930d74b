"""SQLAlchemy-backed calendar store.

## Schema Overview

```
calendars
└── events (1:N)
    └── reminders (1:N)
preferences          key/value (see sky_calendars.preferences)
```

Timestamps are stored as naive UTC and returned timezone-aware.

## Usage

```python
from sky_calendars.store import SqlCalendarStore

store = SqlCalendarStore.from_url("sqlite:///sky_calendars.db")
store.create_tables()
```
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    DateTime,
    Engine,
    ForeignKey,
    Integer,
    String,
    Text,
    create_engine,
    delete,
    func,
    insert,
    select,
)
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    Session,
    mapped_column,
    relationship,
    sessionmaker,
)

from sky_calendars.errors import PartialBatchFailure, PermissionDenied, StoreUnavailable
from sky_calendars.models.calendar import Event
from sky_calendars.store.base import CalendarStore, ReminderEntry, StoredEvent

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all database models."""


class CalendarRecord(Base):
    """A generated calendar."""

    __tablename__ = "calendars"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    color: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    events: Mapped[list["EventRecord"]] = relationship(back_populates="calendar")

    def __repr__(self) -> str:
        return f"<CalendarRecord {self.name}>"


class EventRecord(Base):
    """A generated event."""

    __tablename__ = "events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    calendar_id: Mapped[int] = mapped_column(
        ForeignKey("calendars.id", ondelete="CASCADE"), index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    location: Mapped[str | None] = mapped_column(String(255))
    start_time: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    end_time: Mapped[datetime | None] = mapped_column(DateTime)

    calendar: Mapped["CalendarRecord"] = relationship(back_populates="events")

    def __repr__(self) -> str:
        return f"<EventRecord {self.id} {self.title}>"


class ReminderRecord(Base):
    """A reminder attached to an event."""

    __tablename__ = "reminders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(
        ForeignKey("events.id", ondelete="CASCADE"), index=True
    )
    minutes: Mapped[int] = mapped_column(Integer, default=0)
    method: Mapped[int] = mapped_column(Integer, default=0)


class PreferenceRecord(Base):
    """A single stored preference."""

    __tablename__ = "preferences"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[Any] = mapped_column(JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<PreferenceRecord {self.key}>"


def _to_db(time: datetime) -> datetime:
    if time.tzinfo is None:
        return time
    return time.astimezone(timezone.utc).replace(tzinfo=None)


def _from_db(time: datetime) -> datetime:
    return time.replace(tzinfo=timezone.utc)


def _translate_error(e: SQLAlchemyError) -> Exception:
    """Map a database error onto the store error taxonomy."""
    message = str(e).lower()
    if "readonly" in message or "read-only" in message or "permission denied" in message:
        return PermissionDenied(f"Calendar database refused access: {e}")
    if isinstance(e, OperationalError):
        return StoreUnavailable(f"Calendar database unavailable: {e}")
    return PartialBatchFailure(f"Calendar database write failed: {e}")


class SqlCalendarStore(CalendarStore):
    """Calendar store backed by a SQLAlchemy database."""

    name = "sql"

    def __init__(self, engine: Engine):
        """Initialize the store.

        Args:
            engine: SQLAlchemy engine; tables are created by `create_tables()`
        """
        self.engine = engine
        self.session_factory: sessionmaker[Session] = sessionmaker(
            engine, expire_on_commit=False, autoflush=False
        )

    @classmethod
    def from_url(cls, database_url: str, echo: bool = False) -> SqlCalendarStore:
        """Create a store (and its tables) from a database URL."""
        logger.info("Initializing calendar database")
        store = cls(create_engine(database_url, echo=echo))
        store.create_tables()
        return store

    def create_tables(self) -> None:
        """Create all tables (calendar store and preferences)."""
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise _translate_error(e) from e

    def close(self) -> None:
        self.engine.dispose()

    def create_calendar(self, name: str, title: str, color: str) -> str:
        with self.session_factory() as session:
            record = CalendarRecord(name=name, title=title, color=color)
            session.add(record)
            try:
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                raise _translate_error(e) from e
            logger.info(f"Created calendar {name} ({record.id})")
            return str(record.id)

    def query_calendar_id(self, name: str) -> str | None:
        with self.session_factory() as session:
            try:
                calendar_id = session.scalar(
                    select(CalendarRecord.id).where(CalendarRecord.name == name)
                )
            except SQLAlchemyError as e:
                raise _translate_error(e) from e
        return None if calendar_id is None else str(calendar_id)

    def remove_calendar(self, name: str) -> bool:
        calendar_id = self.query_calendar_id(name)
        if calendar_id is None:
            return False
        self._delete_calendars([int(calendar_id)])
        logger.info(f"Removed calendar {name}")
        return True

    def remove_calendars(self) -> int:
        with self.session_factory() as session:
            ids = list(session.scalars(select(CalendarRecord.id)))
        self._delete_calendars(ids)
        return len(ids)

    def _delete_calendars(self, calendar_ids: list[int]) -> None:
        if not calendar_ids:
            return
        event_ids = select(EventRecord.id).where(EventRecord.calendar_id.in_(calendar_ids))
        with self.session_factory() as session:
            try:
                session.execute(
                    delete(ReminderRecord).where(ReminderRecord.event_id.in_(event_ids)),
                    execution_options={"synchronize_session": False},
                )
                session.execute(
                    delete(EventRecord).where(EventRecord.calendar_id.in_(calendar_ids)),
                    execution_options={"synchronize_session": False},
                )
                session.execute(
                    delete(CalendarRecord).where(CalendarRecord.id.in_(calendar_ids)),
                    execution_options={"synchronize_session": False},
                )
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                raise _translate_error(e) from e

    def remove_calendar_events_before(self, calendar_id: str, time: datetime) -> int:
        condition = (EventRecord.calendar_id == int(calendar_id)) & (
            EventRecord.start_time < _to_db(time)
        )
        with self.session_factory() as session:
            try:
                event_ids = list(session.scalars(select(EventRecord.id).where(condition)))
                if event_ids:
                    session.execute(
                        delete(ReminderRecord).where(ReminderRecord.event_id.in_(event_ids)),
                        execution_options={"synchronize_session": False},
                    )
                    session.execute(
                        delete(EventRecord).where(EventRecord.id.in_(event_ids)),
                        execution_options={"synchronize_session": False},
                    )
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                raise _translate_error(e) from e
        return len(event_ids)

    def query_calendar_events(self, calendar_id: str) -> list[StoredEvent]:
        with self.session_factory() as session:
            try:
                rows = session.execute(
                    select(EventRecord.id, EventRecord.start_time, EventRecord.title)
                    .where(EventRecord.calendar_id == int(calendar_id))
                    .order_by(EventRecord.start_time, EventRecord.id)
                ).all()
            except SQLAlchemyError as e:
                raise _translate_error(e) from e
        return [
            StoredEvent(event_id=str(row.id), start=_from_db(row.start_time), title=row.title)
            for row in rows
        ]

    def create_calendar_events(self, calendar_id: str, events: Sequence[Event]) -> int:
        if not events:
            return 0
        values = [
            {
                "calendar_id": int(calendar_id),
                "title": event.title,
                "description": event.description,
                "location": event.location,
                "start_time": _to_db(event.start),
                "end_time": _to_db(event.end) if event.end else None,
            }
            for event in events
        ]
        self._insert(EventRecord, values)
        return len(values)

    def create_calendar_reminders(self, reminders: Sequence[ReminderEntry]) -> int:
        if not reminders:
            return 0
        values = [
            {"event_id": int(r.event_id), "minutes": r.minutes, "method": int(r.method)}
            for r in reminders
        ]
        self._insert(ReminderRecord, values)
        return len(values)

    def remove_reminders(self, calendar_id: str, event_ids: Sequence[str]) -> int:
        if not event_ids:
            return 0
        with self.session_factory() as session:
            try:
                result = session.execute(
                    delete(ReminderRecord).where(
                        ReminderRecord.event_id.in_([int(i) for i in event_ids])
                    ),
                    execution_options={"synchronize_session": False},
                )
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                raise _translate_error(e) from e
        return result.rowcount or 0

    def count_reminders(self, calendar_id: str) -> int:
        """Number of reminders attached to a calendar's events."""
        with self.session_factory() as session:
            return session.scalar(
                select(func.count(ReminderRecord.id))
                .join(EventRecord, ReminderRecord.event_id == EventRecord.id)
                .where(EventRecord.calendar_id == int(calendar_id))
            ) or 0

    def _insert(self, model: type[Base], values: list[dict]) -> None:
        with self.session_factory() as session:
            try:
                session.execute(insert(model), values)
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                error = _translate_error(e)
                if isinstance(error, PartialBatchFailure):
                    error.failed = len(values)
                raise error from e
