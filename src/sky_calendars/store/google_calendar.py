"""Google Calendar store.

Writes generated calendars into a Google account as secondary calendars.

## API Documentation

https://developers.google.com/calendar/api/v3/reference

## Calendar ownership

Each generated calendar carries `sky-calendars:<name>` as its description.
Only calendars with that marker are ever looked up, replaced, or removed;
the user's own calendars are never touched.

## Reminders

Google keeps reminders as per-event overrides (`popup` or `email`, at most
five per event, minutes >= 0). `ReminderMethod.EMAIL` maps to `email`; every
other enabled method maps to `popup`.

## Authentication

Uses OAuth 2.0 user credentials stored in an authorized-user JSON file
(see `Settings.google_token_file`). 401/403 responses raise
`PermissionDenied`, which aborts the task run.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path
from typing import Any

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from sky_calendars.errors import PartialBatchFailure, PermissionDenied, StoreUnavailable
from sky_calendars.models.calendar import Event, ReminderMethod
from sky_calendars.store.base import CalendarStore, ReminderEntry, StoredEvent

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/calendar"]
CALENDAR_MARKER = "sky-calendars:"
MAX_OVERRIDES = 5
# Calendar API limit on calls per HTTP batch
MAX_BATCH_CALLS = 50


def _status(e: HttpError) -> int:
    return int(getattr(e.resp, "status", 0) or 0)


def _translate_http_error(e: HttpError, write: bool = False) -> Exception:
    """Map a Google API error onto the store error taxonomy."""
    status = _status(e)
    if status in (401, 403):
        return PermissionDenied(f"Google Calendar refused access ({status}): {e}")
    if write:
        return PartialBatchFailure(f"Google Calendar write failed ({status}): {e}")
    return StoreUnavailable(f"Google Calendar request failed ({status}): {e}")


def _parse_time(data: dict[str, Any]) -> datetime:
    value = data.get("dateTime") or data.get("date")
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def event_body(event: Event) -> dict[str, Any]:
    """Convert a generated event to an API insert body."""
    end = event.end or event.start
    return {
        "summary": event.title,
        "description": event.description,
        "location": event.location,
        "start": {"dateTime": event.start.isoformat()},
        "end": {"dateTime": end.isoformat()},
        "transparency": "transparent",
        "reminders": {"useDefault": False, "overrides": []},
    }


def reminder_override(minutes: int, method: ReminderMethod) -> dict[str, Any]:
    """Convert a reminder to a Google reminder override."""
    return {
        "method": "email" if method == ReminderMethod.EMAIL else "popup",
        "minutes": max(0, minutes),
    }


class GoogleCalendarStore(CalendarStore):
    """Calendar store backed by the Google Calendar API.

    Example:
        ```python
        store = GoogleCalendarStore.from_token_file("token.json")
        store.has_calendar("moonphase")
        ```
    """

    name = "google"

    def __init__(
        self,
        credentials: Credentials | None = None,
        service: Any = None,
    ):
        """Initialize the store.

        Args:
            credentials: OAuth user credentials (ignored if `service` is given)
            service: A prebuilt `calendar` v3 service resource
        """
        if service is None:
            service = build("calendar", "v3", credentials=credentials, cache_discovery=False)
        self._service = service

    @classmethod
    def from_token_file(cls, path: str | Path) -> GoogleCalendarStore:
        """Create a store from an authorized-user token file."""
        credentials = Credentials.from_authorized_user_file(str(path), SCOPES)
        return cls(credentials=credentials)

    def _execute(self, request: Any, write: bool = False) -> Any:
        try:
            return request.execute()
        except HttpError as e:
            raise _translate_http_error(e, write=write) from e

    def _execute_batch(self, requests: list[Any]) -> tuple[list[Any], list[HttpError]]:
        """Execute requests as HTTP batches of at most `MAX_BATCH_CALLS` calls.

        Returns:
            Tuple of (responses, errors); a 401/403 on any item raises instead
        """
        responses: list[Any] = []
        errors: list[HttpError] = []

        def callback(request_id: str, response: Any, exception: HttpError | None) -> None:
            if exception is not None:
                errors.append(exception)
            else:
                responses.append(response)

        for i in range(0, len(requests), MAX_BATCH_CALLS):
            try:
                batch = self._service.new_batch_http_request(callback=callback)
                for request in requests[i : i + MAX_BATCH_CALLS]:
                    batch.add(request)
                batch.execute()
            except HttpError as e:
                raise _translate_http_error(e, write=True) from e

        for error in errors:
            if _status(error) in (401, 403):
                raise _translate_http_error(error)
        return responses, errors

    def owned_calendars(self) -> dict[str, str]:
        """Map calendar name -> id for every calendar carrying our marker."""
        calendars: dict[str, str] = {}
        page_token = None

        while True:
            result = self._execute(self._service.calendarList().list(pageToken=page_token))
            for item in result.get("items", []):
                description = item.get("description") or ""
                if description.startswith(CALENDAR_MARKER):
                    calendars[description[len(CALENDAR_MARKER):]] = item["id"]

            page_token = result.get("nextPageToken")
            if not page_token:
                break

        return calendars

    def query_calendar_id(self, name: str) -> str | None:
        return self.owned_calendars().get(name)

    def create_calendar(self, name: str, title: str, color: str) -> str:
        created = self._execute(
            self._service.calendars().insert(
                body={"summary": title, "description": CALENDAR_MARKER + name}
            ),
            write=True,
        )
        calendar_id = created["id"]
        self._execute(
            self._service.calendarList().patch(
                calendarId=calendar_id,
                colorRgbFormat=True,
                body={"backgroundColor": color, "foregroundColor": "#000000"},
            ),
            write=True,
        )
        logger.info(f"Created Google calendar {name} ({calendar_id})")
        return calendar_id

    def remove_calendar(self, name: str) -> bool:
        calendar_id = self.query_calendar_id(name)
        if calendar_id is None:
            return False
        self._execute(self._service.calendars().delete(calendarId=calendar_id), write=True)
        logger.info(f"Removed Google calendar {name}")
        return True

    def remove_calendars(self) -> int:
        calendars = self.owned_calendars()
        for calendar_id in calendars.values():
            self._execute(self._service.calendars().delete(calendarId=calendar_id), write=True)
        return len(calendars)

    def _list_events(self, calendar_id: str, time_max: datetime | None = None) -> list[StoredEvent]:
        events: list[StoredEvent] = []
        page_token = None

        params: dict[str, Any] = {
            "calendarId": calendar_id,
            "maxResults": 2500,
            "singleEvents": True,
            "orderBy": "startTime",
        }
        if time_max is not None:
            params["timeMax"] = time_max.isoformat()

        while True:
            if page_token:
                params["pageToken"] = page_token

            result = self._execute(self._service.events().list(**params))
            for item in result.get("items", []):
                if item.get("status") == "cancelled":
                    continue
                events.append(
                    StoredEvent(
                        event_id=item["id"],
                        start=_parse_time(item.get("start", {})),
                        title=item.get("summary", ""),
                    )
                )

            page_token = result.get("nextPageToken")
            if not page_token:
                break

        return events

    def query_calendar_events(self, calendar_id: str) -> list[StoredEvent]:
        return self._list_events(calendar_id)

    def remove_calendar_events_before(self, calendar_id: str, time: datetime) -> int:
        stale = [e for e in self._list_events(calendar_id, time_max=time) if e.start < time]
        requests = [
            self._service.events().delete(calendarId=calendar_id, eventId=e.event_id)
            for e in stale
        ]
        _, errors = self._execute_batch(requests)
        if errors:
            logger.warning(f"Failed to remove {len(errors)} stale events from {calendar_id}")
        return len(stale) - len(errors)

    def create_calendar_events(self, calendar_id: str, events: Sequence[Event]) -> int:
        requests = [
            self._service.events().insert(calendarId=calendar_id, body=event_body(event))
            for event in events
        ]
        responses, errors = self._execute_batch(requests)
        if errors:
            raise PartialBatchFailure(
                f"{len(errors)} of {len(requests)} events failed: {errors[0]}",
                failed=len(errors),
            )
        return len(responses)

    def create_calendar_reminders(self, reminders: Sequence[ReminderEntry]) -> int:
        grouped: dict[tuple[str, str], list[ReminderEntry]] = defaultdict(list)
        for reminder in reminders:
            grouped[(reminder.calendar_id, reminder.event_id)].append(reminder)

        # Overrides replace each other, so merge with what the event already has.
        current: dict[str, list[dict[str, Any]]] = {}
        requests = [
            self._service.events().get(calendarId=calendar_id, eventId=event_id)
            for calendar_id, event_id in grouped
        ]
        responses, _ = self._execute_batch(requests)
        for item in responses:
            current[item["id"]] = item.get("reminders", {}).get("overrides", [])

        patches = []
        for (calendar_id, event_id), entries in grouped.items():
            overrides = list(current.get(event_id, []))
            overrides.extend(reminder_override(e.minutes, e.method) for e in entries)
            patches.append(
                self._service.events().patch(
                    calendarId=calendar_id,
                    eventId=event_id,
                    body={
                        "reminders": {
                            "useDefault": False,
                            "overrides": overrides[:MAX_OVERRIDES],
                        }
                    },
                )
            )
        patched, errors = self._execute_batch(patches)
        if errors:
            raise PartialBatchFailure(
                f"{len(errors)} of {len(patches)} reminder updates failed: {errors[0]}",
                failed=len(errors),
            )
        return sum(len(entries) for entries in grouped.values())

    def remove_reminders(self, calendar_id: str, event_ids: Sequence[str]) -> int:
        requests = [
            self._service.events().patch(
                calendarId=calendar_id,
                eventId=event_id,
                body={"reminders": {"useDefault": False, "overrides": []}},
            )
            for event_id in event_ids
        ]
        responses, errors = self._execute_batch(requests)
        if errors:
            logger.warning(f"Failed to clear reminders on {len(errors)} events in {calendar_id}")
        return len(responses)
