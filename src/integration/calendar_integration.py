from __future__ import annotations

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from googleapiclient.discovery import build
from icalendar import Alarm, Calendar, Event

from chat_assistant.errors import CalendarError
from chat_assistant.models import CalendarEventRequest

logger = logging.getLogger(__name__)

CALENDAR_NAME = "App Reminders"


class CalendarSync(ABC):
    """Mirrors scheduled reminders as calendar entries."""

    @abstractmethod
    async def add_event(self, event: CalendarEventRequest) -> Optional[str]:
        """Create an entry; return its handle, or None when it could not be created."""
        raise NotImplementedError

    @abstractmethod
    async def remove_event(self, handle: str) -> bool:
        raise NotImplementedError


class NullCalendarSync(CalendarSync):

    async def add_event(self, event: CalendarEventRequest) -> Optional[str]:
        return None

    async def remove_event(self, handle: str) -> bool:
        return True


class GoogleCalendarSync(CalendarSync):

    def __init__(self, credentials=None, calendar_id: str = "primary", time_zone: str = "UTC"):
        self.credentials = credentials
        self.calendar_id = calendar_id
        self.time_zone = time_zone
        self._service = None

    def _get_service(self):
        if self._service is None:
            self._service = build(
                "calendar",
                "v3",
                credentials=self.credentials,
                cache_discovery=False,
            )
        return self._service

    def _time_field(self, dt: datetime) -> dict:
        field = {"dateTime": dt.isoformat()}
        if dt.tzinfo is None:
            field["timeZone"] = self.time_zone
        return field

    def _event_body(self, event: CalendarEventRequest) -> dict:
        return {
            "summary": event.title,
            "description": event.notes,
            "start": self._time_field(event.start),
            "end": self._time_field(event.end),
            "reminders": {
                "useDefault": False,
                "overrides": [{"method": "popup", "minutes": event.lead_minutes}],
            },
        }

    def _insert(self, body: dict) -> str:
        created = (
            self._get_service()
            .events()
            .insert(calendarId=self.calendar_id, body=body)
            .execute()
        )
        event_id = created.get("id")
        if not event_id:
            raise CalendarError("Calendar API returned no event id")
        return event_id

    def _delete(self, handle: str) -> None:
        self._get_service().events().delete(
            calendarId=self.calendar_id, eventId=handle
        ).execute()

    async def add_event(self, event: CalendarEventRequest) -> Optional[str]:
        # Without credentials the sync is a no-op
        if self.credentials is None:
            return None
        try:
            return await asyncio.to_thread(self._insert, self._event_body(event))
        except Exception as e:
            logger.error(f"Failed to add calendar event: {e}")
            return None

    async def remove_event(self, handle: str) -> bool:
        if self.credentials is None:
            return False
        try:
            await asyncio.to_thread(self._delete, handle)
            return True
        except Exception as e:
            logger.error(f"Failed to remove calendar event {handle}: {e}")
            return False


class IcsCalendarSync(CalendarSync):
    """
    Writes each mirrored reminder as a standalone .ics file that any calendar
    application can import. Removal deletes the file.
    """

    def __init__(self, directory: str = "data/calendar"):
        self.directory = Path(directory)

    def _path(self, handle: str) -> Path:
        return self.directory / f"reminder-{handle}.ics"

    def _render(self, handle: str, event: CalendarEventRequest) -> bytes:
        cal = Calendar()
        cal.add("prodid", f"-//{CALENDAR_NAME}//EN")
        cal.add("version", "2.0")

        vevent = Event()
        vevent.add("uid", handle)
        vevent.add("summary", event.title)
        vevent.add("dtstart", event.start)
        vevent.add("dtend", event.end)
        vevent.add("dtstamp", datetime.now(timezone.utc))
        if event.notes:
            vevent.add("description", event.notes)

        alarm = Alarm()
        alarm.add("action", "DISPLAY")
        alarm.add("description", event.title)
        alarm.add("trigger", timedelta(minutes=-event.lead_minutes))
        vevent.add_component(alarm)

        cal.add_component(vevent)
        return cal.to_ical()

    async def add_event(self, event: CalendarEventRequest) -> Optional[str]:
        handle = uuid.uuid4().hex
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            self._path(handle).write_bytes(self._render(handle, event))
        except Exception as e:
            logger.error(f"Failed to create calendar file: {e}")
            return None
        return handle

    async def remove_event(self, handle: str) -> bool:
        self._path(handle).unlink(missing_ok=True)
        return True
