import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

import dateutil.parser
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from calendar_api.errors import UpstreamError
from calendar_api.logging_config import logger
from calendar_api.time_window import TimeWindow

STATUS_LINE = "Estado: Pendiente de confirmación"
CHANNEL_LINE = "Canal: WhatsApp"


@dataclass(frozen=True)
class BusyInterval:
    """A busy period reported by the free/busy query"""
    start: datetime
    end: datetime


@dataclass(frozen=True)
class CalendarSummary:
    summary: str
    id: str
    primary: bool
    time_zone: Optional[str]


@dataclass(frozen=True)
class BookingMetadata:
    """Free-text details attached to a booked appointment"""
    customer_name: str = ""
    phone: str = ""
    service_name: str = ""
    staff_name: str = ""
    note: str = ""
    confirmation_code: str = ""

    @property
    def summary(self) -> str:
        return f"{self.service_name or 'Servicio'} - {self.customer_name or 'Cliente'}"

    @property
    def description(self) -> str:
        lines = [
            f"Cliente: {self.customer_name}",
            f"Tel: {self.phone}",
            f"Servicio: {self.service_name}",
            f"Barbero: {self.staff_name}",
            f"Nota: {self.note}",
            f"Code: {self.confirmation_code}",
            STATUS_LINE,
            CHANNEL_LINE,
        ]
        return "\n".join(lines)


def build_calendar_resource(credentials: Credentials) -> Any:
    return build('calendar', 'v3', credentials=credentials, cache_discovery=False)


class CalendarGateway:
    """Translates domain calls into Google Calendar API v3 requests.

    The Google client is blocking, so every ``execute()`` runs in a worker
    thread. Failures of any kind surface as ``UpstreamError``; nothing is retried.
    """

    def __init__(self, service: Any):
        self.service = service

    @classmethod
    def from_credentials(cls, credentials: Credentials) -> "CalendarGateway":
        return cls(build_calendar_resource(credentials))

    async def _execute(self, request: Any, action: str) -> Dict:
        try:
            return await asyncio.to_thread(request.execute)
        except HttpError as e:
            logger.error(f"Google Calendar API error during {action}: {e}")
            raise UpstreamError(f"{action} failed: {e.reason if hasattr(e, 'reason') else e}") from e
        except Exception as e:
            logger.error(f"Calendar request failed during {action}: {e}")
            raise UpstreamError(f"{action} failed: {e}") from e

    async def query_busy(self, calendar_id: str, window: TimeWindow, timezone: str) -> List[BusyInterval]:
        """
        Ask the free/busy endpoint about one calendar over one interval.

        A calendar missing from the response, or reported without a ``busy``
        list, counts as free. A calendar reported with ``errors`` (unknown id,
        no access) is an upstream failure rather than a free slot.
        """
        body = {
            'timeMin': window.start.isoformat(),
            'timeMax': window.end.isoformat(),
            'timeZone': timezone,
            'items': [{'id': calendar_id}],
        }
        result = await self._execute(self.service.freebusy().query(body=body), "free/busy query")

        calendar = ((result or {}).get('calendars') or {}).get(calendar_id) or {}
        if calendar.get('errors'):
            reasons = ", ".join(err.get('reason', 'unknown') for err in calendar['errors'])
            raise UpstreamError(f"free/busy query rejected calendar {calendar_id}: {reasons}")

        busy = [
            BusyInterval(
                start=dateutil.parser.isoparse(period['start']),
                end=dateutil.parser.isoparse(period['end']),
            )
            for period in calendar.get('busy') or []
        ]
        logger.info(
            f"Free/busy {calendar_id} {window.start.isoformat()} ({window.duration_minutes}min): "
            f"{'Busy' if busy else 'Free'}"
        )
        return busy

    async def create_event(self, calendar_id: str, window: TimeWindow, timezone: str,
                           metadata: BookingMetadata) -> str:
        event_data = {
            'summary': metadata.summary,
            'description': metadata.description,
            'start': {'dateTime': window.start.isoformat(), 'timeZone': timezone},
            'end': {'dateTime': window.end.isoformat(), 'timeZone': timezone},
        }
        created_event = await self._execute(
            self.service.events().insert(calendarId=calendar_id, body=event_data),
            "event insert",
        )
        event_id = created_event.get('id')
        if not event_id:
            raise UpstreamError("event insert returned no event id")

        logger.info(f"Event created successfully: {event_id}")
        return event_id

    async def list_calendars(self) -> List[CalendarSummary]:
        """All calendars visible to the credential"""
        result = await self._execute(self.service.calendarList().list(), "calendar list")
        return [
            CalendarSummary(
                summary=item.get('summary', ''),
                id=item.get('id', ''),
                primary=bool(item.get('primary')),
                time_zone=item.get('timeZone'),
            )
            for item in (result or {}).get('items', [])
        ]

    async def create_calendar(self, summary: str, timezone: str) -> str:
        created = await self._execute(
            self.service.calendars().insert(body={'summary': summary, 'timeZone': timezone}),
            "calendar insert",
        )
        logger.info(f"Secondary calendar created: {created.get('id')}")
        return created.get('id')
