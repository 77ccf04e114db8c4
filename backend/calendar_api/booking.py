from dataclasses import dataclass, field

from calendar_api.calendar_service import BookingMetadata, CalendarGateway
from calendar_api.errors import ValidationError
from calendar_api.logging_config import logger
from calendar_api.time_window import TimeWindow


@dataclass(frozen=True)
class BookingCommand:
    calendar_id: str
    date: str
    time: str
    timezone: str
    duration_min: int = 45
    metadata: BookingMetadata = field(default_factory=BookingMetadata)

    def window(self) -> TimeWindow:
        if self.duration_min <= 0:
            raise ValidationError(f"duration must be positive, got {self.duration_min}")
        return TimeWindow.from_local(self.date, self.time, self.duration_min, self.timezone)


@dataclass(frozen=True)
class BookingResult:
    ok: bool
    event_id: str


class BookingService:
    """Writes appointments into the calendar.

    Booking does not consult availability; callers that care should run an
    availability check first. Nothing guards against a race between the two.
    """

    def __init__(self, gateway: CalendarGateway):
        self.gateway = gateway

    async def book(self, command: BookingCommand) -> BookingResult:
        window = command.window()
        event_id = await self.gateway.create_event(command.calendar_id, window, command.timezone, command.metadata)

        logger.info(f"Booked {command.metadata.summary!r} on {command.calendar_id} at {window.start.isoformat()}")
        return BookingResult(ok=True, event_id=event_id)
