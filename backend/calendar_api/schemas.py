from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from typing import Optional, List

from calendar_api.availability import AvailabilityQuery
from calendar_api.booking import BookingCommand
from calendar_api.calendar_service import BookingMetadata, CalendarSummary
from calendar_api.errors import ValidationError

SLOT_FIELD_NAMES = {
    "calendar_id": ("calendarId", "calendar_id"),
    "date": ("date",),
    "time": ("time",),
}


def lacks_slot_fields(body) -> bool:
    """True when a raw request body is absent or misses calendarId, date or time"""
    if body is None:
        return True
    if not isinstance(body, dict):
        return False
    return any(not any(body.get(name) for name in names) for names in SLOT_FIELD_NAMES.values())


def _alias(*names: str) -> AliasChoices:
    return AliasChoices(*names)


class SlotRequest(BaseModel):
    """Fields shared by availability and booking requests.

    calendarId/date/time are optional at the schema level so that their absence
    is reported as ``missing_fields`` rather than a generic validation failure.
    """
    model_config = ConfigDict(populate_by_name=True)

    calendar_id: Optional[str] = Field(default=None, validation_alias=_alias("calendarId", "calendar_id"))
    date: Optional[str] = None
    time: Optional[str] = None
    duration_min: int = Field(default=45, gt=0, validation_alias=_alias("durationMin", "duration_min"))
    timezone: Optional[str] = Field(default=None, validation_alias=_alias("timezone", "tz", "timeZone"))

    def require_slot_fields(self) -> None:
        if any(not getattr(self, name) for name in SLOT_FIELD_NAMES):
            raise ValidationError("calendarId, date and time are required", code="missing_fields")


class AvailabilityRequest(SlotRequest):
    work_start: str = Field(default="09:00", validation_alias=_alias("workStart", "horarioInicio", "work_start"))
    work_end: str = Field(default="19:00", validation_alias=_alias("workEnd", "horarioFin", "work_end"))
    step_min: int = Field(default=15, gt=0, validation_alias=_alias("stepMin", "step_min"))
    max_suggestions: int = Field(
        default=3, gt=0, validation_alias=_alias("maxSuggestions", "maxSugs", "max_suggestions")
    )

    def to_query(self, default_timezone: str) -> AvailabilityQuery:
        self.require_slot_fields()
        return AvailabilityQuery(
            calendar_id=self.calendar_id,
            date=self.date,
            time=self.time,
            timezone=self.timezone or default_timezone,
            duration_min=self.duration_min,
            work_start=self.work_start,
            work_end=self.work_end,
            step_min=self.step_min,
            max_suggestions=self.max_suggestions,
        )


class AvailabilityResponse(BaseModel):
    disponible: bool
    sugerencias: List[str]


class BookingRequest(SlotRequest):
    customer_name: Optional[str] = Field(default="", validation_alias=_alias("customerName", "nombre", "customer_name"))
    phone: Optional[str] = Field(default="", validation_alias=_alias("phone", "tel"))
    service_name: Optional[str] = Field(default="", validation_alias=_alias("serviceName", "servicio", "service_name"))
    staff_name: Optional[str] = Field(default="", validation_alias=_alias("staffName", "barbero", "staff_name"))
    note: Optional[str] = Field(default="", validation_alias=_alias("note", "nota"))
    confirmation_code: Optional[str] = Field(
        default="", validation_alias=_alias("confirmationCode", "code", "confirmation_code")
    )

    def to_command(self, default_timezone: str) -> BookingCommand:
        self.require_slot_fields()
        return BookingCommand(
            calendar_id=self.calendar_id,
            date=self.date,
            time=self.time,
            timezone=self.timezone or default_timezone,
            duration_min=self.duration_min,
            metadata=BookingMetadata(
                customer_name=self.customer_name or "",
                phone=self.phone or "",
                service_name=self.service_name or "",
                staff_name=self.staff_name or "",
                note=self.note or "",
                confirmation_code=self.confirmation_code or "",
            ),
        )


class BookingResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ok: bool
    event_id: Optional[str] = Field(default=None, serialization_alias="eventId")


class CalendarItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    summary: Optional[str] = None
    id: str
    primary: bool = False
    time_zone: Optional[str] = Field(default=None, serialization_alias="timeZone")

    @classmethod
    def from_summary(cls, item: CalendarSummary) -> "CalendarItem":
        return cls(summary=item.summary, id=item.id, primary=item.primary, time_zone=item.time_zone)


class CreateCalendarRequest(BaseModel):
    summary: Optional[str] = None
    time_zone: Optional[str] = Field(default=None, validation_alias=_alias("timeZone", "timezone", "time_zone"))


class CreateCalendarResponse(BaseModel):
    ok: bool
    id: Optional[str] = None
