from dataclasses import dataclass, field
from typing import List

from calendar_api.calendar_service import CalendarGateway
from calendar_api.errors import ValidationError
from calendar_api.logging_config import logger
from calendar_api.time_window import TimeWindow, format_hhmm, local_instant

# Farthest offset, in minutes from the requested start, an alternative may sit at
SEARCH_CAP_MINUTES = 180


@dataclass(frozen=True)
class AvailabilityQuery:
    """A fully-resolved availability request"""
    calendar_id: str
    date: str
    time: str
    timezone: str
    duration_min: int = 45
    work_start: str = "09:00"
    work_end: str = "19:00"
    step_min: int = 15
    max_suggestions: int = 3

    def validate(self) -> None:
        if self.duration_min <= 0:
            raise ValidationError(f"duration must be positive, got {self.duration_min}")
        if self.step_min <= 0:
            raise ValidationError(f"step must be positive, got {self.step_min}")
        if self.max_suggestions <= 0:
            raise ValidationError(f"maxSuggestions must be positive, got {self.max_suggestions}")
        if local_instant(self.date, self.work_start, self.timezone) >= local_instant(
            self.date, self.work_end, self.timezone
        ):
            raise ValidationError(f"working hours {self.work_start}-{self.work_end} are empty")


@dataclass(frozen=True)
class AvailabilityResult:
    available: bool
    suggestions: List[str] = field(default_factory=list)


class AvailabilityEngine:
    """
    Decides whether a requested slot is free and proposes alternatives.

    Each slot, primary or candidate, is checked with its own free/busy query so
    the server's notion of "busy" applies uniformly. The forward scan is
    sequential, stays on the requested date inside the working hours, never
    looks further than SEARCH_CAP_MINUTES past the requested start, and stops
    as soon as enough suggestions are collected. Any gateway failure propagates
    and aborts the whole check.
    """

    def __init__(self, gateway: CalendarGateway, search_cap_minutes: int = SEARCH_CAP_MINUTES):
        self.gateway = gateway
        self.search_cap_minutes = search_cap_minutes

    async def _is_free(self, query: AvailabilityQuery, window: TimeWindow) -> bool:
        busy = await self.gateway.query_busy(query.calendar_id, window, query.timezone)
        return not busy

    async def check(self, query: AvailabilityQuery) -> AvailabilityResult:
        query.validate()
        primary = TimeWindow.from_local(query.date, query.time, query.duration_min, query.timezone)

        if await self._is_free(query, primary):
            return AvailabilityResult(available=True)

        work_start = local_instant(query.date, query.work_start, query.timezone)
        work_end = local_instant(query.date, query.work_end, query.timezone)

        suggestions: List[str] = []
        offset = 0
        while len(suggestions) < query.max_suggestions:
            offset += query.step_min
            if offset > self.search_cap_minutes:
                break

            candidate = primary.shifted(offset)
            if not candidate.within(work_start, work_end):
                break

            if await self._is_free(query, candidate):
                suggestions.append(format_hhmm(candidate.start, query.timezone))

        logger.info(
            f"Slot {query.date} {query.time} busy on {query.calendar_id}; "
            f"{len(suggestions)} alternative(s) found"
        )
        return AvailabilityResult(available=False, suggestions=suggestions)
