from dataclasses import dataclass
from datetime import datetime, timedelta

import pytz

from calendar_api.errors import ValidationError

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M"


def get_timezone(name: str):
    """Resolve an IANA zone id through pytz"""
    try:
        return pytz.timezone(name)
    except pytz.UnknownTimeZoneError:
        raise ValidationError(f"Unknown timezone: {name!r}") from None


def local_instant(date: str, time: str, tz_name: str) -> datetime:
    """
    Build an absolute instant from a calendar date and a local wall-clock time.

    DST gaps and overlaps are resolved by pytz using the zone's standard-time
    reading, so the function never fails on a valid date/time pair.
    """
    tz = get_timezone(tz_name)
    try:
        naive = datetime.strptime(f"{date} {time}", f"{DATE_FORMAT} {TIME_FORMAT}")
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid date/time: {date!r} {time!r}") from None
    return tz.localize(naive)


def add_minutes(instant: datetime, minutes: int) -> datetime:
    """Shift an aware instant by absolute minutes, re-normalizing its UTC offset"""
    shifted = instant + timedelta(minutes=minutes)
    normalize = getattr(instant.tzinfo, "normalize", None)
    return normalize(shifted) if normalize else shifted


def format_hhmm(instant: datetime, tz_name: str) -> str:
    return instant.astimezone(get_timezone(tz_name)).strftime(TIME_FORMAT)


@dataclass(frozen=True)
class TimeWindow:
    """Half-open interval [start, end) of aware instants"""

    start: datetime
    end: datetime

    @classmethod
    def starting_at(cls, start: datetime, minutes: int) -> "TimeWindow":
        return cls(start=start, end=add_minutes(start, minutes))

    @classmethod
    def from_local(cls, date: str, time: str, minutes: int, tz_name: str) -> "TimeWindow":
        return cls.starting_at(local_instant(date, time, tz_name), minutes)

    @property
    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)

    def shifted(self, minutes: int) -> "TimeWindow":
        return TimeWindow(start=add_minutes(self.start, minutes), end=add_minutes(self.end, minutes))

    def within(self, lower: datetime, upper: datetime) -> bool:
        """True when the whole window fits inside [lower, upper]"""
        return self.start >= lower and self.end <= upper
