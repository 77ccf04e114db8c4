"""Shared test fixtures and fakes."""

from typing import Iterable, List, Optional

import pytest
from fastapi.testclient import TestClient

from calendar_api.calendar_service import BookingMetadata, BusyInterval, CalendarSummary
from calendar_api.config import AppConfig
from calendar_api.errors import UpstreamError
from calendar_api.main import create_app
from calendar_api.time_window import TimeWindow, format_hhmm

CLIENT_CONFIG = {
    "web": {
        "client_id": "client-123.apps.googleusercontent.com",
        "client_secret": "client-secret",
        "auth_uri": "https://accounts.google.com/o/oauth2/auth",
        "token_uri": "https://oauth2.googleapis.com/token",
        "redirect_uris": ["http://localhost:3000/oauth2callback"],
    }
}

NODE_TOKENS = {
    "access_token": "ya29.access",
    "refresh_token": "1//refresh",
    "scope": "https://www.googleapis.com/auth/calendar",
    "token_type": "Bearer",
    "expiry_date": 1700000000000,
}

TZ = "America/Costa_Rica"


class FakeGateway:
    """In-memory stand-in for CalendarGateway.

    Every queried slot is busy unless its local start (HH:MM) is listed in
    ``free_starts``. Calls are recorded in order for count assertions.
    """

    def __init__(self, free_starts: Iterable[str] = (), error_at: Optional[str] = None):
        self.free_starts = set(free_starts)
        self.error_at = error_at
        self.queried: List[str] = []
        self.events: List[dict] = []
        self.created_calendars: List[dict] = []

    async def query_busy(self, calendar_id: str, window: TimeWindow, timezone: str) -> List[BusyInterval]:
        label = format_hhmm(window.start, timezone)
        self.queried.append(label)
        if label == self.error_at:
            raise UpstreamError(f"free/busy query failed at {label}")
        if label in self.free_starts:
            return []
        # overlapping duplicates must not matter
        return [BusyInterval(window.start, window.end), BusyInterval(window.start, window.end)]

    async def create_event(self, calendar_id: str, window: TimeWindow, timezone: str,
                           metadata: BookingMetadata) -> str:
        self.events.append(
            {"calendar_id": calendar_id, "window": window, "timezone": timezone, "metadata": metadata}
        )
        return f"evt-{len(self.events)}"

    async def list_calendars(self) -> List[CalendarSummary]:
        return [
            CalendarSummary(summary="Barbería", id="primary@example.com", primary=True, time_zone=TZ),
            CalendarSummary(summary="Carlos", id="carlos@group.calendar.google.com", primary=False, time_zone=TZ),
        ]

    async def create_calendar(self, summary: str, timezone: str) -> str:
        self.created_calendars.append({"summary": summary, "timezone": timezone})
        return "new@group.calendar.google.com"


@pytest.fixture
def config(tmp_path) -> AppConfig:
    return AppConfig(
        default_timezone=TZ,
        client_config=CLIENT_CONFIG,
        tokens=NODE_TOKENS,
        token_path=str(tmp_path / "tokens.json"),
        log_file=None,
    )


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def factory_calls():
    return []


@pytest.fixture
def app(config, gateway, factory_calls):
    def gateway_factory(credentials):
        factory_calls.append(credentials)
        return gateway

    return create_app(config, gateway_factory=gateway_factory)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)
