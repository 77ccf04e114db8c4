import asyncio
from typing import List, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse

from calendar_api import auth
from calendar_api.auth import CredentialStore
from calendar_api.availability import AvailabilityEngine
from calendar_api.booking import BookingService
from calendar_api.calendar_service import CalendarGateway
from calendar_api.config import AppConfig
from calendar_api.errors import AuthenticationError, ValidationError
from calendar_api.logging_config import logger
from calendar_api.schemas import (
    AvailabilityRequest,
    AvailabilityResponse,
    BookingRequest,
    BookingResponse,
    CalendarItem,
    CreateCalendarRequest,
    CreateCalendarResponse,
)
from calendar_api.time_window import get_timezone

router = APIRouter(tags=["calendar"])


def get_config(request: Request) -> AppConfig:
    return request.app.state.config


def get_credential_store(request: Request) -> CredentialStore:
    return request.app.state.credentials


def open_gateway(request: Request) -> CalendarGateway:
    """Run the auth guard, then build a gateway bound to a copy of the current credential"""
    credentials = get_credential_store(request).snapshot()
    return request.app.state.gateway_factory(credentials)


def _bad_request(error: ValidationError) -> JSONResponse:
    logger.warning(f"Rejected request: {error}")
    return JSONResponse(status_code=400, content={"error": error.code})


@router.get("/", response_class=PlainTextResponse)
@router.get("/health", response_class=PlainTextResponse)
async def health_check():
    """Liveness probe"""
    return "ok"


@router.get("/auth", response_class=HTMLResponse)
async def start_authorization(config: AppConfig = Depends(get_config)):
    """Link to the Google consent screen"""
    try:
        url = auth.authorization_url(config)
    except AuthenticationError as e:
        logger.error(f"Cannot start authorization: {e}")
        return PlainTextResponse("Auth error", status_code=500)
    return f'<a href="{url}">Authorize Google Calendar</a>'


@router.get("/oauth2callback", response_class=PlainTextResponse)
async def oauth2_callback(
    code: Optional[str] = None,
    config: AppConfig = Depends(get_config),
    store: CredentialStore = Depends(get_credential_store),
):
    """Exchange the consent code, install the credential and try to persist it"""
    if not code:
        return PlainTextResponse("Missing code", status_code=400)

    try:
        credentials = await asyncio.to_thread(auth.exchange_code, config, code)
    except Exception as e:
        logger.exception(f"OAuth code exchange failed: {e}")
        return PlainTextResponse("Auth error", status_code=500)

    store.replace(credentials)
    if await asyncio.to_thread(auth.persist_tokens, credentials, config.token_path):
        return "Tokens saved. Copy tokens.json into the TOKENS_JSON environment variable to keep them across deploys."
    return (
        "Tokens active for this process but could not be written to disk. "
        "Copy the token JSON from the server log into the TOKENS_JSON environment variable."
    )


@router.get("/calendars/list", response_model=List[CalendarItem])
async def list_calendars(request: Request):
    """Calendars visible to the authorized account (used to look up ids)"""
    try:
        gateway = open_gateway(request)
        calendars = await gateway.list_calendars()
    except Exception as e:
        logger.error(f"Error listing calendars: {e}")
        return JSONResponse(status_code=500, content={"error": "list_failed"})

    return [CalendarItem.from_summary(item) for item in calendars]


@router.post("/calendars/create", response_model=CreateCalendarResponse)
async def create_calendar(
    payload: CreateCalendarRequest,
    request: Request,
    config: AppConfig = Depends(get_config),
):
    """Create a secondary calendar"""
    if not payload.summary:
        return _bad_request(ValidationError("summary is required", code="missing_fields"))
    timezone = payload.time_zone or config.default_timezone
    try:
        get_timezone(timezone)
    except ValidationError as e:
        return _bad_request(e)

    try:
        gateway = open_gateway(request)
        calendar_id = await gateway.create_calendar(payload.summary, timezone)
    except Exception as e:
        logger.error(f"Error creating calendar: {e}")
        return JSONResponse(status_code=500, content={"ok": False, "error": "create_calendar_failed"})

    return CreateCalendarResponse(ok=True, id=calendar_id)


@router.post("/availability", response_model=AvailabilityResponse)
async def check_availability(
    payload: AvailabilityRequest,
    request: Request,
    config: AppConfig = Depends(get_config),
):
    """Check a slot and suggest alternatives when it is taken"""
    try:
        query = payload.to_query(config.default_timezone)
        query.validate()
    except ValidationError as e:
        return _bad_request(e)

    try:
        engine = AvailabilityEngine(open_gateway(request))
        result = await engine.check(query)
    except Exception as e:
        logger.error(f"Error checking availability: {e}")
        return JSONResponse(status_code=500, content={"error": "availability_failed"})

    return AvailabilityResponse(disponible=result.available, sugerencias=result.suggestions)


@router.post("/book", response_model=BookingResponse)
async def book_appointment(
    payload: BookingRequest,
    request: Request,
    config: AppConfig = Depends(get_config),
):
    """Create the appointment event; availability is not re-checked"""
    try:
        command = payload.to_command(config.default_timezone)
        command.window()
    except ValidationError as e:
        return _bad_request(e)

    try:
        service = BookingService(open_gateway(request))
        result = await service.book(command)
    except Exception as e:
        logger.error(f"Error booking appointment: {e}")
        return JSONResponse(status_code=500, content={"ok": False, "error": "booking_failed"})

    return BookingResponse(ok=result.ok, event_id=result.event_id)
