import uuid
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from calendar_api.auth import CredentialStore
from calendar_api.calendar_service import CalendarGateway
from calendar_api.config import AppConfig, load_config
from calendar_api.logging_config import logger, set_request_id, setup_logging
from calendar_api.routes import router
from calendar_api.schemas import lacks_slot_fields

REQUEST_ID_HEADER = "X-Request-ID"
SLOT_PATHS = ("/availability", "/book")


def create_app(config: Optional[AppConfig] = None,
               gateway_factory: Optional[Callable[..., CalendarGateway]] = None) -> FastAPI:
    """Build the API with its configuration resolved once, up front"""
    config = config or load_config()
    config.validate()
    setup_logging(config.log_level, config.log_file)

    app = FastAPI(
        title="Calendar Booking API",
        description="Availability checks and appointment booking on Google Calendar for chat clients",
        version="1.0.0",
    )
    app.state.config = config
    app.state.credentials = CredentialStore.from_config(config)
    app.state.gateway_factory = gateway_factory or CalendarGateway.from_credentials

    if not config.oauth_client.get("client_id"):
        logger.warning("No OAuth client configured; set CREDENTIALS_JSON or provide credentials.json")
    if app.state.credentials.current() is None:
        logger.warning("No OAuth tokens loaded; complete /auth once before using calendar endpoints")

    @app.middleware("http")
    async def assign_request_id(request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:12]
        set_request_id(request_id)
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    @app.exception_handler(RequestValidationError)
    async def invalid_body(request: Request, exc: RequestValidationError):
        logger.warning(f"Invalid request body on {request.url.path}: {exc.errors()}")
        if request.url.path in SLOT_PATHS and lacks_slot_fields(exc.body):
            return JSONResponse(status_code=400, content={"error": "missing_fields"})
        return JSONResponse(status_code=400, content={"error": "invalid_fields"})

    app.include_router(router)

    logger.info(f"Calendar Booking API initialized (default timezone {config.default_timezone})")
    return app


if __name__ == "__main__":
    import uvicorn
    settings = load_config()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)
