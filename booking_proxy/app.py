"""FastAPI application: HTTP endpoint for the booking proxy.

Endpoints:

  POST /api/book     Create a booking on SavvyCal or Cal.com
  GET  /health       Health check, lists configured providers

The booking flow:
  1. The JSON body is parsed into a BookingRequest
  2. build_intent() checks required fields for the chosen provider
  3. BookingService forwards the intent to the provider's API
  4. Success returns the event id with start/end; any failure returns
     {"error": "..."} with the matching status code
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from booking_proxy import __version__
from booking_proxy.booking import BookingService, build_intent
from booking_proxy.config import Settings, settings as default_settings
from booking_proxy.errors import BookingError
from booking_proxy.models.booking import BookingRequest, BookingResult, ErrorResponse

# Configure root logger early so all app loggers have a handler and are
# visible when run via `uvicorn booking_proxy.app:app`.
logging.basicConfig(
    level=default_settings.log_level.upper(),
    format="%(asctime)s %(name)-20s %(levelname)-7s %(message)s",
)

log = logging.getLogger("booking_proxy.app")

_START_TIME = time.time()


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(
        ErrorResponse(error=message).model_dump(), status_code=status_code
    )


def _describe_validation_error(exc: ValidationError) -> str:
    """First pydantic error as ``Invalid <field>: <reason>``."""
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    field = ".".join(str(part) for part in first.get("loc", ())) or "request"
    return f"Invalid {field}: {first.get('msg', 'invalid value')}"


def create_app(
    settings: Optional[Settings] = None,
    service: Optional[BookingService] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or default_settings
    for warning in settings.validate_startup():
        log.warning(warning)

    app = FastAPI(
        title="Booking Proxy",
        description="Forwards meeting bookings to SavvyCal or Cal.com",
        version=__version__,
    )
    app.state.settings = settings
    app.state.booking_service = service or BookingService.from_settings(settings)

    # ── Health check ───────────────────────────────────────────

    @app.get("/health")
    async def health() -> JSONResponse:
        """Lightweight health check with the providers that have tokens."""
        uptime = round(time.time() - _START_TIME, 1)
        booking_service: BookingService = app.state.booking_service
        return JSONResponse({
            "status": "ok",
            "uptime": uptime,
            "providers": [p.value for p in booking_service.configured_providers],
        })

    # ── Booking ────────────────────────────────────────────────

    @app.post(
        "/api/book",
        response_model=BookingResult,
        responses={
            400: {"model": ErrorResponse},
            500: {"model": ErrorResponse},
            502: {"model": ErrorResponse},
        },
    )
    async def book(request: Request):
        """Create a booking on the provider named in the body.

        Errors never escape as unhandled exceptions: every failure is
        converted to ``{"error": ...}`` here.
        """
        try:
            body = await request.json()
        except ValueError:
            return _error("Request body must be valid JSON", 400)
        if not isinstance(body, dict):
            return _error("Request body must be a JSON object", 400)

        try:
            booking_request = BookingRequest.model_validate(body)
            intent = build_intent(
                booking_request, default_time_zone=settings.default_time_zone
            )
            booking_service: BookingService = app.state.booking_service
            result = await booking_service.create_booking(intent)
        except ValidationError as exc:
            message = _describe_validation_error(exc)
            log.info("Rejected booking request: %s", message)
            return _error(message, 400)
        except BookingError as exc:
            log.warning("Booking failed (%s): %s", exc.status_code, exc.message)
            return _error(exc.message, exc.status_code)
        except Exception as exc:
            log.exception("Booking error")
            return _error(str(exc) or "Internal server error", 500)

        return JSONResponse(result.model_dump(mode="json"))

    return app


# ── Module-level app instance for uvicorn ──────────────────────

app = create_app()


if __name__ == "__main__":
    import uvicorn

    log_config = uvicorn.config.LOGGING_CONFIG
    log_config["formatters"]["default"]["fmt"] = (
        "%(asctime)s %(name)-12s %(levelname)-8s %(message)s"
    )

    uvicorn.run(
        "booking_proxy.app:app",
        host=default_settings.host,
        port=default_settings.port,
        reload=default_settings.debug,
        log_config=log_config,
    )
