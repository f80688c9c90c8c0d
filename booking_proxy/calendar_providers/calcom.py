"""Cal.com provider implementation.

Bookings target an event type addressed by the host's username and the
event slug. Event types are not pre-fetched, so the requested duration is
passed through without an allow-list check.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import httpx

from booking_proxy.errors import BadUpstreamResponse, BookingError, UpstreamRejected
from booking_proxy.models.booking import BookingResult, Provider, format_instant

from .base import BookingIntent, BookingProvider, EventTypeRef, compute_end

logger = logging.getLogger(__name__)

GENERIC_CREATE_ERROR = "Failed to create booking"
DEFAULT_DURATION_MINUTES = 30
DEFAULT_HOST_NAME = "Host"


def extract_error_message(text: str) -> str:
    """Human-readable message from a Cal.com error body.

    Cal.com v2 nests errors as ``{"status": "error", "error": {"message": ...}}``
    but older endpoints answer with a flat ``message`` or a string ``error``.
    """
    try:
        data = json.loads(text)
    except ValueError:
        return text.strip() or GENERIC_CREATE_ERROR

    if not isinstance(data, dict):
        return text.strip() or GENERIC_CREATE_ERROR

    error = data.get("error")
    if isinstance(error, dict):
        nested = error.get("message")
        if isinstance(nested, str) and nested.strip():
            return nested
    message = data.get("message")
    if isinstance(message, str) and message.strip():
        return message
    if isinstance(error, str) and error.strip():
        return error
    return text.strip() or GENERIC_CREATE_ERROR


def booking_identifier(booking: dict) -> Optional[str]:
    """The booking's id; Cal.com returns ``uid`` or ``id`` depending on version."""
    for key in ("uid", "id"):
        value = booking.get(key)
        if value is not None and value != "":
            return str(value)
    return None


class CalComProvider(BookingProvider):
    """BookingProvider backed by the Cal.com API v2."""

    provider = Provider.CALCOM

    def __init__(
        self,
        token: str,
        base_url: str = "https://api.cal.com/v2",
        api_version: str = "2024-08-13",
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
        default_host_name: str = DEFAULT_HOST_NAME,
        default_duration: int = DEFAULT_DURATION_MINUTES,
    ) -> None:
        super().__init__(token, base_url, timeout=timeout, transport=transport)
        self._api_version = api_version
        self._default_host_name = default_host_name
        self._default_duration = default_duration

    async def fetch_host_name(self, client: httpx.AsyncClient) -> Optional[str]:
        """Display name of the account behind the API key, or None.

        Only used to title the booking, so every failure yields None.
        """
        try:
            resp = await self._send(client, "GET", "/me")
        except BookingError as exc:
            logger.warning("Host lookup failed: %s", exc)
            return None
        if not resp.is_success:
            logger.warning("Host lookup returned %s", resp.status_code)
            return None
        try:
            body = resp.json()
        except ValueError:
            logger.warning("Host lookup returned a non-JSON body")
            return None

        profile = body.get("data") if isinstance(body, dict) else None
        if isinstance(profile, dict):
            name = profile.get("name")
            if isinstance(name, str) and name.strip():
                return name.strip()
        return None

    def build_payload(
        self, intent: BookingIntent, duration: int, host_name: str
    ) -> dict[str, Any]:
        ref = intent.provider_ref
        payload: dict[str, Any] = {
            "start": format_instant(intent.start_at),
            "eventTypeSlug": ref.event_slug,
            "username": ref.username,
            "lengthInMinutes": duration,
            "attendee": {
                "name": intent.attendee_name,
                "email": intent.attendee_email,
                "timeZone": intent.time_zone,
            },
            "bookingFieldsResponses": {
                "title": f"{host_name} <> {intent.attendee_name}",
            },
        }
        if intent.guest_emails:
            payload["guests"] = list(intent.guest_emails)
        return payload

    async def create_booking(self, intent: BookingIntent) -> BookingResult:
        """Look up the host name, then create the booking."""
        if not isinstance(intent.provider_ref, EventTypeRef):
            raise TypeError("Cal.com bookings need an EventTypeRef")

        duration = intent.duration_minutes or self._default_duration

        async with self._client() as client:
            host_name = await self.fetch_host_name(client) or self._default_host_name
            resp = await self._send(
                client,
                "POST",
                "/bookings",
                json=self.build_payload(intent, duration, host_name),
                headers={"cal-api-version": self._api_version},
            )

        logger.info("Cal.com create booking response: %s", resp.status_code)
        if not resp.is_success:
            message = extract_error_message(resp.text)
            logger.warning(
                "Cal.com rejected booking (%s): %s", resp.status_code, message
            )
            raise UpstreamRejected(message, resp.status_code)

        body = self._parse_object(resp)
        booking = body.get("data") if isinstance(body.get("data"), dict) else body
        event_id = booking_identifier(booking)
        if event_id is None:
            raise BadUpstreamResponse("Cal.com response did not include a booking id")

        return BookingResult(
            provider=self.provider,
            event_id=event_id,
            start_at=intent.start_at,
            end_at=compute_end(intent.start_at, duration),
        )
