"""SavvyCal provider implementation.

Bookings are made against a scheduling *link*. The link is fetched first so
that the requested duration can be checked against the durations the link
accepts; an unsupported duration is silently corrected rather than rejected.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from booking_proxy.errors import (
    BadUpstreamResponse,
    UpstreamRejected,
    UpstreamUnavailable,
)
from booking_proxy.models.booking import BookingResult, Provider, format_instant

from .base import BookingIntent, BookingProvider, LinkRef, compute_end

logger = logging.getLogger(__name__)

GENERIC_CREATE_ERROR = "Failed to create booking"
FALLBACK_DURATION_MINUTES = 30


def _is_minutes(value: Any) -> bool:
    # JSON true/false decode to bool, which is an int subclass.
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass
class LinkDetails:
    """The parts of a SavvyCal link that matter for booking."""

    link_id: str
    default_duration: Optional[int] = None
    durations: list[int] = field(default_factory=list)
    name: str = ""

    @classmethod
    def from_api(cls, link_id: str, data: dict) -> "LinkDetails":
        # Some responses wrap the link in a "link" key.
        if isinstance(data.get("link"), dict):
            data = data["link"]
        durations = [d for d in data.get("durations") or [] if _is_minutes(d)]
        default = data.get("default_duration")
        return cls(
            link_id=data.get("id") or link_id,
            default_duration=default if _is_minutes(default) else None,
            durations=durations,
            name=data.get("name") or "",
        )


def resolve_link_duration(
    requested: Optional[int],
    default_duration: Optional[int],
    durations: list[int],
    fallback: int = FALLBACK_DURATION_MINUTES,
) -> int:
    """Pick a duration the link will accept.

    The requested duration wins when the link has no allow-list or the
    value is on it. Otherwise the link's default is used, then its first
    allowed duration. ``fallback`` covers links that declare neither.
    """
    candidate = requested or default_duration
    if durations and candidate not in durations:
        candidate = default_duration or durations[0]
    return candidate or fallback


def extract_error_message(text: str) -> str:
    """Human-readable message from a SavvyCal error body.

    Order: ``message``, then ``error``, then the raw body, then a generic
    fallback.
    """
    try:
        data = json.loads(text)
    except ValueError:
        return text.strip() or GENERIC_CREATE_ERROR

    if isinstance(data, dict):
        for key in ("message", "error"):
            value = data.get(key)
            if isinstance(value, str) and value.strip():
                return value
        return GENERIC_CREATE_ERROR
    return text.strip() or GENERIC_CREATE_ERROR


class SavvyCalProvider(BookingProvider):
    """BookingProvider backed by the SavvyCal REST API v1."""

    provider = Provider.SAVVYCAL

    def __init__(
        self,
        token: str,
        base_url: str = "https://api.savvycal.com/v1",
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
        fallback_duration: int = FALLBACK_DURATION_MINUTES,
    ) -> None:
        super().__init__(token, base_url, timeout=timeout, transport=transport)
        self._fallback_duration = fallback_duration

    async def fetch_link(self, client: httpx.AsyncClient, link_id: str) -> LinkDetails:
        """Fetch link metadata. Any failure is ``UpstreamUnavailable``."""
        resp = await self._send(client, "GET", f"/links/{link_id}")
        if not resp.is_success:
            logger.warning("Failed to fetch link %s: %s", link_id, resp.status_code)
            raise UpstreamUnavailable("Failed to fetch link details")
        try:
            data = resp.json()
        except ValueError as exc:
            logger.warning("Link %s returned a non-JSON body", link_id)
            raise UpstreamUnavailable("Failed to fetch link details") from exc
        if not isinstance(data, dict):
            raise UpstreamUnavailable("Failed to fetch link details")

        logger.debug("Link data: %s", data)
        return LinkDetails.from_api(link_id, data)

    def build_payload(self, intent: BookingIntent, duration: int) -> dict[str, Any]:
        end_at = compute_end(intent.start_at, duration)
        payload: dict[str, Any] = {
            "start_at": format_instant(intent.start_at),
            "end_at": format_instant(end_at),
            "duration": duration,
            "time_zone": intent.time_zone,
            "email": intent.attendee_email,
            "display_name": intent.attendee_name,
        }
        if intent.guest_emails:
            payload["guests"] = [{"email": addr} for addr in intent.guest_emails]
        return payload

    async def create_booking(self, intent: BookingIntent) -> BookingResult:
        """Fetch the link, correct the duration, then create the event."""
        ref = intent.provider_ref
        if not isinstance(ref, LinkRef):
            raise TypeError("SavvyCal bookings need a LinkRef")

        async with self._client() as client:
            link = await self.fetch_link(client, ref.link_id)

            duration = resolve_link_duration(
                intent.duration_minutes,
                link.default_duration,
                link.durations,
                fallback=self._fallback_duration,
            )
            if intent.duration_minutes and duration != intent.duration_minutes:
                logger.info(
                    "Duration %s not in available durations %s, using %s",
                    intent.duration_minutes,
                    link.durations,
                    duration,
                )

            resp = await self._send(
                client,
                "POST",
                f"/links/{ref.link_id}/events",
                json=self.build_payload(intent, duration),
            )

        logger.info("SavvyCal create event response: %s", resp.status_code)
        if not resp.is_success:
            message = extract_error_message(resp.text)
            logger.warning(
                "SavvyCal rejected booking (%s): %s", resp.status_code, message
            )
            raise UpstreamRejected(message, resp.status_code)

        event = self._parse_object(resp)
        event_id = event.get("id")
        if event_id is None:
            raise BadUpstreamResponse("SavvyCal response did not include an event id")
        return BookingResult(
            provider=self.provider,
            event_id=str(event_id),
            start_at=intent.start_at,
            end_at=compute_end(intent.start_at, duration),
        )
