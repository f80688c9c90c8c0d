"""Booking request translator.

Turns an inbound ``BookingRequest`` into a validated ``BookingIntent`` and
routes it to the provider it names:

  1. ``build_intent`` checks the fields every booking needs, then the
     identifiers the chosen provider needs (400 on anything missing)
  2. ``BookingService.create_booking`` picks the configured provider
     (500 if its token is not set) and returns its ``BookingResult``

Upstream failures surface as ``BookingError`` subclasses; the HTTP layer
turns them into ``{"error": ...}`` responses.
"""

from __future__ import annotations

import logging
from datetime import timezone
from typing import Optional

import httpx

from booking_proxy.calendar_providers.base import (
    DEFAULT_TIME_ZONE,
    BookingIntent,
    BookingProvider,
    EventTypeRef,
    LinkRef,
    compute_end,
)
from booking_proxy.calendar_providers.calcom import CalComProvider
from booking_proxy.calendar_providers.savvycal import SavvyCalProvider
from booking_proxy.config import Settings, token_configured
from booking_proxy.errors import BookingValidationError, ConfigurationError
from booking_proxy.models.booking import BookingRequest, BookingResult, Provider

log = logging.getLogger("booking_proxy.booking")

__all__ = ["BookingService", "build_intent", "compute_end", "redact_pii"]

_TOKEN_ENV = {
    Provider.SAVVYCAL: "SAVVYCAL_TOKEN",
    Provider.CALCOM: "CALCOM_API_KEY",
}


def redact_pii(value: str) -> str:
    """Mask PII for logging: show first 3 and last 2 chars only."""
    if not value or len(value) <= 5:
        return "***"
    return value[:3] + "***" + value[-2:]


def _present(value: Optional[str]) -> bool:
    return bool(value and value.strip())


def build_intent(
    request: BookingRequest, default_time_zone: str = DEFAULT_TIME_ZONE
) -> BookingIntent:
    """Validate ``request`` and normalize it into a ``BookingIntent``.

    Raises:
        BookingValidationError: a required field is missing or blank.
    """
    missing: list[str] = []
    if request.start_at is None:
        missing.append("start_at")
    if not _present(request.attendee_name):
        missing.append("attendee_name")
    if not _present(request.attendee_email):
        missing.append("attendee_email")

    ref: LinkRef | EventTypeRef | None = None
    if request.provider is Provider.CALCOM:
        if not _present(request.username):
            missing.append("username")
        if not _present(request.event_slug):
            missing.append("event_slug")
        if not missing:
            ref = EventTypeRef(
                username=request.username.strip(),
                event_slug=request.event_slug.strip(),
            )
    else:
        if not _present(request.link_id):
            missing.append("link_id")
        if not missing:
            ref = LinkRef(link_id=request.link_id.strip())

    if missing:
        raise BookingValidationError(
            f"Missing required fields: {', '.join(missing)}"
        )

    start_at = request.start_at
    if start_at.tzinfo is None:
        start_at = start_at.replace(tzinfo=timezone.utc)

    return BookingIntent(
        provider=request.provider,
        start_at=start_at,
        attendee_name=request.attendee_name.strip(),
        attendee_email=request.attendee_email.strip(),
        provider_ref=ref,
        duration_minutes=request.duration,
        time_zone=request.time_zone or default_time_zone,
        guest_emails=list(request.guests),
    )


class BookingService:
    """Dispatches booking intents to the configured providers."""

    def __init__(self, providers: dict[Provider, BookingProvider]) -> None:
        self._providers = dict(providers)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "BookingService":
        """Build a provider for every token that is configured."""
        providers: dict[Provider, BookingProvider] = {}
        if token_configured(settings.savvycal_token):
            providers[Provider.SAVVYCAL] = SavvyCalProvider(
                settings.savvycal_token,
                base_url=settings.savvycal_base_url,
                timeout=settings.upstream_timeout_seconds,
                transport=transport,
                fallback_duration=settings.default_duration_minutes,
            )
        if token_configured(settings.calcom_api_key):
            providers[Provider.CALCOM] = CalComProvider(
                settings.calcom_api_key,
                base_url=settings.calcom_base_url,
                api_version=settings.calcom_api_version,
                timeout=settings.upstream_timeout_seconds,
                transport=transport,
                default_host_name=settings.default_host_name,
                default_duration=settings.default_duration_minutes,
            )
        return cls(providers)

    @property
    def configured_providers(self) -> list[Provider]:
        return [p for p in Provider if p in self._providers]

    def provider_for(self, provider: Optional[Provider]) -> BookingProvider:
        provider = provider or Provider.SAVVYCAL
        try:
            return self._providers[provider]
        except KeyError:
            raise ConfigurationError(
                f"Server not configured - missing {_TOKEN_ENV[provider]}"
            ) from None

    async def create_booking(self, intent: BookingIntent) -> BookingResult:
        backend = self.provider_for(intent.provider)
        log.info(
            "Booking %s for %s at %s",
            intent.provider.value,
            redact_pii(intent.attendee_email),
            intent.start_at.isoformat(),
        )
        result = await backend.create_booking(intent)
        log.info(
            "Booked %s event %s (%s - %s)",
            result.provider.value,
            result.event_id,
            result.start_at.isoformat(),
            result.end_at.isoformat(),
        )
        return result
