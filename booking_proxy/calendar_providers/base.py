"""Abstract base class for booking providers.

Defines the normalized booking intent and the interface every upstream
scheduling API (SavvyCal, Cal.com) implements.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional, Union

import httpx

from booking_proxy.errors import BadUpstreamResponse, UpstreamUnavailable
from booking_proxy.models.booking import BookingResult, Provider

logger = logging.getLogger(__name__)

DEFAULT_TIME_ZONE = "America/New_York"


@dataclass(frozen=True)
class LinkRef:
    """A SavvyCal scheduling link."""

    link_id: str


@dataclass(frozen=True)
class EventTypeRef:
    """A Cal.com event type, scoped to its host's username."""

    username: str
    event_slug: str


@dataclass
class BookingIntent:
    """A validated booking request, ready to be sent upstream."""

    provider: Provider
    start_at: datetime
    attendee_name: str
    attendee_email: str
    provider_ref: Union[LinkRef, EventTypeRef]
    duration_minutes: Optional[int] = None
    time_zone: str = DEFAULT_TIME_ZONE
    guest_emails: list[str] = field(default_factory=list)


def compute_end(start_at: datetime, duration_minutes: int) -> datetime:
    return start_at + timedelta(minutes=duration_minutes)


class BookingProvider(ABC):
    """Abstract scheduling backend.

    Subclasses translate a ``BookingIntent`` into their API's payload and
    normalize the response into a ``BookingResult``. Failures are raised as
    ``BookingError`` subclasses.
    """

    provider: Provider

    def __init__(
        self,
        token: str,
        base_url: str,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._token = token
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._token}"}

    def _client(self) -> httpx.AsyncClient:
        """One client per booking; the caller closes it with ``async with``."""
        return httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._headers(),
            timeout=self._timeout,
            transport=self._transport,
        )

    async def _send(
        self, client: httpx.AsyncClient, method: str, path: str, **kwargs: Any
    ) -> httpx.Response:
        """Issue a request, turning network failures into ``UpstreamUnavailable``."""
        try:
            return await client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            logger.error("%s %s timed out: %s", method, path, exc)
            raise UpstreamUnavailable(
                f"{self.provider.value} request timed out"
            ) from exc
        except httpx.RequestError as exc:
            logger.error("%s %s failed: %s", method, path, exc)
            raise UpstreamUnavailable(
                f"{self.provider.value} is unreachable"
            ) from exc

    @staticmethod
    def _parse_object(response: httpx.Response) -> dict:
        """Parse a success body as a JSON object or raise ``BadUpstreamResponse``."""
        try:
            data = response.json()
        except ValueError as exc:
            raise BadUpstreamResponse(
                "Upstream returned an unreadable booking response"
            ) from exc
        if not isinstance(data, dict):
            raise BadUpstreamResponse(
                "Upstream returned an unreadable booking response"
            )
        return data

    # ------------------------------------------------------------------
    # BookingProvider interface
    # ------------------------------------------------------------------

    @abstractmethod
    async def create_booking(self, intent: BookingIntent) -> BookingResult:
        """Create the event upstream.

        Args:
            intent: Validated booking intent whose ``provider_ref`` matches
                this provider.

        Returns:
            BookingResult with the upstream event id and the start/end
            instants of the booked slot.
        """
