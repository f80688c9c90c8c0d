"""Pydantic models for booking requests and responses."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_serializer, field_validator


class Provider(str, Enum):
    """Upstream scheduling API a booking is forwarded to."""

    SAVVYCAL = "savvycal"  # link-based
    CALCOM = "calcom"  # username + event slug


# Generic names sent by form clients that do not know the vendor.
_PROVIDER_ALIASES = {
    "providera": Provider.SAVVYCAL,
    "providerb": Provider.CALCOM,
}


def format_instant(dt: datetime) -> str:
    """Render an instant in UTC as ``YYYY-MM-DDTHH:MM:SSZ``.

    Sub-second instants keep milliseconds (``...SS.mmmZ``).
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    timespec = "milliseconds" if dt.microsecond else "seconds"
    return dt.isoformat(timespec=timespec).replace("+00:00", "Z")


class BookingRequest(BaseModel):
    """Inbound JSON body for ``POST /api/book``.

    Every field is optional at parse time; required fields are checked per
    provider when the request is turned into a booking intent so that any
    missing field is reported as a 400.
    """

    provider: Provider = Provider.SAVVYCAL
    start_at: Optional[datetime] = None
    duration: Optional[int] = Field(default=None, gt=0)
    attendee_name: Optional[str] = None
    attendee_email: Optional[str] = None
    time_zone: Optional[str] = None
    guests: list[str] = Field(default_factory=list)

    # SavvyCal
    link_id: Optional[str] = None

    # Cal.com
    username: Optional[str] = None
    event_slug: Optional[str] = None

    @field_validator("provider", mode="before")
    @classmethod
    def _default_provider(cls, value):
        if value is None or value == "":
            return Provider.SAVVYCAL
        if isinstance(value, str):
            name = value.strip().lower()
            return _PROVIDER_ALIASES.get(name, name)
        return value

    @field_validator("start_at", "duration", "time_zone", mode="before")
    @classmethod
    def _blank_is_missing(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("guests", mode="before")
    @classmethod
    def _guests_list(cls, value):
        if value is None:
            return []
        return value

    @field_validator("guests")
    @classmethod
    def _drop_blank_guests(cls, value: list[str]) -> list[str]:
        return [g.strip() for g in value if g and g.strip()]


class BookingResult(BaseModel):
    """Successful booking, as returned to the caller."""

    success: bool = True
    provider: Provider
    event_id: str
    start_at: datetime
    end_at: datetime

    @field_serializer("start_at", "end_at")
    def _serialize_instant(self, value: datetime) -> str:
        return format_instant(value)


class ErrorResponse(BaseModel):
    error: str
