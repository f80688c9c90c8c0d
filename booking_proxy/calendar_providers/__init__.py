"""Booking provider abstractions and implementations."""

from .base import BookingIntent, BookingProvider, EventTypeRef, LinkRef
from .calcom import CalComProvider
from .savvycal import SavvyCalProvider

__all__ = [
    "BookingIntent",
    "BookingProvider",
    "CalComProvider",
    "EventTypeRef",
    "LinkRef",
    "SavvyCalProvider",
]
