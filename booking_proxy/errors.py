"""Booking error taxonomy.

Every failure the proxy can report is a ``BookingError`` carrying the HTTP
status the endpoint should answer with:

  BookingValidationError  400  missing or malformed request fields
  ConfigurationError      500  provider token not configured
  UpstreamUnavailable     500  metadata fetch failed, network error, timeout
  UpstreamRejected        *    creation call rejected (upstream's status)
  BadUpstreamResponse     502  success status but unparsable body
"""

from __future__ import annotations


class BookingError(Exception):
    """Base class for errors converted to ``{"error": ...}`` responses."""

    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class BookingValidationError(BookingError):
    status_code = 400


class ConfigurationError(BookingError):
    status_code = 500


class UpstreamUnavailable(BookingError):
    status_code = 500


class UpstreamRejected(BookingError):
    """The provider refused to create the booking."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message, status_code)


class BadUpstreamResponse(BookingError):
    status_code = 502
