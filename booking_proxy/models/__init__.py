"""Data models for the booking endpoint."""

from .booking import BookingRequest, BookingResult, ErrorResponse, Provider

__all__ = ["BookingRequest", "BookingResult", "ErrorResponse", "Provider"]
