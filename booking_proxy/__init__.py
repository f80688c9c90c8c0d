"""Booking proxy: forwards booking requests to SavvyCal or Cal.com."""

__version__ = "0.1.0"
