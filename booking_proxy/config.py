"""Application configuration via environment variables."""

from __future__ import annotations

import logging

from pydantic_settings import BaseSettings

log = logging.getLogger("booking_proxy.config")

_PLACEHOLDERS = {"sk_...", "cal_live_...", "changeme"}


def token_configured(token: str) -> bool:
    """True when ``token`` is set and is not an example placeholder."""
    return bool(token) and token not in _PLACEHOLDERS


class Settings(BaseSettings):
    # SavvyCal (link-based provider)
    savvycal_token: str = ""
    savvycal_base_url: str = "https://api.savvycal.com/v1"

    # Cal.com (username / event-slug provider)
    calcom_api_key: str = ""
    calcom_base_url: str = "https://api.cal.com/v2"
    calcom_api_version: str = "2024-08-13"

    # Booking defaults
    default_time_zone: str = "America/New_York"
    default_duration_minutes: int = 30
    default_host_name: str = "Host"

    # Outbound HTTP
    upstream_timeout_seconds: float = 15.0

    # Server
    host: str = "127.0.0.1"
    port: int = 8080
    debug: bool = False
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    def validate_startup(self) -> list[str]:
        """Check provider tokens at startup. Returns warnings, never raises.

        A missing token disables that provider only; requests routed to it
        get a configuration error instead of crashing the server.
        """
        warnings: list[str] = []

        if not token_configured(self.savvycal_token):
            warnings.append(
                "SAVVYCAL_TOKEN not set. SavvyCal bookings are disabled."
            )
        if not token_configured(self.calcom_api_key):
            warnings.append(
                "CALCOM_API_KEY not set. Cal.com bookings are disabled."
            )
        if self.upstream_timeout_seconds <= 0:
            warnings.append(
                "UPSTREAM_TIMEOUT_SECONDS must be positive; outbound calls may hang."
            )

        return warnings


settings = Settings()
