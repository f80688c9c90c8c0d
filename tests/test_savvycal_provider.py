"""Tests for SavvyCalProvider (mocked SavvyCal API)."""

import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from booking_proxy.calendar_providers.base import BookingIntent, LinkRef
from booking_proxy.calendar_providers.savvycal import (
    LinkDetails,
    SavvyCalProvider,
    extract_error_message,
    resolve_link_duration,
)
from booking_proxy.errors import (
    BadUpstreamResponse,
    UpstreamRejected,
    UpstreamUnavailable,
)
from booking_proxy.models.booking import Provider

START = datetime(2025, 1, 1, 10, 0, tzinfo=timezone.utc)

LINK = {"id": "abc", "name": "Intro call", "default_duration": 30, "durations": [15, 30, 60]}


def _intent(**overrides):
    fields = dict(
        provider=Provider.SAVVYCAL,
        start_at=START,
        attendee_name="Jane",
        attendee_email="jane@x.com",
        provider_ref=LinkRef("abc"),
    )
    fields.update(overrides)
    return BookingIntent(**fields)


class FakeSavvyCal:
    """httpx handler standing in for api.savvycal.com."""

    def __init__(self, link=LINK, link_status=200, create_status=201, create_body=None):
        self.link = link
        self.link_status = link_status
        self.create_status = create_status
        self.create_body = create_body
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "GET":
            return httpx.Response(self.link_status, json=self.link)
        if self.create_body is None:
            body = json.loads(request.content)
            return httpx.Response(
                self.create_status,
                json={"id": "evt_123", "start_at": body["start_at"], "end_at": body["end_at"]},
            )
        if isinstance(self.create_body, str):
            return httpx.Response(self.create_status, text=self.create_body)
        return httpx.Response(self.create_status, json=self.create_body)

    @property
    def created_payload(self) -> dict:
        return json.loads(self.requests[-1].content)


def _provider(fake) -> SavvyCalProvider:
    return SavvyCalProvider("sk_test", transport=httpx.MockTransport(fake))


# ── Duration resolution ────────────────────────────────────────────


class TestResolveLinkDuration:
    def test_uses_default_when_nothing_requested(self):
        assert resolve_link_duration(None, 30, [15, 30, 60]) == 30

    def test_keeps_allowed_request(self):
        assert resolve_link_duration(60, 30, [15, 30, 60]) == 60

    def test_disallowed_request_falls_back_to_default(self):
        assert resolve_link_duration(45, 30, [15, 30, 60]) == 30

    def test_disallowed_request_without_default_uses_first_allowed(self):
        assert resolve_link_duration(45, None, [15, 30, 60]) == 15

    def test_no_allow_list_keeps_request(self):
        assert resolve_link_duration(45, 30, []) == 45

    def test_nothing_declared_uses_fallback(self):
        assert resolve_link_duration(None, None, [], fallback=25) == 25


class TestLinkDetails:
    def test_from_api(self):
        link = LinkDetails.from_api("abc", LINK)
        assert link.default_duration == 30
        assert link.durations == [15, 30, 60]
        assert link.name == "Intro call"

    def test_boolean_durations_ignored(self):
        link = LinkDetails.from_api(
            "abc", {"default_duration": True, "durations": [True, 15, False, 30]}
        )
        assert link.default_duration is None
        assert link.durations == [15, 30]

    def test_from_wrapped_api_response(self):
        link = LinkDetails.from_api("abc", {"link": {"default_duration": 20}})
        assert link.link_id == "abc"
        assert link.default_duration == 20
        assert link.durations == []


# ── Error message extraction ───────────────────────────────────────


class TestExtractErrorMessage:
    def test_prefers_message(self):
        assert extract_error_message('{"message": "Slot taken", "error": "x"}') == "Slot taken"

    def test_then_error(self):
        assert extract_error_message('{"error": "Invalid duration"}') == "Invalid duration"

    def test_raw_text_when_not_json(self):
        assert extract_error_message("Bad Gateway") == "Bad Gateway"

    def test_generic_when_json_has_neither(self):
        assert extract_error_message('{"errors": []}') == "Failed to create booking"

    def test_generic_when_empty(self):
        assert extract_error_message("") == "Failed to create booking"


# ── create_booking ─────────────────────────────────────────────────


class TestCreateBooking:
    @pytest.mark.asyncio
    async def test_books_with_link_default_duration(self):
        fake = FakeSavvyCal()
        result = await _provider(fake).create_booking(_intent())

        assert result.success is True
        assert result.provider is Provider.SAVVYCAL
        assert result.event_id == "evt_123"
        assert result.end_at == START + timedelta(minutes=30)
        assert result.model_dump(mode="json")["end_at"] == "2025-01-01T10:30:00Z"

        get, post = fake.requests
        assert get.method == "GET"
        assert get.url.path.endswith("/links/abc")
        assert get.headers["Authorization"] == "Bearer sk_test"
        assert post.url.path.endswith("/links/abc/events")

    @pytest.mark.asyncio
    async def test_invalid_duration_is_corrected(self):
        fake = FakeSavvyCal()
        result = await _provider(fake).create_booking(_intent(duration_minutes=45))

        assert fake.created_payload["duration"] == 30
        assert result.end_at == START + timedelta(minutes=30)

    @pytest.mark.asyncio
    async def test_allowed_duration_is_kept(self):
        fake = FakeSavvyCal()
        result = await _provider(fake).create_booking(_intent(duration_minutes=60))

        assert fake.created_payload["duration"] == 60
        assert result.end_at == START + timedelta(minutes=60)

    @pytest.mark.asyncio
    async def test_payload_shape(self):
        fake = FakeSavvyCal()
        await _provider(fake).create_booking(
            _intent(time_zone="Europe/Berlin", guest_emails=["sam@x.com"])
        )

        payload = fake.created_payload
        assert payload["start_at"] == "2025-01-01T10:00:00Z"
        assert payload["end_at"] == "2025-01-01T10:30:00Z"
        assert payload["time_zone"] == "Europe/Berlin"
        assert payload["email"] == "jane@x.com"
        assert payload["display_name"] == "Jane"
        assert payload["guests"] == [{"email": "sam@x.com"}]

    @pytest.mark.asyncio
    async def test_no_guests_field_without_guests(self):
        fake = FakeSavvyCal()
        await _provider(fake).create_booking(_intent())
        assert "guests" not in fake.created_payload

    @pytest.mark.asyncio
    async def test_link_fetch_failure(self):
        fake = FakeSavvyCal(link={"error": "not found"}, link_status=404)
        with pytest.raises(UpstreamUnavailable) as exc_info:
            await _provider(fake).create_booking(_intent())
        assert exc_info.value.status_code == 500
        assert exc_info.value.message == "Failed to fetch link details"
        assert len(fake.requests) == 1

    @pytest.mark.asyncio
    async def test_rejection_mirrors_upstream_status(self):
        fake = FakeSavvyCal(create_status=422, create_body={"message": "Time is no longer available"})
        with pytest.raises(UpstreamRejected) as exc_info:
            await _provider(fake).create_booking(_intent())
        assert exc_info.value.status_code == 422
        assert exc_info.value.message == "Time is no longer available"

    @pytest.mark.asyncio
    async def test_rejection_with_plain_text_body(self):
        fake = FakeSavvyCal(create_status=503, create_body="upstream down")
        with pytest.raises(UpstreamRejected) as exc_info:
            await _provider(fake).create_booking(_intent())
        assert exc_info.value.status_code == 503
        assert exc_info.value.message == "upstream down"

    @pytest.mark.asyncio
    async def test_unparsable_success_body(self):
        fake = FakeSavvyCal(create_status=201, create_body="<html>ok</html>")
        with pytest.raises(BadUpstreamResponse) as exc_info:
            await _provider(fake).create_booking(_intent())
        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_success_body_without_id(self):
        fake = FakeSavvyCal(create_status=201, create_body={"start_at": "x"})
        with pytest.raises(BadUpstreamResponse):
            await _provider(fake).create_booking(_intent())

    @pytest.mark.asyncio
    async def test_timeout_is_upstream_unavailable(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        provider = SavvyCalProvider("sk_test", transport=httpx.MockTransport(handler))
        with pytest.raises(UpstreamUnavailable):
            await provider.create_booking(_intent())
