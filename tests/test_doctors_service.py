"""Tests for the backend schedule client."""

import json

import httpx
import pytest

from clinic_slots.services.doctors import DoctorScheduleService


def _service(handler, token="secret-token") -> DoctorScheduleService:
    return DoctorScheduleService(
        "https://backend.test/medex-api",
        token=token,
        timeout=5,
        transport=httpx.MockTransport(handler),
    )


class TestDoctorScheduleService:
    @pytest.mark.asyncio
    async def test_list_slots_sends_bearer_token(self):
        """GET hits the doctor schedules path with the bearer token."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"isSuccess": True, "schedules": []})

        result = await _service(handler).list_slots(7)

        assert result == {"isSuccess": True, "schedules": []}
        request = seen[0]
        assert request.method == "GET"
        assert str(request.url) == "https://backend.test/medex-api/doctors/7/schedules"
        assert request.headers["Authorization"] == "Bearer secret-token"

    @pytest.mark.asyncio
    async def test_no_authorization_header_without_token(self):
        """Anonymous clients send no Authorization header."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"isSuccess": True})

        await _service(handler, token=None).list_slots(7)

        assert "Authorization" not in seen[0].headers

    @pytest.mark.asyncio
    async def test_update_slots_posts_with_put_override(self):
        """Updates are POSTed with the _method put override."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"status": "Request Was Successful"})

        slots = [{"date": "2024-03-15", "slots": []}]
        result = await _service(handler).update_slots(7, {"slots": slots})

        assert result == {"status": "Request Was Successful"}
        request = seen[0]
        assert request.method == "POST"
        assert request.url.path == "/medex-api/doctors/7/schedules"
        assert json.loads(request.content) == {"slots": slots, "_method": "put"}

    @pytest.mark.asyncio
    async def test_error_status_raises(self):
        """HTTP error statuses surface as httpx errors."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, json={"message": "Server Error"})

        with pytest.raises(httpx.HTTPStatusError):
            await _service(handler).list_slots(7)
