from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

import httpx

logger = logging.getLogger(__name__)


class ScheduleService(Protocol):
    async def list_slots(self, doctor_id: int) -> dict:
        ...

    async def update_slots(self, doctor_id: int, payload: dict) -> dict:
        ...


class DoctorScheduleService:
    """Client for the clinic backend's doctor schedule endpoints."""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 25.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url if base_url.endswith("/") else f"{base_url}/"
        self.token = token
        self.timeout = timeout
        self.transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _request(self, method: str, path: str, payload: Optional[dict[str, Any]] = None) -> dict:
        async with httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._headers(),
            timeout=self.timeout,
            transport=self.transport,
        ) as client:
            response = await client.request(method, path, json=payload)
            logger.debug("%s %s -> %s", method, path, response.status_code)
            response.raise_for_status()
            return response.json()

    async def list_slots(self, doctor_id: int) -> dict:
        return await self._request("GET", f"doctors/{doctor_id}/schedules")

    async def update_slots(self, doctor_id: int, payload: dict) -> dict:
        # The backend reads the real verb from the "_method" field of a POST body.
        body = {**payload, "_method": payload.get("_method", "put")}
        return await self._request("POST", f"doctors/{doctor_id}/schedules", body)
