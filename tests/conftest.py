"""Shared fixtures for clinic_slots tests."""

import copy
from datetime import datetime
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from clinic_slots.schedule.controller import PERSIST_SUCCESS_STATUS, SlotSessionController

FIXED_NOW = datetime(2024, 3, 14, 8, 30, 45)

BACKEND_SCHEDULES = [
    {
        "date": "2024-03-15",
        "slots": [
            {"id": 1, "start_time": "09:00:00", "end_time": "10:00:00", "slot_capacity": 3, "is_active": True},
            {"id": 2, "start_time": "10:00:00", "end_time": "11:00:00", "slot_capacity": 5, "is_active": False},
        ],
    },
    {
        "date": "2024-03-16",
        "slots": [
            {"id": 3, "start_time": "14:00:00", "end_time": "15:30:00", "slot_capacity": 2, "is_active": True},
        ],
    },
]


class RecordingNotifier:
    """Collects (level, message) pairs instead of showing toasts."""

    def __init__(self) -> None:
        self.messages: list[tuple[str, str]] = []

    async def success(self, message: str) -> None:
        self.messages.append(("success", message))

    async def error(self, message: str) -> None:
        self.messages.append(("error", message))

    async def info(self, message: str) -> None:
        self.messages.append(("info", message))

    def levels(self) -> list[str]:
        return [level for level, _ in self.messages]


@pytest.fixture
def backend_schedules() -> list[dict]:
    return copy.deepcopy(BACKEND_SCHEDULES)


@pytest.fixture
def service(backend_schedules) -> AsyncMock:
    """Backend double that loads two days and accepts every update."""
    mock = AsyncMock()
    mock.list_slots.return_value = {"isSuccess": True, "schedules": backend_schedules}
    mock.update_slots.return_value = {"status": PERSIST_SUCCESS_STATUS}
    return mock


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def controller(service, notifier) -> SlotSessionController:
    return SlotSessionController(7, service, notifier, clock=lambda: FIXED_NOW)


@pytest_asyncio.fixture
async def loaded_controller(controller) -> SlotSessionController:
    assert await controller.load() is True
    return controller
