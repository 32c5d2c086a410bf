from __future__ import annotations

import logging
from typing import Protocol


class Notifier(Protocol):
    async def success(self, message: str) -> None:
        ...

    async def error(self, message: str) -> None:
        ...

    async def info(self, message: str) -> None:
        ...


class LoggingNotifier:
    """Writes notifications to the log; used when no UI is attached."""

    def __init__(self, name: str = "clinic_slots.notifications") -> None:
        self.logger = logging.getLogger(name)

    async def success(self, message: str) -> None:
        self.logger.info("success: %s", message)

    async def error(self, message: str) -> None:
        self.logger.error("error: %s", message)

    async def info(self, message: str) -> None:
        self.logger.info("info: %s", message)
