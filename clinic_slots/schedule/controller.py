"""Per-view orchestration of a doctor's availability slots.

One :class:`SlotSessionController` backs one open doctor-schedule view. It
loads the schedule once, lets the form edit a single day in memory, and
persists whole days. Every mutation goes encode -> persist -> merge, so the
in-memory collection only ever changes after the backend has confirmed it.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, time
from enum import Enum
from typing import Callable, Optional, Sequence

import httpx

from ..errors import (
    FetchFailure,
    PersistFailure,
    ScheduleError,
    SessionBusyError,
    SessionClosedError,
    SlotValidationError,
)
from ..notifications import LoggingNotifier, Notifier
from ..schemas import PersistResponse, ScheduleListResponse
from ..services.doctors import ScheduleService
from .models import DaySchedule, EditBuffer, EditRow
from .reconciler import merge_day, toggle_window
from .transcoder import (
    create_empty_edit_buffer,
    decode_schedules,
    edit_buffer_from_day,
    edit_buffer_to_day,
    encode_schedules,
    new_edit_row,
)

logger = logging.getLogger(__name__)

PERSIST_SUCCESS_STATUS = "Request Was Successful"

# Failures that end an operation with an error notification instead of an exception.
_OPERATION_ERRORS = (ScheduleError, httpx.HTTPError, ValueError)


class Phase(str, Enum):
    LOADING = "loading"
    READY = "ready"
    EDITING = "editing"
    SAVING = "saving"
    TOGGLING = "toggling"


def _describe(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


class SlotSessionController:
    def __init__(
        self,
        doctor_id: int,
        service: ScheduleService,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.doctor_id = doctor_id
        self.service = service
        self.notifier = notifier or LoggingNotifier()
        self.clock = clock
        self.days: list[DaySchedule] = []
        self.buffer: EditBuffer = create_empty_edit_buffer(self.clock())
        self.phase = Phase.LOADING
        self.load_error: Optional[str] = None
        self.closed = False
        self._fetching = False

    @property
    def is_loading(self) -> bool:
        return self.phase is Phase.LOADING

    @property
    def is_saving(self) -> bool:
        return self.phase in (Phase.SAVING, Phase.TOGGLING)

    def _ensure_open(self) -> None:
        if self.closed:
            raise SessionClosedError(f"Schedule view for doctor {self.doctor_id} is closed")

    def _ensure_idle(self) -> None:
        self._ensure_open()
        if self.is_saving:
            raise SessionBusyError("A save is already in progress")
        if self.is_loading:
            raise SessionBusyError("The schedule is still loading")

    def _resting_phase(self) -> Phase:
        return Phase.EDITING if self.buffer.is_editing_existing else Phase.READY

    async def _report(self, exc: BaseException, message: str) -> None:
        logger.warning("%s for doctor %s: %s", message, self.doctor_id, exc, exc_info=exc)
        await self.notifier.error(f"{message}: {_describe(exc)}")

    # Loading

    async def load(self) -> bool:
        """Fetch the full schedule.

        On failure the current collection is kept, so a view that never
        loaded stays empty and a failed reload keeps the last confirmed days.
        Edits, saves and toggles are refused until the fetch settles.
        """
        self._ensure_open()
        if self._fetching:
            raise SessionBusyError("The schedule is already loading")
        if self.is_saving:
            raise SessionBusyError("A save is already in progress")
        self._fetching = True
        self.phase = Phase.LOADING
        self.load_error = None
        try:
            response = ScheduleListResponse.model_validate(await self.service.list_slots(self.doctor_id))
            if not response.is_success:
                raise FetchFailure("Backend reported an unsuccessful request")
            days = decode_schedules(response.schedules)
        except _OPERATION_ERRORS as exc:
            if self.closed:
                return False
            self.load_error = _describe(exc)
            self.phase = self._resting_phase()
            await self._report(exc, "Error fetching slots")
            return False
        finally:
            self._fetching = False
        if self.closed:
            logger.debug("Dropping schedule for doctor %s, view closed", self.doctor_id)
            return False
        self.days = days
        self.phase = self._resting_phase()
        logger.info("Loaded %d schedule days for doctor %s", len(days), self.doctor_id)
        return True

    # Edit buffer

    async def edit_day(self, day_index: int) -> None:
        self._ensure_idle()
        day = self._day(day_index)
        buffer = edit_buffer_from_day(day)
        if not buffer.rows:
            buffer.rows.append(new_edit_row(self.clock()))
        self.buffer = buffer
        self.phase = Phase.EDITING
        await self.notifier.info(f"Now editing slots for {day.display_date}")

    def cancel_edit(self) -> None:
        self._ensure_open()
        self.buffer = create_empty_edit_buffer(self.clock())
        if self.phase is Phase.EDITING:
            self.phase = Phase.READY

    def set_date(self, value: date) -> None:
        self._ensure_open()
        self.buffer.date = value

    def set_time(self, index: int, field: str, value: time) -> None:
        self._ensure_open()
        if field not in ("start_time", "end_time"):
            raise ValueError(f"Unknown time field {field!r}")
        setattr(self._row(index), field, value.replace(second=0, microsecond=0))

    def set_capacity(self, index: int, value: str) -> None:
        self._ensure_open()
        self._row(index).capacity = value

    def add_row(self) -> EditRow:
        self._ensure_open()
        row = new_edit_row(self.clock())
        self.buffer.rows.append(row)
        return row

    def remove_row(self, index: int) -> bool:
        """Drop one draft row. The last remaining row is never removed."""
        self._ensure_open()
        self._row(index)
        if len(self.buffer.rows) <= 1:
            return False
        del self.buffer.rows[index]
        return True

    # Persisting

    async def submit(self) -> bool:
        """Persist the buffer's day and merge it into the collection."""
        self._ensure_idle()
        try:
            day = edit_buffer_to_day(self.buffer)
        except SlotValidationError as exc:
            await self._report(exc, "Invalid slots")
            return False
        merged = merge_day(self.days, day)
        previous = self.phase
        self.phase = Phase.SAVING
        try:
            await self._persist(merged)
        except _OPERATION_ERRORS as exc:
            if self.closed:
                return False
            self.phase = previous
            await self._report(exc, "Error updating slots")
            return False
        if self.closed:
            return False
        self.days = merged
        self.buffer = create_empty_edit_buffer(self.clock())
        self.phase = Phase.READY
        await self.notifier.success("Slots updated successfully")
        return True

    async def toggle(self, day_index: int, window_index: int) -> bool:
        """Flip one window's active flag and persist the whole collection."""
        self._ensure_idle()
        toggled = toggle_window(self.days, day_index, window_index)
        previous = self.phase
        self.phase = Phase.TOGGLING
        try:
            await self._persist(toggled)
        except _OPERATION_ERRORS as exc:
            if self.closed:
                return False
            self.phase = previous
            await self._report(exc, "Error updating slots")
            return False
        if self.closed:
            return False
        self.days = toggled
        self.phase = previous
        await self.notifier.success("Slots updated successfully")
        return True

    async def _persist(self, days: Sequence[DaySchedule]) -> None:
        payload = {"slots": encode_schedules(days), "_method": "put"}
        response = PersistResponse.model_validate(await self.service.update_slots(self.doctor_id, payload))
        if response.status != PERSIST_SUCCESS_STATUS:
            raise PersistFailure("Failed to save slots")
        logger.info("Saved %d schedule days for doctor %s", len(days), self.doctor_id)

    def close(self) -> None:
        """Detach from the view; results of requests still in flight are dropped."""
        self.closed = True

    def _day(self, index: int) -> DaySchedule:
        if not 0 <= index < len(self.days):
            raise IndexError(f"No day at index {index}")
        return self.days[index]

    def _row(self, index: int) -> EditRow:
        if not 0 <= index < len(self.buffer.rows):
            raise IndexError(f"No time slot row at index {index}")
        return self.buffer.rows[index]
