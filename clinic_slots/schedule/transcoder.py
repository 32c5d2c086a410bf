"""Conversions between the backend schedule shape and in-memory schedule types.

The backend speaks in per-date slot lists::

    {"date": "2024-03-15",
     "slots": [{"id": 1, "start_time": "09:00:00", "end_time": "10:00:00",
                "slot_capacity": 3, "is_active": true}]}

In memory a day is a :class:`DaySchedule` keyed by its ISO date, and the
form a user edits is an :class:`EditBuffer` holding free-text capacities.
"""
from __future__ import annotations

from datetime import date, datetime, time
from typing import Any, Iterable, Optional

from dateutil import parser as date_parser
from pydantic import ValidationError

from ..errors import SlotParseError, SlotValidationError
from ..schemas import BackendDaySchedule, BackendSlot
from .models import (
    TIME_RANGE_SEPARATOR,
    DaySchedule,
    EditBuffer,
    EditRow,
    TimeWindow,
    format_clock,
    format_display_date,
    format_time_range,
)

__all__ = [
    "create_empty_edit_buffer",
    "decode_schedules",
    "edit_buffer_from_day",
    "edit_buffer_to_day",
    "encode_schedules",
    "format_display_date",
    "format_time_range",
    "parse_clock",
    "parse_display_date",
    "parse_time_range",
]


def parse_clock(text: str) -> time:
    """Parse ``HH:MM`` or ``HH:MM:SS`` into a minute-precision time."""
    cleaned = text.strip()
    for fmt in ("%H:%M:%S", "%H:%M"):
        try:
            return datetime.strptime(cleaned, fmt).time().replace(second=0)
        except ValueError:
            continue
    raise SlotParseError(f"Invalid time {text!r}, expected HH:MM")


def parse_display_date(text: str) -> date:
    try:
        parsed = datetime.strptime(text.strip(), "%A, %B %d, %Y").date()
    except ValueError as exc:
        raise SlotParseError(f"Invalid date {text!r}, expected e.g. 'Friday, March 15, 2024'") from exc
    if format_display_date(parsed) != text.strip():
        # strptime ignores a weekday that disagrees with the date
        raise SlotParseError(f"Invalid date {text!r}, weekday does not match")
    return parsed


def parse_time_range(text: str) -> tuple[time, time]:
    parts = text.split(TIME_RANGE_SEPARATOR)
    if len(parts) != 2:
        raise SlotParseError(f"Invalid time range {text!r}, expected 'HH:MM - HH:MM'")
    return parse_clock(parts[0]), parse_clock(parts[1])


def _parse_iso_date(text: str) -> date:
    try:
        return date_parser.isoparse(text).date()
    except (ValueError, OverflowError) as exc:
        raise SlotParseError(f"Invalid schedule date {text!r}") from exc


def _decode_window(slot: BackendSlot) -> TimeWindow:
    return TimeWindow(
        start=parse_clock(slot.start_time),
        end=parse_clock(slot.end_time),
        capacity=slot.slot_capacity,
        active=slot.is_active,
        id=slot.id,
    )


def decode_schedules(raw_schedules: Iterable[dict[str, Any]]) -> list[DaySchedule]:
    days: list[DaySchedule] = []
    for raw in raw_schedules:
        try:
            record = BackendDaySchedule.model_validate(raw)
        except ValidationError as exc:
            raise SlotParseError(f"Malformed schedule record: {exc}") from exc
        days.append(
            DaySchedule(
                date=_parse_iso_date(record.date),
                time_windows=tuple(_decode_window(slot) for slot in record.slots),
            )
        )
    return days


def _encode_window(window: TimeWindow) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    if window.id is not None:
        payload["id"] = window.id
    payload.update(
        {
            "start_time": f"{format_clock(window.start)}:00",
            "end_time": f"{format_clock(window.end)}:00",
            "slot_capacity": int(window.capacity),
            "is_active": window.active,
        }
    )
    return payload


def encode_schedules(days: Iterable[DaySchedule]) -> list[dict[str, Any]]:
    return [
        {
            "date": day.date.isoformat(),
            "slots": [_encode_window(window) for window in day.time_windows],
        }
        for day in days
    ]


def _now_to_minute(now: Optional[datetime] = None) -> datetime:
    return (now or datetime.now()).replace(second=0, microsecond=0)


def new_edit_row(now: Optional[datetime] = None) -> EditRow:
    current = _now_to_minute(now).time()
    return EditRow(start_time=current, end_time=current, capacity="", id=None)


def create_empty_edit_buffer(now: Optional[datetime] = None) -> EditBuffer:
    """Fresh "add day" form: today's date and one blank row."""
    current = _now_to_minute(now)
    return EditBuffer(date=current.date(), rows=[new_edit_row(current)])


def edit_buffer_from_day(day: DaySchedule) -> EditBuffer:
    return EditBuffer(
        date=day.date,
        rows=[
            EditRow(
                start_time=window.start,
                end_time=window.end,
                capacity=str(window.capacity),
                id=window.id,
            )
            for window in day.time_windows
        ],
        source_key=day.key,
    )


def _coerce_capacity(raw: str, position: int) -> int:
    try:
        capacity = int(str(raw).strip())
    except ValueError as exc:
        raise SlotValidationError(f"Row {position}: capacity must be a whole number") from exc
    if capacity < 1:
        raise SlotValidationError(f"Row {position}: capacity must be at least 1")
    return capacity


def edit_buffer_to_day(buffer: EditBuffer) -> DaySchedule:
    """Build the day to persist from a form buffer.

    Rows submitted from the form are always stored as active. Capacity must
    be a positive whole number and each row must end after it starts;
    overlapping rows are left for the backend to judge.
    """
    if not buffer.rows:
        raise SlotValidationError("At least one time slot is required")
    windows = []
    for position, row in enumerate(buffer.rows, start=1):
        start = row.start_time.replace(second=0, microsecond=0)
        end = row.end_time.replace(second=0, microsecond=0)
        if start >= end:
            raise SlotValidationError(
                f"Row {position}: end time {format_clock(end)} must be after start time {format_clock(start)}"
            )
        windows.append(
            TimeWindow(
                start=start,
                end=end,
                capacity=_coerce_capacity(row.capacity, position),
                active=True,
                id=row.id,
            )
        )
    return DaySchedule(date=buffer.date, time_windows=tuple(windows))
