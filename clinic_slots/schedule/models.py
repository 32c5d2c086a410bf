from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, time
from typing import Optional

DISPLAY_DATE_FORMAT = "%A, %B {day}, %Y"
TIME_RANGE_SEPARATOR = " - "


def format_display_date(value: date) -> str:
    """Long human form, e.g. ``Friday, March 15, 2024`` (day not zero-padded)."""
    return value.strftime(DISPLAY_DATE_FORMAT.format(day=value.day))


def format_clock(value: time) -> str:
    return value.strftime("%H:%M")


def format_time_range(start: time, end: time) -> str:
    return f"{format_clock(start)}{TIME_RANGE_SEPARATOR}{format_clock(end)}"


@dataclass(frozen=True)
class TimeWindow:
    start: time
    end: time
    capacity: int
    active: bool = True
    id: Optional[int] = None

    @property
    def display_time(self) -> str:
        return format_time_range(self.start, self.end)


@dataclass(frozen=True)
class DaySchedule:
    date: date
    time_windows: tuple[TimeWindow, ...] = ()

    @property
    def key(self) -> str:
        # Identity within a doctor's collection; display_date is never used for matching.
        return self.date.isoformat()

    @property
    def display_date(self) -> str:
        return format_display_date(self.date)


@dataclass
class EditRow:
    start_time: time
    end_time: time
    capacity: str = ""
    id: Optional[int] = None


@dataclass
class EditBuffer:
    date: date
    rows: list[EditRow] = field(default_factory=list)
    source_key: Optional[str] = None

    @property
    def is_editing_existing(self) -> bool:
        return self.source_key is not None
