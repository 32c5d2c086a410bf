from __future__ import annotations

from dataclasses import replace
from typing import Optional, Sequence

from .models import DaySchedule


def find_day(collection: Sequence[DaySchedule], key: str) -> Optional[int]:
    for index, day in enumerate(collection):
        if day.key == key:
            return index
    return None


def merge_day(collection: Sequence[DaySchedule], day: DaySchedule) -> list[DaySchedule]:
    """Return a new collection with ``day`` replacing the entry for its date.

    The whole day is overwritten, so windows missing from ``day`` are dropped.
    Unknown dates are appended; the collection keeps insertion order.
    """
    merged = list(collection)
    index = find_day(merged, day.key)
    if index is None:
        merged.append(day)
    else:
        merged[index] = day
    return merged


def toggle_window(collection: Sequence[DaySchedule], day_index: int, window_index: int) -> list[DaySchedule]:
    """Return a new collection with one window's ``active`` flag flipped."""
    if not 0 <= day_index < len(collection):
        raise IndexError(f"No day at index {day_index}")
    day = collection[day_index]
    if not 0 <= window_index < len(day.time_windows):
        raise IndexError(f"No time slot at index {window_index} for {day.display_date}")
    windows = list(day.time_windows)
    windows[window_index] = replace(windows[window_index], active=not windows[window_index].active)
    toggled = list(collection)
    toggled[day_index] = replace(day, time_windows=tuple(windows))
    return toggled
