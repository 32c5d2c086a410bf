from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .schedule.models import DaySchedule, EditBuffer, format_clock


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Backend wire shape. Defaults for partially-specified records live here and nowhere else.


class BackendSlot(BaseModel):
    id: Optional[int] = None
    start_time: str
    end_time: str
    slot_capacity: int  # required, a record without one fails the fetch
    is_active: bool = False

    @field_validator("is_active", mode="before")
    @classmethod
    def _missing_means_inactive(cls, value):
        return False if value is None else value


class BackendDaySchedule(BaseModel):
    date: str
    slots: list[BackendSlot] = Field(default_factory=list)


class ScheduleListResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    is_success: bool = Field(default=False, alias="isSuccess")
    schedules: list[dict[str, Any]] = Field(default_factory=list)


class PersistResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    status: Optional[str] = None


# HTTP surface.


class Notification(BaseModel):
    id: str
    level: str
    message: str
    timestamp: datetime = Field(default_factory=_utcnow)


class TimeWindowView(BaseModel):
    id: Optional[int] = None
    time: str
    start_time: str
    end_time: str
    capacity: int
    active: bool


class DayView(BaseModel):
    key: str
    date: str
    time_windows: list[TimeWindowView]

    @classmethod
    def from_day(cls, day: DaySchedule) -> "DayView":
        return cls(
            key=day.key,
            date=day.display_date,
            time_windows=[
                TimeWindowView(
                    id=window.id,
                    time=window.display_time,
                    start_time=format_clock(window.start),
                    end_time=format_clock(window.end),
                    capacity=window.capacity,
                    active=window.active,
                )
                for window in day.time_windows
            ],
        )


class EditRowView(BaseModel):
    id: Optional[int] = None
    start_time: str
    end_time: str
    capacity: str


class EditBufferView(BaseModel):
    date: str
    editing: Optional[str] = None
    rows: list[EditRowView]

    @classmethod
    def from_buffer(cls, buffer: EditBuffer) -> "EditBufferView":
        return cls(
            date=buffer.date.isoformat(),
            editing=buffer.source_key,
            rows=[
                EditRowView(
                    id=row.id,
                    start_time=format_clock(row.start_time),
                    end_time=format_clock(row.end_time),
                    capacity=row.capacity,
                )
                for row in buffer.rows
            ],
        )


class ScheduleView(BaseModel):
    doctor_id: int
    phase: str
    is_loading: bool
    is_saving: bool
    load_error: Optional[str] = None
    days: list[DayView]
    buffer: EditBufferView


class SessionStartResponse(BaseModel):
    session_id: str
    ws_url: str
    view: ScheduleView


class OperationResponse(BaseModel):
    ok: bool
    view: ScheduleView


class BufferDateUpdate(BaseModel):
    date: str


class RowUpdate(BaseModel):
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    capacity: Optional[str] = None
