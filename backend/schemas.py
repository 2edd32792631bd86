# booking-backend/schemas.py

import re
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from config import DEFAULT_SLOT_DURATION_MINUTES

TIME_PATTERN = re.compile(r"^(?:[01]\d|2[0-3]):[0-5]\d$|^24:00$")


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys, which is what the booking widget speaks."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class WeeklyAvailabilityRule(CamelModel):
    day_of_week: int = Field(ge=0, le=6)  # 0 = Sunday
    start_time: str
    end_time: str
    duration_minutes: int = Field(gt=0)
    buffer_minutes: int = Field(default=0, ge=0)
    active: bool = True

    @field_validator("start_time", "end_time")
    @classmethod
    def check_time_format(cls, value: str) -> str:
        if not TIME_PATTERN.match(value):
            raise ValueError(f"expected HH:MM, got {value!r}")
        return value

    @model_validator(mode="after")
    def check_window(self):
        # Zero-padded HH:MM strings compare chronologically
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self

    @classmethod
    def from_row(cls, row) -> "WeeklyAvailabilityRule":
        return cls(
            day_of_week=row.day_of_week,
            start_time=row.start_time,
            end_time=row.end_time,
            duration_minutes=row.duration_minutes or DEFAULT_SLOT_DURATION_MINUTES,
            buffer_minutes=row.buffer_minutes or 0,
            active=row.is_active,
        )


class BlockedSlotEntry(CamelModel):
    date: str  # YYYY-MM-DD in the host timezone
    start_time: str  # HH:MM in the host timezone
    source: Literal["booking", "external"]
    local_time: str  # 12-hour label, e.g. "2:00 PM"


class AvailabilityResponse(CamelModel):
    availability: List[WeeklyAvailabilityRule]
    booked_slots: List[BlockedSlotEntry]
    host_timezone: str
    primary_color: Optional[str] = None


class BookingRequest(CamelModel):
    client_name: str = Field(min_length=1)
    client_email: EmailStr
    start_time: datetime
    end_time: datetime
    notes: Optional[str] = None
    client_phone: Optional[str] = None

    @field_validator("client_name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("client name must not be blank")
        return value


class BookingResponse(CamelModel):
    success: bool = True
    booking_id: int
    client_phone: Optional[str] = None
