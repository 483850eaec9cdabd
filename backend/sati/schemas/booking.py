# backend/sati/schemas/booking.py
"""
Booking schemas for the SATI platform.

Dates are YYYY-MM-DD and times HH:MM wall-clock values in the business time
zone. The admission engine validates raw payloads with BookingCreate so the
HTTP layer and direct callers share one definition of a well-formed request.
"""

from datetime import date, datetime, time
import re
from typing import Optional

from pydantic import Field, field_serializer, field_validator, model_validator

from ._strict_base import ORMResponseModel, StrictRequestModel

DATE_ONLY_REGEX = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_REGEX = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def _ensure_date_only(value: object, field_name: str) -> object:
    if isinstance(value, str):
        candidate = value.strip()
        if not DATE_ONLY_REGEX.fullmatch(candidate):
            raise ValueError(f"{field_name} must be a YYYY-MM-DD date-only string")
        return candidate
    if isinstance(value, datetime):
        raise ValueError(f"{field_name} must be a date, not a datetime")
    return value


def parse_hhmm(value: object) -> object:
    """Convert an HH:MM string to a time object."""
    if isinstance(value, str):
        candidate = value.strip()
        if not TIME_REGEX.fullmatch(candidate):
            raise ValueError(f"Invalid time format: {value}. Expected HH:MM format.")
        hour, minute = candidate.split(":")
        return time(int(hour), int(minute))
    return value


class BookingCreate(StrictRequestModel):
    """A request to reserve a room for a same-day interval."""

    room_id: str = Field(..., min_length=1, description="Room to book")
    booking_date: date = Field(..., alias="date", description="Day of the booking")
    start_time: time = Field(..., description="Start time (HH:MM)")
    end_time: time = Field(..., description="End time (HH:MM), after start_time")
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("booking_date", mode="before")
    @classmethod
    def _enforce_date_only(cls, v: object) -> object:
        return _ensure_date_only(v, "date")

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def parse_time_string(cls, v: object) -> object:
        return parse_hhmm(v)

    @model_validator(mode="after")
    def _end_after_start(self) -> "BookingCreate":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class BookingStatusUpdate(StrictRequestModel):
    status: Optional[str] = None


class PenalizeRequest(StrictRequestModel):
    percentage: Optional[float] = None


class BookingResponse(ORMResponseModel):
    id: str
    room_id: str
    user_id: str
    booking_date: date = Field(serialization_alias="date")
    start_time: time
    end_time: time
    status: str
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_serializer("start_time", "end_time")
    def _format_time(self, value: time) -> str:
        return value.strftime("%H:%M")
