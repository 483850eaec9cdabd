"""Room catalog schemas."""

from datetime import date
from typing import List, Optional

from pydantic import Field

from ._strict_base import ORMResponseModel, StrictModel, StrictRequestModel
from .booking import BookingResponse


class RoomCreate(StrictRequestModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str = Field("", max_length=5000)
    price: int = Field(..., ge=0, description="Hourly price in minor units (centavos)")
    image_url: Optional[str] = None


class RoomUpdate(StrictRequestModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=5000)
    price: Optional[int] = Field(None, ge=0)
    image_url: Optional[str] = None
    is_active: Optional[bool] = None


class RoomResponse(ORMResponseModel):
    id: str
    name: str
    description: str = ""
    price: int
    image_url: Optional[str] = None
    is_active: bool


class RoomAvailability(StrictModel):
    """Booked slots of a room on one day; any other slot is free."""

    room_id: str
    booking_date: date = Field(serialization_alias="date")
    bookings: List[BookingResponse]
