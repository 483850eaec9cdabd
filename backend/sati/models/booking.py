# backend/sati/models/booking.py
"""
Booking model for the SATI platform.

A booking reserves one room for a same-day wall-clock interval. Bookings are
never deleted; they only move between statuses.
"""

from datetime import date, datetime, time, timezone
from enum import Enum
import logging
from typing import Any, Dict

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    Time,
)
from sqlalchemy.orm import relationship
import ulid

from ..database import Base

logger = logging.getLogger(__name__)


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    CONFIRMED = "confirmed"  # Default - admitted booking
    CANCELLED = "cancelled"
    COMPLETED = "completed"


TERMINAL_BOOKING_STATUSES = frozenset(
    {BookingStatus.CANCELLED.value, BookingStatus.COMPLETED.value}
)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def intervals_overlap(a_start: time, a_end: time, b_start: time, b_end: time) -> bool:
    """
    Half-open overlap test for [a_start, a_end) and [b_start, b_end).

    Covers start-within, end-within and fully-enclosing cases; touching
    intervals (a_end == b_start) do not overlap.
    """
    return a_start < b_end and b_start < a_end


class Booking(Base):
    """Reservation of a room by a user for a time range on one day."""

    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))

    room_id = Column(String(26), ForeignKey("rooms.id"), nullable=False)
    user_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)

    booking_date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)

    status = Column(String(20), nullable=False, default=BookingStatus.CONFIRMED.value, index=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_now_utc)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=_now_utc)

    room = relationship("Room", back_populates="bookings")
    user = relationship("User", back_populates="bookings")
    payment = relationship("Payment", back_populates="booking", uselist=False)

    __table_args__ = (
        Index("ix_bookings_room_date", "room_id", "booking_date"),
        CheckConstraint("start_time < end_time", name="check_booking_time_order"),
        CheckConstraint(
            "status IN ('confirmed', 'cancelled', 'completed')",
            name="check_booking_status",
        ),
    )

    @property
    def is_active(self) -> bool:
        return self.status == BookingStatus.CONFIRMED.value

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_BOOKING_STATUSES

    @property
    def starts_at(self) -> datetime:
        """Naive business-local instant at which the booking starts."""
        return datetime.combine(self.booking_date, self.start_time)

    @property
    def ends_at(self) -> datetime:
        return datetime.combine(self.booking_date, self.end_time)

    @property
    def duration_hours(self) -> int:
        """Whole-hour duration, computed from the hour components."""
        return self.end_time.hour - self.start_time.hour

    def overlaps(self, booking_date: date, start_time: time, end_time: time) -> bool:
        if self.booking_date != booking_date:
            return False
        return intervals_overlap(self.start_time, self.end_time, start_time, end_time)

    def cancel(self) -> None:
        logger.info(f"Cancelling booking {self.id}")
        self.status = BookingStatus.CANCELLED.value

    def complete(self) -> None:
        logger.info(f"Completing booking {self.id}")
        self.status = BookingStatus.COMPLETED.value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "room_id": self.room_id,
            "user_id": self.user_id,
            "booking_date": self.booking_date.isoformat() if self.booking_date else None,
            "start_time": self.start_time.strftime("%H:%M") if self.start_time else None,
            "end_time": self.end_time.strftime("%H:%M") if self.end_time else None,
            "status": self.status,
            "notes": self.notes,
        }

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id} room={self.room_id} {self.booking_date} "
            f"{self.start_time}-{self.end_time} status={self.status}>"
        )
