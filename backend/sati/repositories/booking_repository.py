# backend/sati/repositories/booking_repository.py
"""
Booking Repository for the SATI platform.

Data access for the booking ledger: the conflict queries used by admission,
the quota count, and the combinable listing filters.
"""

from dataclasses import dataclass
from datetime import date, datetime, time
import logging
from typing import Any, List, Optional

from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.booking import Booking, BookingStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


@dataclass
class BookingFilters:
    """Combinable listing filters; unset fields do not constrain the result."""

    user_id: Optional[str] = None
    room_id: Optional[str] = None
    booking_date: Optional[date] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: Optional[str] = None


class BookingRepository(BaseRepository[Booking]):
    """Repository for booking data access."""

    def __init__(self, db: Session):
        super().__init__(db, Booking)
        self.logger = logging.getLogger(__name__)

    def create(self, **kwargs: Any) -> Booking:
        """Create a booking, exposing integrity errors for conflict handling."""
        try:
            return super().create(**kwargs)
        except RepositoryException as exc:
            if isinstance(exc.__cause__, IntegrityError):
                raise exc.__cause__
            raise

    def find_conflicting(
        self,
        room_id: str,
        booking_date: date,
        start_time: time,
        end_time: time,
        exclude_booking_id: Optional[str] = None,
    ) -> List[Booking]:
        """
        Non-cancelled bookings of the room on that day overlapping [start, end).

        Args:
            room_id: The room to check
            booking_date: The day to check
            start_time: Requested start (inclusive)
            end_time: Requested end (exclusive)
            exclude_booking_id: Optional booking to ignore

        Returns:
            Conflicting bookings, empty when the slot is free
        """
        try:
            query = self.db.query(Booking).filter(
                Booking.room_id == room_id,
                Booking.booking_date == booking_date,
                Booking.status != BookingStatus.CANCELLED.value,
                Booking.start_time < end_time,
                Booking.end_time > start_time,
            )
            if exclude_booking_id:
                query = query.filter(Booking.id != exclude_booking_id)
            return query.all()
        except Exception as e:
            self.logger.error(f"Error checking time conflict: {str(e)}")
            raise RepositoryException(f"Failed to check conflict: {str(e)}")

    def check_time_conflict(
        self,
        room_id: str,
        booking_date: date,
        start_time: time,
        end_time: time,
        exclude_booking_id: Optional[str] = None,
    ) -> bool:
        return bool(
            self.find_conflicting(room_id, booking_date, start_time, end_time, exclude_booking_id)
        )

    def count_active_for_user(self, user_id: str) -> int:
        try:
            return (
                self.db.query(Booking)
                .filter(
                    Booking.user_id == user_id,
                    Booking.status == BookingStatus.CONFIRMED.value,
                )
                .count()
            )
        except Exception as e:
            self.logger.error(f"Error counting active bookings for {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to count bookings: {str(e)}")

    def find_bookings(self, filters: BookingFilters) -> List[Booking]:
        try:
            query = self.db.query(Booking)
            if filters.user_id:
                query = query.filter(Booking.user_id == filters.user_id)
            if filters.room_id:
                query = query.filter(Booking.room_id == filters.room_id)
            if filters.booking_date:
                query = query.filter(Booking.booking_date == filters.booking_date)
            if filters.start_date and filters.end_date:
                query = query.filter(
                    Booking.booking_date >= filters.start_date,
                    Booking.booking_date <= filters.end_date,
                )
            if filters.status:
                query = query.filter(Booking.status == filters.status)
            return query.order_by(Booking.booking_date, Booking.start_time).all()
        except Exception as e:
            self.logger.error(f"Error listing bookings: {str(e)}")
            raise RepositoryException(f"Failed to list bookings: {str(e)}")

    def get_future_confirmed_for_room(self, room_id: str, now: datetime) -> List[Booking]:
        """Confirmed bookings of a room that have not started yet."""
        today = now.date()
        current = now.time()
        try:
            return (
                self.db.query(Booking)
                .filter(
                    Booking.room_id == room_id,
                    Booking.status == BookingStatus.CONFIRMED.value,
                    or_(
                        Booking.booking_date > today,
                        and_(Booking.booking_date == today, Booking.start_time >= current),
                    ),
                )
                .all()
            )
        except Exception as e:
            self.logger.error(f"Error loading future bookings for room {room_id}: {str(e)}")
            raise RepositoryException(f"Failed to load future bookings: {str(e)}")

    def get_confirmed_ended_before(self, now: datetime) -> List[Booking]:
        today = now.date()
        current = now.time()
        try:
            return (
                self.db.query(Booking)
                .filter(
                    Booking.status == BookingStatus.CONFIRMED.value,
                    or_(
                        Booking.booking_date < today,
                        and_(Booking.booking_date == today, Booking.end_time <= current),
                    ),
                )
                .all()
            )
        except Exception as e:
            self.logger.error(f"Error loading finished bookings: {str(e)}")
            raise RepositoryException(f"Failed to load finished bookings: {str(e)}")
