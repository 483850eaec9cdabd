# backend/sati/services/room_service.py
"""
Room catalog management.

Rooms are never deleted. Deactivating a room hides it from booking and
cancels its confirmed bookings that have not started yet.
"""

from datetime import date
import logging
from typing import Any, Callable, List, Optional

from sqlalchemy.orm import Session

from ..core.exceptions import ForbiddenException, NotFoundException
from ..core.timezone_utils import business_now
from ..models.booking import Booking, BookingStatus
from ..models.room import Room
from ..models.user import User
from ..repositories.booking_repository import BookingFilters
from ..repositories.factory import RepositoryFactory
from ..schemas.room import RoomCreate, RoomUpdate
from .base import BaseService

logger = logging.getLogger(__name__)


class RoomService(BaseService):
    def __init__(
        self,
        db: Optional[Session],
        *,
        room_repository: Any = None,
        booking_repository: Any = None,
        clock: Callable[[], Any] = business_now,
    ):
        super().__init__(db)
        self.repository = room_repository or RepositoryFactory.create_room_repository(db)
        self.booking_repository = booking_repository or RepositoryFactory.create_booking_repository(
            db
        )
        self._clock = clock

    @staticmethod
    def _require_admin(actor: User) -> None:
        if not actor.is_admin:
            raise ForbiddenException("Solo administradores pueden administrar salas")

    def list_rooms(self, active_only: bool = True) -> List[Room]:
        return self.repository.list_rooms(active_only=active_only)

    def get_room(self, room_id: str) -> Room:
        room = self.repository.get_by_id(room_id)
        if room is None:
            raise NotFoundException("Sala no encontrada", code="ROOM_NOT_FOUND")
        return room

    def get_day_bookings(self, room_id: str, day: date) -> List[Booking]:
        """Non-cancelled bookings of the room on one day, by start time."""
        self.get_room(room_id)
        bookings = self.booking_repository.find_bookings(
            BookingFilters(room_id=room_id, booking_date=day)
        )
        return sorted(
            (b for b in bookings if b.status != BookingStatus.CANCELLED.value),
            key=lambda b: b.start_time,
        )

    def get_future_bookings(self, room_id: str) -> List[Booking]:
        """Confirmed bookings of the room that have not started yet."""
        self.get_room(room_id)
        bookings = self.booking_repository.get_future_confirmed_for_room(room_id, self._clock())
        return sorted(bookings, key=lambda b: (b.booking_date, b.start_time))

    @BaseService.measure_operation("create_room")
    def create_room(self, actor: User, data: RoomCreate) -> Room:
        self._require_admin(actor)
        with self.repository.transaction():
            room = self.repository.create(
                name=data.name.strip(),
                description=data.description,
                price=data.price,
                image_url=data.image_url,
                is_active=True,
            )
        self.log_operation("create_room", room_id=room.id, actor_id=actor.id)
        return room

    @BaseService.measure_operation("update_room")
    def update_room(self, actor: User, room_id: str, data: RoomUpdate) -> Room:
        """
        Update catalog fields; deactivation cancels the room's future bookings.

        Raises:
            ForbiddenException: Actor is not an admin
            NotFoundException: Room not found
        """
        self._require_admin(actor)
        changes = data.model_dump(exclude_unset=True)
        cancelled = 0
        with self.repository.transaction():
            room = self.repository.get_by_id(room_id)
            if room is None:
                raise NotFoundException("Sala no encontrada", code="ROOM_NOT_FOUND")
            deactivating = room.is_active and changes.get("is_active") is False
            self.repository.update(room_id, **changes)
            if deactivating:
                for booking in self.booking_repository.get_future_confirmed_for_room(
                    room_id, self._clock()
                ):
                    booking.cancel()
                    cancelled += 1

        if cancelled:
            self.logger.info(f"Room {room_id} deactivated; cancelled {cancelled} future bookings")
        self.log_operation("update_room", room_id=room_id, fields=sorted(changes))
        return room
