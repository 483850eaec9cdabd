# backend/sati/models/room.py
"""Bookable consultation rooms."""

from sqlalchemy import Boolean, CheckConstraint, Column, Integer, String, Text
from sqlalchemy.orm import relationship
import ulid

from ..database import Base


class Room(Base):
    """
    A therapy room rented by the hour.

    Price is stored in minor currency units (centavos). Rooms are never
    deleted; deactivation hides them and cancels their future bookings.
    """

    __tablename__ = "rooms"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    price = Column(Integer, nullable=False)
    image_url = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    bookings = relationship("Booking", back_populates="room")

    __table_args__ = (CheckConstraint("price >= 0", name="check_room_price_non_negative"),)

    def __repr__(self) -> str:
        return f"<Room {self.name} price={self.price} active={self.is_active}>"
