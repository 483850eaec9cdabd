# backend/sati/models/__init__.py
"""
Database models for the SATI platform.

Importing this package registers every mapper on the shared Base.
"""

from .booking import TERMINAL_BOOKING_STATUSES, Booking, BookingStatus, intervals_overlap
from .payment import (
    OUTSTANDING_STATUSES,
    PAID_STATUSES,
    Payment,
    PaymentEvent,
    PaymentStatus,
)
from .room import Room
from .system_config import SystemConfig
from .system_log import LogSeverity, SystemLog
from .user import DocumentationStatus, PaymentStanding, RoleName, User
from .user_session import UserSession

__all__ = [
    "Booking",
    "BookingStatus",
    "DocumentationStatus",
    "LogSeverity",
    "OUTSTANDING_STATUSES",
    "PAID_STATUSES",
    "Payment",
    "PaymentEvent",
    "PaymentStanding",
    "PaymentStatus",
    "RoleName",
    "Room",
    "SystemConfig",
    "SystemLog",
    "TERMINAL_BOOKING_STATUSES",
    "User",
    "UserSession",
    "intervals_overlap",
]
