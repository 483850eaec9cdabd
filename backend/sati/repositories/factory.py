# backend/sati/repositories/factory.py
"""
Repository Factory for the SATI platform.

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

# Avoid circular imports
if TYPE_CHECKING:
    from .booking_repository import BookingRepository
    from .payment_repository import PaymentEventRepository, PaymentRepository
    from .room_repository import RoomRepository
    from .session_repository import SessionRepository
    from .system_config_repository import SystemConfigRepository
    from .system_log_repository import SystemLogRepository
    from .user_repository import UserRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Centralizes repository creation to ensure consistent initialization
    and makes it easy to swap implementations if needed.
    """

    @staticmethod
    def create_booking_repository(db: Session) -> "BookingRepository":
        from .booking_repository import BookingRepository

        return BookingRepository(db)

    @staticmethod
    def create_room_repository(db: Session) -> "RoomRepository":
        from .room_repository import RoomRepository

        return RoomRepository(db)

    @staticmethod
    def create_user_repository(db: Session) -> "UserRepository":
        from .user_repository import UserRepository

        return UserRepository(db)

    @staticmethod
    def create_payment_repository(db: Session) -> "PaymentRepository":
        from .payment_repository import PaymentRepository

        return PaymentRepository(db)

    @staticmethod
    def create_payment_event_repository(db: Session) -> "PaymentEventRepository":
        from .payment_repository import PaymentEventRepository

        return PaymentEventRepository(db)

    @staticmethod
    def create_system_config_repository(db: Session) -> "SystemConfigRepository":
        from .system_config_repository import SystemConfigRepository

        return SystemConfigRepository(db)

    @staticmethod
    def create_system_log_repository(db: Session) -> "SystemLogRepository":
        from .system_log_repository import SystemLogRepository

        return SystemLogRepository(db)

    @staticmethod
    def create_session_repository(db: Session) -> "SessionRepository":
        from .session_repository import SessionRepository

        return SessionRepository(db)
