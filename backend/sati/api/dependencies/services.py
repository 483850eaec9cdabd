# backend/sati/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

All services built for one request share the request's database session and
the process-wide account-summary cache.
"""

import logging

from fastapi import Depends
from sqlalchemy.orm import Session

from ...services.account_service import AccountService
from ...services.booking_service import BookingService
from ...services.cache_service import TTLCache, account_cache
from ...services.config_service import ConfigService
from ...services.notification_service import NotificationService
from ...services.payment_service import PaymentService
from ...services.reconciliation_service import ReconciliationService
from ...services.room_service import RoomService
from ...services.session_service import SessionService
from ...services.system_log_service import SystemLogService
from .database import get_db

logger = logging.getLogger(__name__)

_notification_service = NotificationService()


def get_account_cache() -> TTLCache:
    return account_cache


def get_notification_service() -> NotificationService:
    return _notification_service


def get_config_service(db: Session = Depends(get_db)) -> ConfigService:
    return ConfigService(db)


def get_reconciliation_service(
    db: Session = Depends(get_db), cache: TTLCache = Depends(get_account_cache)
) -> ReconciliationService:
    return ReconciliationService(db, cache)


def get_payment_service(
    db: Session = Depends(get_db),
    cache: TTLCache = Depends(get_account_cache),
    reconciliation_service: ReconciliationService = Depends(get_reconciliation_service),
) -> PaymentService:
    return PaymentService(db, cache, reconciliation_service=reconciliation_service)


def get_booking_service(
    db: Session = Depends(get_db),
    cache: TTLCache = Depends(get_account_cache),
    config_service: ConfigService = Depends(get_config_service),
    payment_service: PaymentService = Depends(get_payment_service),
    notification_service: NotificationService = Depends(get_notification_service),
) -> BookingService:
    """
    Get booking service instance.

    Returns:
        BookingService wired to the request session
    """
    return BookingService(
        db,
        cache,
        config_service=config_service,
        payment_service=payment_service,
        notification_service=notification_service,
    )


def get_account_service(
    db: Session = Depends(get_db),
    cache: TTLCache = Depends(get_account_cache),
    payment_service: PaymentService = Depends(get_payment_service),
) -> AccountService:
    return AccountService(db, cache, payment_service=payment_service)


def get_room_service(db: Session = Depends(get_db)) -> RoomService:
    return RoomService(db)


def get_session_service(db: Session = Depends(get_db)) -> SessionService:
    return SessionService(db)


def get_system_log_service(db: Session = Depends(get_db)) -> SystemLogService:
    return SystemLogService(db)
