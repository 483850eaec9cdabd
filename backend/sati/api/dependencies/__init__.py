# backend/sati/api/dependencies/__init__.py
"""
Central export point for all dependencies.
"""

from .auth import get_current_user, get_optional_user, require_admin
from .database import get_db
from .services import (
    get_account_cache,
    get_account_service,
    get_booking_service,
    get_config_service,
    get_notification_service,
    get_payment_service,
    get_reconciliation_service,
    get_room_service,
    get_session_service,
    get_system_log_service,
)

__all__ = [
    # Auth
    "get_current_user",
    "get_optional_user",
    "require_admin",
    # Database
    "get_db",
    # Services
    "get_account_cache",
    "get_account_service",
    "get_booking_service",
    "get_config_service",
    "get_notification_service",
    "get_payment_service",
    "get_reconciliation_service",
    "get_room_service",
    "get_session_service",
    "get_system_log_service",
]
