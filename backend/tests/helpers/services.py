"""Service graph wired to in-memory repositories for engine-level tests."""

from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any, Optional
from unittest.mock import Mock

from sati.core.timezone_utils import get_business_timezone
from sati.repositories.memory import InMemoryRepositories
from sati.services.account_service import AccountService
from sati.services.audit_log_service import AuditLogService
from sati.services.booking_service import BookingService
from sati.services.cache_service import TTLCache
from sati.services.config_service import ConfigService
from sati.services.payment_service import PaymentService
from sati.services.reconciliation_service import ReconciliationService
from sati.services.system_log_service import SystemLogService

# Monday 09:00 in the business time zone
BUSINESS_NOW = datetime(2026, 3, 2, 9, 0)


class FrozenClock:
    """Naive business-local clock the tests move by hand."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def utc(self) -> datetime:
        return get_business_timezone().localize(self.now).astimezone(timezone.utc)


def build_services(
    repos: InMemoryRepositories,
    *,
    clock: FrozenClock,
    notifier: Optional[Any] = None,
    cache: Optional[TTLCache] = None,
) -> SimpleNamespace:
    cache = cache or TTLCache(ttl_seconds=60)
    audit = AuditLogService(None, repository=repos.logs)
    config = ConfigService(None, repository=repos.configs)
    config.ensure_defaults()
    reconciliation = ReconciliationService(
        None,
        cache,
        user_repository=repos.users,
        payment_repository=repos.payments,
        clock=clock.utc,
    )
    payments = PaymentService(
        None,
        cache,
        payment_repository=repos.payments,
        payment_event_repository=repos.payment_events,
        user_repository=repos.users,
        booking_repository=repos.bookings,
        reconciliation_service=reconciliation,
        audit_service=audit,
    )
    bookings = BookingService(
        None,
        cache,
        booking_repository=repos.bookings,
        room_repository=repos.rooms,
        user_repository=repos.users,
        payment_repository=repos.payments,
        config_service=config,
        payment_service=payments,
        notification_service=notifier or Mock(),
        audit_service=audit,
        clock=clock,
    )
    account = AccountService(
        None,
        cache,
        payment_repository=repos.payments,
        audit_service=audit,
        payment_service=payments,
    )
    return SimpleNamespace(
        cache=cache,
        audit=audit,
        config=config,
        reconciliation=reconciliation,
        payments=payments,
        bookings=bookings,
        account=account,
        logs=SystemLogService(None, repository=repos.logs),
    )


def set_config(repos: InMemoryRepositories, key: str, value: Any) -> None:
    repos.configs.update_value(key, str(value))
