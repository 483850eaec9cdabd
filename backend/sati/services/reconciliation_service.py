# backend/sati/services/reconciliation_service.py
"""
Payment standing reconciliation.

The payment ledger is authoritative; ``User.payment_status`` is a cached hint
recomputed from it whenever a session is resolved, and updated eagerly when
the gateway reports a succeeded intent.
"""

from datetime import datetime, timedelta
from decimal import Decimal
import logging
import re
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import NotFoundException
from ..core.timezone_utils import ensure_utc, utc_now
from ..models.payment import PaymentStatus
from ..models.user import PaymentStanding, User
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .cache_service import TTLCache, account_summary_key

logger = logging.getLogger(__name__)

PLAN_CONCEPT_PATTERN = re.compile(r"suscripci[oó]n\s*-\s*(.+)", re.IGNORECASE)


class ReconciliationService(BaseService):
    def __init__(
        self,
        db: Optional[Session],
        cache: Optional[TTLCache] = None,
        *,
        user_repository: Any = None,
        payment_repository: Any = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        super().__init__(db, cache)
        self.user_repository = user_repository or RepositoryFactory.create_user_repository(db)
        self.payment_repository = payment_repository or RepositoryFactory.create_payment_repository(
            db
        )
        self._clock = clock

    def _get_user(self, user_id: str) -> User:
        user = self.user_repository.get_by_id(user_id)
        if user is None:
            raise NotFoundException("Usuario no encontrado", code="USER_NOT_FOUND")
        return user

    def compute_status(self, user: User) -> PaymentStanding:
        """
        Effective standing of a user.

        active: a succeeded payment exists and the subscription end (if any)
        has not passed. pending: otherwise, when a pending payment exists.
        inactive: everything else.
        """
        last_succeeded = self.payment_repository.get_last_succeeded_for_user(user.id)
        end_date = ensure_utc(user.subscription_end_date)
        expired = end_date is not None and end_date < self._clock()
        if last_succeeded is not None and not expired:
            return PaymentStanding.ACTIVE
        if self.payment_repository.has_status(user.id, PaymentStatus.PENDING.value):
            return PaymentStanding.PENDING
        return PaymentStanding.INACTIVE

    def get_effective_status(self, user_id: str) -> PaymentStanding:
        return self.compute_status(self._get_user(user_id))

    @BaseService.measure_operation("reconcile_user")
    def reconcile_user(self, user: User) -> PaymentStanding:
        """Recompute the standing and persist it when the cached hint differs."""
        status = self.compute_status(user)
        if user.payment_status != status.value:
            previous = user.payment_status
            with self.user_repository.transaction():
                self.user_repository.update(user.id, payment_status=status.value)
            self.logger.info(
                f"Payment status of {user.id} reconciled: {previous} -> {status.value}"
            )
        return status

    def mark_paid(self, user_id: str) -> Optional[User]:
        """
        Record a succeeded payment on the user: active, paid now, no end date.

        Runs inside the caller's transaction.
        """
        user = self.user_repository.get_by_id(user_id)
        if user is None:
            logger.warning(f"Succeeded payment for unknown user {user_id}")
            return None
        self.user_repository.update(
            user_id,
            payment_status=PaymentStanding.ACTIVE.value,
            last_payment_date=self._clock(),
            subscription_end_date=None,
        )
        return user

    @BaseService.measure_operation("cancel_subscription")
    def cancel_subscription(self, user: User) -> User:
        """Stop renewal: inactive now, service usable until the end of the paid cycle."""
        end_date = self._clock() + timedelta(days=settings.next_payment_interval_days)
        with self.user_repository.transaction():
            updated = self.user_repository.update(
                user.id,
                payment_status=PaymentStanding.INACTIVE.value,
                subscription_end_date=end_date,
            )
        if updated is None:
            raise NotFoundException("Usuario no encontrado", code="USER_NOT_FOUND")
        self.invalidate_cache(account_summary_key(user.id))
        self.log_operation("cancel_subscription", user_id=user.id)
        return updated

    def subscription_summary(self, user: User) -> Dict[str, Any]:
        last_payment = self.payment_repository.get_last_succeeded_for_user(user.id)
        status = PaymentStanding.ACTIVE if last_payment else PaymentStanding.INACTIVE
        last_payment_date = ensure_utc(user.last_payment_date) or (
            ensure_utc(last_payment.created_at) if last_payment else None
        )
        next_payment_date = None
        if status == PaymentStanding.ACTIVE and last_payment_date:
            next_payment_date = last_payment_date + timedelta(
                days=settings.next_payment_interval_days
            )

        plan = None
        if last_payment is not None:
            concept = str(last_payment.concept or "")
            match = PLAN_CONCEPT_PATTERN.search(concept)
            plan = {
                "name": (match.group(1) if match else concept).strip(),
                "price": f"{Decimal(str(last_payment.amount)):.2f}",
            }

        return {
            "payment_status": status.value,
            "last_payment_date": last_payment_date,
            "subscription_end_date": ensure_utc(user.subscription_end_date),
            "next_payment_date": next_payment_date,
            "plan": plan,
        }
