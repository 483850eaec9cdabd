# backend/sati/services/account_service.py
"""
Account views for the SATI platform.

The summary is read through the shared TTLCache; payment writers invalidate
a user's key so a discount or a webhook shows up on the next read.
"""

from datetime import datetime, timedelta
from decimal import Decimal
import logging
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import MOVEMENT_CONCEPT_MAX_CHARS, RECENT_MOVEMENTS_LIMIT
from ..core.exceptions import ForbiddenException, ValidationException
from ..core.timezone_utils import ensure_utc
from ..models.payment import OUTSTANDING_STATUSES, PAID_STATUSES, PaymentStatus
from ..models.user import User
from ..repositories.factory import RepositoryFactory
from ..repositories.payment_repository import PaymentFilters
from .audit_log_service import AuditLogService
from .base import BaseService
from .cache_service import TTLCache, account_cache, account_summary_key
from .payment_service import MAX_PAGE_SIZE, PaymentPage, PaymentService

logger = logging.getLogger(__name__)

NO_MOVEMENTS_MESSAGE = "No existen movimientos en tu cuenta."
NO_PAYMENTS_MESSAGE = "No hay pagos registrados."

# Spanish filter labels accepted by the history view, plus the raw statuses
STATUS_ALIASES: Dict[str, List[str]] = {
    "exitoso": [PaymentStatus.SUCCEEDED.value, PaymentStatus.PAID.value],
    "fallido": [PaymentStatus.CANCELED.value, PaymentStatus.FAILED.value],
    "reembolsado": [PaymentStatus.REFUNDED.value],
    "succeeded": [PaymentStatus.SUCCEEDED.value],
    "paid": [PaymentStatus.PAID.value],
    "pending": [PaymentStatus.PENDING.value],
    "canceled": [PaymentStatus.CANCELED.value],
    "refunded": [PaymentStatus.REFUNDED.value],
}


def resolve_status_alias(status: Optional[str]) -> Optional[List[str]]:
    if not status:
        return None
    statuses = STATUS_ALIASES.get(status.strip().lower())
    if statuses is None:
        raise ValidationException("Estado de pago inválido", code="INVALID_PAYMENT_STATUS")
    return statuses


def _format(amount: Decimal) -> str:
    return f"{amount:.2f}"


class AccountService(BaseService):
    def __init__(
        self,
        db: Optional[Session],
        cache: Optional[TTLCache] = None,
        *,
        payment_repository: Any = None,
        audit_service: Optional[AuditLogService] = None,
        payment_service: Optional[PaymentService] = None,
    ):
        super().__init__(db, cache or account_cache)
        self.payment_repository = payment_repository or RepositoryFactory.create_payment_repository(
            db
        )
        self.audit = audit_service or AuditLogService(db)
        self.payment_service = payment_service or PaymentService(
            db, self.cache, payment_repository=self.payment_repository, audit_service=self.audit
        )

    def _check_self(self, actor: User, user_id: Optional[str], endpoint: str) -> str:
        """Account views are only served to their owner."""
        target = user_id or actor.id
        if target != actor.id:
            self.logger.warning(f"User {actor.id} requested account data of {target}")
            self.audit.warn(
                f"Intento de acceso a la cuenta de {target}",
                user_id=actor.id,
                endpoint=endpoint,
            )
            raise ForbiddenException("Acceso denegado")
        return target

    def get_summary(self, actor: User, user_id: Optional[str] = None) -> Dict[str, Any]:
        target = self._check_self(actor, user_id, "/api/account/summary")
        return self.cache.get(
            account_summary_key(target), lambda: self._compute_summary(target)
        )

    @BaseService.measure_operation("compute_account_summary")
    def _compute_summary(self, user_id: str) -> Dict[str, Any]:
        total_paid = self.payment_repository.sum_amount(user_id, PAID_STATUSES)
        pending = self.payment_repository.sum_amount(user_id, OUTSTANDING_STATUSES)

        last = self.payment_repository.get_last_succeeded_for_user(user_id)
        next_payment_date: Optional[datetime] = None
        if last is not None and last.created_at is not None:
            next_payment_date = ensure_utc(last.created_at) + timedelta(
                days=settings.next_payment_interval_days
            )

        movements = [
            {
                "id": payment.id,
                "amount": _format(Decimal(str(payment.amount))),
                "status": payment.status,
                "concept": str(payment.concept or "")[:MOVEMENT_CONCEPT_MAX_CHARS],
                "created_at": ensure_utc(payment.created_at),
            }
            for payment in self.payment_repository.get_recent_for_user(
                user_id, RECENT_MOVEMENTS_LIMIT
            )
        ]
        return {
            "balance": _format(pending),
            "total_paid": _format(total_paid),
            "pending_charges": _format(pending),
            "upcoming_payments": {"next_payment_date": next_payment_date},
            "recent_movements": movements,
            "has_movements": bool(movements),
            "message": None if movements else NO_MOVEMENTS_MESSAGE,
        }

    @BaseService.measure_operation("account_history")
    def get_history(
        self,
        actor: User,
        *,
        user_id: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
        status: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Paginated payment history of the actor.

        ``status`` accepts the Spanish aliases (exitoso, fallido, reembolsado)
        as well as raw statuses. ``limit`` is capped at 100.
        """
        target = self._check_self(actor, user_id, "/api/account/history")
        statuses: Optional[Sequence[str]] = resolve_status_alias(status)
        result: PaymentPage = self.payment_service.list_payments(
            PaymentFilters(
                user_id=target,
                statuses=statuses,
                date_from=ensure_utc(date_from),
                date_to=ensure_utc(date_to),
            ),
            page=page,
            page_size=min(limit, MAX_PAGE_SIZE),
        )
        return {
            "data": result.data,
            "total": result.total,
            "page": result.page,
            "page_size": result.page_size,
            "message": None if result.total else NO_PAYMENTS_MESSAGE,
        }
