# backend/sati/repositories/payment_repository.py
"""
Payment Repository for the SATI platform.

Handles the payment ledger and the webhook dedup ledger:
- Booking obligations and gateway intent records
- Status mirroring keyed by payment intent id
- Aggregations used by reconciliation and account views
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
import logging
from typing import Any, List, Optional, Sequence, Tuple, cast

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.payment import Payment, PaymentEvent, PaymentStatus
from ..models.user import User
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


@dataclass
class PaymentFilters:
    user_id: Optional[str] = None
    statuses: Optional[Sequence[str]] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None


class PaymentRepository(BaseRepository[Payment]):
    """Repository for payment ledger data access."""

    def __init__(self, db: Session):
        super().__init__(db, Payment)
        self.logger = logging.getLogger(__name__)

    def create_payment_record(
        self,
        *,
        user_id: str,
        amount: Decimal,
        concept: str,
        booking_id: Optional[str] = None,
        currency: str = "mxn",
        status: str = PaymentStatus.PENDING.value,
        method: Optional[str] = None,
        payment_intent_id: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> Payment:
        """
        Create a payment ledger row.

        Returns:
            Created Payment

        Raises:
            RepositoryException: If creation fails (including a duplicate intent id)
        """
        return self.create(
            user_id=user_id,
            amount=amount,
            concept=concept,
            booking_id=booking_id,
            currency=currency,
            status=status,
            method=method,
            payment_intent_id=payment_intent_id,
            idempotency_key=idempotency_key,
        )

    def get_by_intent_id(self, payment_intent_id: str) -> Optional[Payment]:
        try:
            return cast(
                Optional[Payment],
                self.db.query(Payment)
                .filter(Payment.payment_intent_id == payment_intent_id)
                .first(),
            )
        except Exception as e:
            self.logger.error(f"Failed to get payment by intent {payment_intent_id}: {str(e)}")
            raise RepositoryException(f"Failed to get payment: {str(e)}")

    def get_by_idempotency_key(self, idempotency_key: str) -> Optional[Payment]:
        return self.find_one_by(idempotency_key=idempotency_key)

    def get_by_booking_id(self, booking_id: str) -> Optional[Payment]:
        try:
            return (
                self.db.query(Payment)
                .filter(Payment.booking_id == booking_id)
                .order_by(Payment.created_at)
                .first()
            )
        except Exception as e:
            self.logger.error(f"Failed to get payment for booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to get payment: {str(e)}")

    def update_status_by_intent_id(
        self, payment_intent_id: str, status: str, **extra: Any
    ) -> Optional[Payment]:
        """
        Mirror a gateway status onto the local row for that intent.

        Returns:
            Updated Payment if found, None otherwise
        """
        try:
            payment = self.get_by_intent_id(payment_intent_id)
            if payment:
                payment.status = status
                for key, value in extra.items():
                    setattr(payment, key, value)
                self.db.flush()
            return payment
        except RepositoryException:
            raise
        except Exception as e:
            self.logger.error(f"Failed to update payment status: {str(e)}")
            raise RepositoryException(f"Failed to update payment status: {str(e)}")

    def count_by_user_and_status(self, user_id: str, status: str) -> int:
        return self.count(user_id=user_id, status=status)

    def has_status(self, user_id: str, status: str) -> bool:
        try:
            return (
                self.db.query(Payment.id)
                .filter(Payment.user_id == user_id, Payment.status == status)
                .first()
                is not None
            )
        except Exception as e:
            self.logger.error(f"Failed to check payments of {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to check payments: {str(e)}")

    def get_last_succeeded_for_user(self, user_id: str) -> Optional[Payment]:
        try:
            return (
                self.db.query(Payment)
                .filter(
                    Payment.user_id == user_id,
                    Payment.status == PaymentStatus.SUCCEEDED.value,
                )
                .order_by(Payment.created_at.desc(), Payment.id.desc())
                .first()
            )
        except Exception as e:
            self.logger.error(f"Failed to get last succeeded payment: {str(e)}")
            raise RepositoryException(f"Failed to get last payment: {str(e)}")

    def sum_amount(self, user_id: str, statuses: Sequence[str]) -> Decimal:
        try:
            total = (
                self.db.query(func.coalesce(func.sum(Payment.amount), 0))
                .filter(Payment.user_id == user_id, Payment.status.in_(list(statuses)))
                .scalar()
            )
            return Decimal(str(total or 0)).quantize(Decimal("0.01"))
        except Exception as e:
            self.logger.error(f"Failed to sum payments of {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to sum payments: {str(e)}")

    def get_recent_for_user(self, user_id: str, limit: int = 10) -> List[Payment]:
        try:
            return (
                self.db.query(Payment)
                .filter(Payment.user_id == user_id)
                .order_by(Payment.created_at.desc(), Payment.id.desc())
                .limit(limit)
                .all()
            )
        except Exception as e:
            self.logger.error(f"Failed to load movements of {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to load movements: {str(e)}")

    def list_payments(
        self, filters: PaymentFilters, page: int = 1, page_size: int = 20
    ) -> Tuple[List[Tuple[Payment, Optional[str], Optional[str]]], int]:
        """
        Page through payments joined with the payer's name and email.

        Returns:
            (rows of (payment, full_name, email), total matching count)
        """
        try:
            query = self.db.query(Payment, User.full_name, User.email).outerjoin(
                User, User.id == Payment.user_id
            )
            count_query = self.db.query(func.count(Payment.id))
            conditions = []
            if filters.user_id:
                conditions.append(Payment.user_id == filters.user_id)
            if filters.statuses:
                conditions.append(Payment.status.in_(list(filters.statuses)))
            if filters.date_from:
                conditions.append(Payment.created_at >= filters.date_from)
            if filters.date_to:
                conditions.append(Payment.created_at <= filters.date_to)
            if conditions:
                query = query.filter(*conditions)
                count_query = count_query.filter(*conditions)

            offset = max(0, (page - 1) * page_size)
            rows = (
                query.order_by(Payment.created_at.desc(), Payment.id.desc())
                .offset(offset)
                .limit(page_size)
                .all()
            )
            total = count_query.scalar() or 0
            return [(row[0], row[1], row[2]) for row in rows], int(total)
        except Exception as e:
            self.logger.error(f"Failed to list payments: {str(e)}")
            raise RepositoryException(f"Failed to list payments: {str(e)}")


class PaymentEventRepository(BaseRepository[PaymentEvent]):
    """Webhook dedup ledger."""

    def __init__(self, db: Session):
        super().__init__(db, PaymentEvent)
        self.logger = logging.getLogger(__name__)

    def record_event(
        self,
        *,
        event_id: str,
        event_type: str,
        payment_intent_id: Optional[str] = None,
        payload: Optional[str] = None,
    ) -> PaymentEvent:
        """
        Insert the event row.

        A duplicate event_id surfaces as RepositoryException whose __cause__ is
        the IntegrityError; callers treat that as "already applied".
        """
        return self.create(
            event_id=event_id,
            type=event_type,
            payment_intent_id=payment_intent_id,
            payload=payload,
        )

    def has_event(self, event_id: str) -> bool:
        return self.find_one_by(event_id=event_id) is not None

    def count_for_event(self, event_id: str) -> int:
        return self.count(event_id=event_id)
