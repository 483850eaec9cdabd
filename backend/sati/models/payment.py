# backend/sati/models/payment.py
"""
Payment ledger models.

Payment rows are either obligations created when a booking is admitted or
records of card-gateway payment intents. PaymentEvent is the webhook dedup
ledger: a row for an event_id means that delivery has been applied.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
import ulid

from ..database import Base

if TYPE_CHECKING:
    from .booking import Booking
    from .user import User


class PaymentStatus(str, Enum):
    """Local payment statuses; gateway intent statuses are mirrored verbatim."""

    PENDING = "pending"
    PROCESSING = "processing"
    REQUIRES_PAYMENT_METHOD = "requires_payment_method"
    REQUIRES_CONFIRMATION = "requires_confirmation"
    REQUIRES_ACTION = "requires_action"
    SUCCEEDED = "succeeded"
    PAID = "paid"
    CANCELED = "canceled"
    FAILED = "failed"
    REFUNDED = "refunded"


PAID_STATUSES = (PaymentStatus.SUCCEEDED.value, PaymentStatus.PAID.value)
OUTSTANDING_STATUSES = (
    PaymentStatus.PENDING.value,
    PaymentStatus.REQUIRES_PAYMENT_METHOD.value,
    PaymentStatus.PROCESSING.value,
)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class Payment(Base):
    __tablename__ = "payments"

    __table_args__ = (
        Index("ix_payments_user_status", "user_id", "status"),
        Index("ix_payments_created_at", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    user_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), nullable=False)
    booking_id: Mapped[Optional[str]] = mapped_column(
        String(26), ForeignKey("bookings.id"), nullable=True, index=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="mxn")
    concept: Mapped[str] = mapped_column(String(500), nullable=False)
    status: Mapped[str] = mapped_column(
        String(40), nullable=False, default=PaymentStatus.PENDING.value
    )
    method: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    payment_intent_id: Mapped[Optional[str]] = mapped_column(
        String(255), unique=True, nullable=True
    )
    idempotency_key: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)
    payment_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now_utc
    )

    user: Mapped["User"] = relationship("User", back_populates="payments")
    booking: Mapped[Optional["Booking"]] = relationship("Booking", back_populates="payment")

    def __repr__(self) -> str:
        return f"<Payment {self.id} user={self.user_id} amount={self.amount} status={self.status}>"


class PaymentEvent(Base):
    """Dedup ledger for gateway webhook deliveries."""

    __tablename__ = "payment_events"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    event_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    payment_intent_id: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, index=True
    )
    type: Mapped[str] = mapped_column(String(100), nullable=False)
    payload: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now_utc
    )

    def __repr__(self) -> str:
        return f"<PaymentEvent {self.event_id} type={self.type}>"
