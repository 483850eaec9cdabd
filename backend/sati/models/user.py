# backend/sati/models/user.py
"""
User model for the SATI platform.

Users are the therapists and professionals who rent rooms, plus the admin.
The payment columns are a cached hint maintained by reconciliation; the
payment ledger remains authoritative.
"""

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, String
from sqlalchemy.orm import relationship
import ulid

from ..database import Base


class RoleName(str, Enum):
    ADMIN = "admin"
    STANDARD = "standard"
    TRUSTED = "trusted"
    VIP = "vip"
    MONTHLY = "monthly"


class DocumentationStatus(str, Enum):
    NONE = "none"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PaymentStanding(str, Enum):
    """Effective payment status of a user."""

    ACTIVE = "active"
    PENDING = "pending"
    INACTIVE = "inactive"


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    email = Column(String(255), unique=True, nullable=False, index=True)
    full_name = Column(String(255), nullable=False)
    phone = Column(String(40), nullable=True)
    role = Column(String(20), nullable=False, default=RoleName.STANDARD.value)
    documentation_status = Column(
        String(20), nullable=False, default=DocumentationStatus.NONE.value
    )
    is_active = Column(Boolean, nullable=False, default=True)

    # Cached payment standing (see ReconciliationService)
    payment_status = Column(String(20), nullable=False, default=PaymentStanding.INACTIVE.value)
    last_payment_date = Column(DateTime(timezone=True), nullable=True)
    subscription_end_date = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_now_utc)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=_now_utc)

    bookings = relationship("Booking", back_populates="user")
    payments = relationship("Payment", back_populates="user")
    sessions = relationship("UserSession", back_populates="user", cascade="all, delete-orphan")

    @property
    def is_admin(self) -> bool:
        return self.role == RoleName.ADMIN.value

    @property
    def has_approved_documentation(self) -> bool:
        return self.documentation_status == DocumentationStatus.APPROVED.value

    def __repr__(self) -> str:
        return f"<User {self.email} role={self.role}>"
