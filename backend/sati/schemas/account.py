"""Account summary and history views."""

from datetime import datetime
from typing import List, Optional

from ._strict_base import StrictModel
from .payment import PaymentListItem


class AccountMovement(StrictModel):
    id: str
    amount: str
    status: Optional[str] = None
    concept: str
    created_at: Optional[datetime] = None


class UpcomingPayments(StrictModel):
    next_payment_date: Optional[datetime] = None


class AccountSummary(StrictModel):
    balance: str
    total_paid: str
    pending_charges: str
    upcoming_payments: UpcomingPayments
    recent_movements: List[AccountMovement]
    has_movements: bool
    message: Optional[str] = None


class AccountHistory(StrictModel):
    data: List[PaymentListItem]
    total: int
    page: int
    page_size: int
    message: Optional[str] = None
