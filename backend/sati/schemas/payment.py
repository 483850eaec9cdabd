"""Payment, webhook and subscription schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import Field, field_serializer

from ._strict_base import ORMResponseModel, StrictModel, StrictRequestModel


def format_amount(value: Any) -> str:
    return f"{Decimal(str(value)):.2f}"


class CreateIntentRequest(StrictRequestModel):
    amount: Any = Field(None, description="Amount in major units, e.g. 200 or '200.00'")
    currency: Optional[str] = None
    concept: Optional[str] = Field(None, max_length=500)
    booking_id: Optional[str] = None
    idempotency_key: Optional[str] = Field(None, max_length=255)


class CreateIntentResponse(StrictModel):
    client_secret: Optional[str] = None
    payment_intent_id: str
    status: str
    amount: int = Field(..., description="Amount in minor units as charged by the gateway")
    currency: str
    idempotency_key: str


class IntentStatusResponse(StrictModel):
    id: str
    status: str
    amount: Optional[int] = None
    currency: Optional[str] = None
    client_secret: Optional[str] = None


class DiscountRequest(StrictRequestModel):
    percentage: Optional[float] = None


class ManualPaymentRequest(StrictRequestModel):
    user_id: str
    amount: Any
    concept: str = Field(..., min_length=1, max_length=500)
    booking_id: Optional[str] = None
    currency: Optional[str] = None
    method: str = Field("cash", max_length=40)
    status: str = Field("paid", max_length=40)


class PaymentResponse(ORMResponseModel):
    id: str
    user_id: str
    booking_id: Optional[str] = None
    amount: Decimal
    currency: str
    concept: str
    status: str
    method: Optional[str] = None
    payment_intent_id: Optional[str] = None
    payment_date: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @field_serializer("amount")
    def _amount_as_string(self, value: Decimal) -> str:
        return format_amount(value)


class PaymentAdjustmentResponse(StrictModel):
    message: str
    payment: PaymentResponse


class PaymentListItem(StrictModel):
    id: str
    created_at: Optional[datetime] = None
    payment_date: Optional[datetime] = None
    user_id: str
    user_full_name: Optional[str] = None
    email: Optional[str] = None
    amount: str
    currency: str
    status: str
    method: Optional[str] = None
    concept: str
    payment_intent_id: Optional[str] = None


class PaymentListResponse(StrictModel):
    data: List[PaymentListItem]
    total: int
    page: int
    page_size: int
    message: Optional[str] = None


class WebhookAck(StrictModel):
    received: bool = True
    duplicate: bool = False


class SubscriptionSummary(StrictModel):
    payment_status: str
    last_payment_date: Optional[datetime] = None
    subscription_end_date: Optional[datetime] = None
    next_payment_date: Optional[datetime] = None
    plan: Optional[Dict[str, Any]] = None
