# backend/sati/routes/payments.py
"""
Payment routes for the SATI platform.

Router Endpoints:
    POST /create-intent - Create or replay a card PaymentIntent
    POST /webhook - Stripe webhook receiver (signature verified)
    GET /intent/{intent_id} - Poll an intent and mirror its status
    GET / - Admin payment listing (JSON, or CSV via ?format=csv / Accept: text/csv)
    POST /manual - Admin record of a payment made outside the gateway
    POST /{payment_id}/discount - Admin percentage discount
"""

import asyncio
from datetime import datetime
import logging
from typing import Optional, Union

from fastapi import APIRouter, Depends, Query, Request, Response, status

from ..api.dependencies import get_current_user, get_payment_service, require_admin
from ..core.exceptions import DomainException
from ..errors import handle_domain_exception
from ..models.user import User
from ..repositories.payment_repository import PaymentFilters
from ..schemas.payment import (
    CreateIntentRequest,
    CreateIntentResponse,
    DiscountRequest,
    IntentStatusResponse,
    ManualPaymentRequest,
    PaymentAdjustmentResponse,
    PaymentListResponse,
    PaymentResponse,
    WebhookAck,
)
from ..services.account_service import resolve_status_alias
from ..services.payment_service import PaymentService, payments_to_csv

logger = logging.getLogger(__name__)

router = APIRouter(tags=["payments"])

CSV_MEDIA_TYPE = "text/csv"


@router.post("/create-intent", response_model=CreateIntentResponse)
async def create_intent(
    request: CreateIntentRequest,
    current_user: User = Depends(get_current_user),
    payment_service: PaymentService = Depends(get_payment_service),
) -> CreateIntentResponse:
    try:
        result = await asyncio.to_thread(
            payment_service.create_intent,
            current_user,
            amount=request.amount,
            currency=request.currency,
            concept=request.concept,
            booking_id=request.booking_id,
            idempotency_key=request.idempotency_key,
        )
        return CreateIntentResponse(**result)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/webhook", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    payment_service: PaymentService = Depends(get_payment_service),
) -> WebhookAck:
    """
    Receive a Stripe event.

    The raw body is needed for signature verification. Duplicate deliveries
    are acknowledged with duplicate=true and change nothing.
    """
    payload = await request.body()
    signature = request.headers.get("stripe-signature")
    try:
        result = await asyncio.to_thread(payment_service.handle_webhook, payload, signature)
        return WebhookAck(**result)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/intent/{intent_id}", response_model=IntentStatusResponse)
async def get_intent(
    intent_id: str,
    current_user: User = Depends(get_current_user),
    payment_service: PaymentService = Depends(get_payment_service),
) -> IntentStatusResponse:
    try:
        result = await asyncio.to_thread(payment_service.get_intent, current_user, intent_id)
        return IntentStatusResponse(**result)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("", response_model=PaymentListResponse)
async def list_payments(
    request: Request,
    user_id: Optional[str] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
    date_from: Optional[datetime] = Query(None, alias="dateFrom"),
    date_to: Optional[datetime] = Query(None, alias="dateTo"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1),
    export_format: Optional[str] = Query(None, alias="format"),
    current_user: User = Depends(require_admin),
    payment_service: PaymentService = Depends(get_payment_service),
) -> Union[PaymentListResponse, Response]:
    try:
        filters = PaymentFilters(
            user_id=user_id,
            statuses=resolve_status_alias(status_filter),
            date_from=date_from,
            date_to=date_to,
        )
        result = await asyncio.to_thread(payment_service.list_payments, filters, page, page_size)
    except DomainException as e:
        handle_domain_exception(e)

    wants_csv = (export_format or "").lower() == "csv" or CSV_MEDIA_TYPE in request.headers.get(
        "accept", ""
    )
    if wants_csv:
        return Response(
            content=payments_to_csv(result.data),
            media_type=f"{CSV_MEDIA_TYPE}; charset=utf-8",
            headers={"Content-Disposition": 'attachment; filename="payments.csv"'},
        )
    return PaymentListResponse(
        data=result.data,
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        message=None if result.total else "No hay pagos registrados.",
    )


@router.post("/manual", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
async def create_manual_payment(
    request: ManualPaymentRequest,
    current_user: User = Depends(require_admin),
    payment_service: PaymentService = Depends(get_payment_service),
) -> PaymentResponse:
    try:
        payment = await asyncio.to_thread(
            payment_service.create_manual_payment,
            user_id=request.user_id,
            amount=request.amount,
            concept=request.concept,
            booking_id=request.booking_id,
            currency=request.currency,
            method=request.method,
            status=request.status,
        )
        return PaymentResponse.model_validate(payment)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{payment_id}/discount", response_model=PaymentAdjustmentResponse)
async def discount_payment(
    payment_id: str,
    request: DiscountRequest,
    current_user: User = Depends(require_admin),
    payment_service: PaymentService = Depends(get_payment_service),
) -> PaymentAdjustmentResponse:
    try:
        payment = await asyncio.to_thread(
            payment_service.discount, payment_id, request.percentage
        )
    except DomainException as e:
        handle_domain_exception(e)
    return PaymentAdjustmentResponse(
        message=f"Descuento del {request.percentage:g}% aplicado correctamente.",
        payment=PaymentResponse.model_validate(payment),
    )


@router.get("/{payment_id}", response_model=PaymentResponse)
async def get_payment(
    payment_id: str,
    current_user: User = Depends(require_admin),
    payment_service: PaymentService = Depends(get_payment_service),
) -> PaymentResponse:
    try:
        payment = await asyncio.to_thread(payment_service.get_payment, payment_id)
        return PaymentResponse.model_validate(payment)
    except DomainException as e:
        handle_domain_exception(e)
