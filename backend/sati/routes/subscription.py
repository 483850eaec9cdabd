# backend/sati/routes/subscription.py
"""
Subscription routes.

Endpoints:
    POST /cancel → Stop renewal; service stays usable until the end date
    GET /summary → Current plan, standing and payment dates
"""

import asyncio
import logging

from fastapi import APIRouter, Depends

from ..api.dependencies import get_current_user, get_reconciliation_service
from ..core.exceptions import DomainException
from ..errors import handle_domain_exception
from ..models.user import User
from ..schemas.payment import SubscriptionSummary
from ..services.reconciliation_service import ReconciliationService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["subscription"])


@router.post("/cancel", response_model=SubscriptionSummary)
async def cancel_subscription(
    current_user: User = Depends(get_current_user),
    reconciliation_service: ReconciliationService = Depends(get_reconciliation_service),
) -> SubscriptionSummary:
    try:
        user = await asyncio.to_thread(reconciliation_service.cancel_subscription, current_user)
    except DomainException as e:
        handle_domain_exception(e)
    summary = await asyncio.to_thread(reconciliation_service.subscription_summary, user)
    summary["payment_status"] = user.payment_status
    return SubscriptionSummary(**summary)


@router.get("/summary", response_model=SubscriptionSummary)
async def get_subscription_summary(
    current_user: User = Depends(get_current_user),
    reconciliation_service: ReconciliationService = Depends(get_reconciliation_service),
) -> SubscriptionSummary:
    summary = await asyncio.to_thread(reconciliation_service.subscription_summary, current_user)
    return SubscriptionSummary(**summary)
