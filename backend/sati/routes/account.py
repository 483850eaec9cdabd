# backend/sati/routes/account.py
"""
Account view routes.

Endpoints:
    GET /summary → Balance, totals and recent movements (cached)
    GET /history → Paginated payment history with status aliases
"""

import asyncio
from datetime import datetime
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..api.dependencies import get_account_service, get_current_user
from ..core.exceptions import DomainException
from ..errors import handle_domain_exception
from ..models.user import User
from ..schemas.account import AccountHistory, AccountSummary
from ..services.account_service import AccountService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["account"])


@router.get("/summary", response_model=AccountSummary)
async def get_account_summary(
    user_id: Optional[str] = Query(None, alias="userId"),
    current_user: User = Depends(get_current_user),
    account_service: AccountService = Depends(get_account_service),
) -> AccountSummary:
    try:
        summary = await asyncio.to_thread(account_service.get_summary, current_user, user_id)
        return AccountSummary(**summary)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/history", response_model=AccountHistory)
async def get_account_history(
    user_id: Optional[str] = Query(None, alias="userId"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
    status_filter: Optional[str] = Query(None, alias="status"),
    date_from: Optional[datetime] = Query(None, alias="dateFrom"),
    date_to: Optional[datetime] = Query(None, alias="dateTo"),
    current_user: User = Depends(get_current_user),
    account_service: AccountService = Depends(get_account_service),
) -> AccountHistory:
    try:
        history = await asyncio.to_thread(
            lambda: account_service.get_history(
                current_user,
                user_id=user_id,
                page=page,
                limit=limit,
                status=status_filter,
                date_from=date_from,
                date_to=date_to,
            )
        )
        return AccountHistory(**history)
    except DomainException as e:
        handle_domain_exception(e)
