# backend/sati/routes/logs.py
"""
System log monitoring (admin).

Endpoints:
    GET / → Newest-first page of log entries, secrets masked
"""

import asyncio
from datetime import datetime
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..api.dependencies import get_system_log_service, require_admin
from ..core.exceptions import DomainException
from ..errors import handle_domain_exception
from ..models.user import User
from ..repositories.system_log_repository import LogFilters
from ..schemas.system_log import SystemLogPage
from ..services.system_log_service import SystemLogService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["logs"])


@router.get("", response_model=SystemLogPage)
async def list_logs(
    severity: Optional[str] = Query(None),
    endpoint: Optional[str] = Query(None, alias="module"),
    user_id: Optional[str] = Query(None, alias="user"),
    date_from: Optional[datetime] = Query(None, alias="fromDate"),
    date_to: Optional[datetime] = Query(None, alias="toDate"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, alias="pageSize"),
    current_user: User = Depends(require_admin),
    log_service: SystemLogService = Depends(get_system_log_service),
) -> SystemLogPage:
    filters = LogFilters(
        severity=severity,
        endpoint=endpoint,
        user_id=user_id,
        date_from=date_from,
        date_to=date_to,
    )
    try:
        result = await asyncio.to_thread(
            log_service.list_logs, current_user, filters, page, page_size
        )
        return SystemLogPage(**result)
    except DomainException as e:
        handle_domain_exception(e)
