# backend/sati/routes/auth.py
"""
Session routes.

Credential login lives outside this service; these endpoints only revoke
sessions issued by the session store.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, Request, Response

from ..api.dependencies import get_current_user, get_session_service
from ..core.config import settings
from ..models.user import User
from ..schemas.common import MessageResponse
from ..services.session_service import SessionService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    response: Response,
    current_user: User = Depends(get_current_user),
    session_service: SessionService = Depends(get_session_service),
) -> MessageResponse:
    await asyncio.to_thread(session_service.logout, request.state.session_id)
    response.delete_cookie(settings.session_cookie_name)
    return MessageResponse(message="Sesión cerrada")


@router.post("/logout-all", response_model=MessageResponse)
async def logout_all(
    response: Response,
    current_user: User = Depends(get_current_user),
    session_service: SessionService = Depends(get_session_service),
) -> MessageResponse:
    count = await asyncio.to_thread(session_service.logout_all, current_user)
    response.delete_cookie(settings.session_cookie_name)
    return MessageResponse(message=f"Se cerraron {count} sesiones")
