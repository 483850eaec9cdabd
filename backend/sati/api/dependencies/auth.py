# backend/sati/api/dependencies/auth.py
"""
Authentication and authorization dependencies.

The session id travels in the session cookie or, for API clients, in the
X-Session-Id header. Every resolved request reconciles the user's cached
payment status against the payment ledger.
"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from ...core.config import settings
from ...core.exceptions import UnauthorizedException
from ...models.user import User
from ...services.reconciliation_service import ReconciliationService
from ...services.session_service import SessionService
from .database import get_db

logger = logging.getLogger(__name__)

SESSION_HEADER = "X-Session-Id"


def get_session_id(request: Request) -> Optional[str]:
    return request.cookies.get(settings.session_cookie_name) or request.headers.get(
        SESSION_HEADER
    )


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """
    Resolve the session to its user.

    Raises:
        HTTPException: 401 when the session is missing, unknown or expired
    """
    try:
        session, user = SessionService(db).resolve(get_session_id(request))
    except UnauthorizedException as exc:
        raise exc.to_http_exception()

    request.state.session_id = session.id
    ReconciliationService(db).reconcile_user(user)
    return user


def get_optional_user(request: Request, db: Session = Depends(get_db)) -> Optional[User]:
    if not get_session_id(request):
        return None
    try:
        return get_current_user(request, db)
    except HTTPException:
        return None


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"message": "Acceso restringido a administradores", "code": "ADMIN_REQUIRED"},
        )
    return current_user
