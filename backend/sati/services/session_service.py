# backend/sati/services/session_service.py
"""
Server-side session store.

Credential checks happen elsewhere; this service only issues, resolves and
revokes session ids. A session expires after a period of inactivity (sliding)
or at its absolute limit, whichever comes first.
"""

from datetime import datetime, timedelta
import logging
import secrets
from typing import Any, Callable, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import UnauthorizedException
from ..core.timezone_utils import ensure_utc, utc_now
from ..models.user import User
from ..models.user_session import UserSession
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)

SESSION_EXPIRED_MESSAGE = "Sesión expirada"


def new_session_id() -> str:
    return secrets.token_urlsafe(32)


class SessionService(BaseService):
    def __init__(
        self,
        db: Optional[Session],
        *,
        session_repository: Any = None,
        user_repository: Any = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        super().__init__(db)
        self.repository = session_repository or RepositoryFactory.create_session_repository(db)
        self.user_repository = user_repository or RepositoryFactory.create_user_repository(db)
        self._clock = clock

    @property
    def idle_timeout(self) -> timedelta:
        return timedelta(minutes=settings.session_idle_timeout_minutes)

    def create_session(self, user: User) -> UserSession:
        now = self._clock()
        with self.repository.transaction():
            session = self.repository.create(
                id=new_session_id(),
                user_id=user.id,
                created_at=now,
                last_seen_at=now,
                expires_at=now + timedelta(hours=settings.session_absolute_hours),
            )
        self.log_operation("create_session", user_id=user.id)
        return session

    def is_expired(self, session: UserSession, now: datetime) -> bool:
        last_seen = ensure_utc(session.last_seen_at)
        expires_at = ensure_utc(session.expires_at)
        if expires_at is not None and now >= expires_at:
            return True
        return last_seen is not None and now - last_seen >= self.idle_timeout

    def resolve(self, session_id: Optional[str]) -> Tuple[UserSession, User]:
        """
        Load the session and its user, sliding the inactivity window.

        Raises:
            UnauthorizedException: Missing, unknown or expired session, or inactive user
        """
        if not session_id:
            raise UnauthorizedException("No autenticado", code="NOT_AUTHENTICATED")

        now = self._clock()
        with self.repository.transaction():
            session = self.repository.get_by_id(session_id)
            if session is None:
                raise UnauthorizedException("No autenticado", code="NOT_AUTHENTICATED")
            if self.is_expired(session, now):
                self.repository.delete_session(session.id)
                expired = True
            else:
                self.repository.touch(session, now)
                expired = False

        if expired:
            self.logger.info(f"Session of user {session.user_id} expired")
            raise UnauthorizedException(SESSION_EXPIRED_MESSAGE, code="SESSION_EXPIRED")

        user = self.user_repository.get_by_id(session.user_id)
        if user is None or not user.is_active:
            raise UnauthorizedException("No autenticado", code="NOT_AUTHENTICATED")
        return session, user

    def logout(self, session_id: str) -> bool:
        with self.repository.transaction():
            return self.repository.delete_session(session_id)

    def logout_all(self, user: User) -> int:
        with self.repository.transaction():
            deleted = self.repository.delete_all_for_user(user.id)
        self.log_operation("logout_all", user_id=user.id, sessions=deleted)
        return deleted
