"""Server-side session store repository."""

from datetime import datetime
import logging

from sqlalchemy.orm import Session

from ..models.user_session import UserSession
from .base_repository import BaseRepository


class SessionRepository(BaseRepository[UserSession]):
    def __init__(self, db: Session):
        super().__init__(db, UserSession)
        self.logger = logging.getLogger(__name__)

    def touch(self, session: UserSession, seen_at: datetime) -> None:
        session.last_seen_at = seen_at
        self.db.flush()

    def delete_session(self, session_id: str) -> bool:
        deleted = self.db.query(UserSession).filter(UserSession.id == session_id).delete()
        self.db.flush()
        return bool(deleted)

    def delete_all_for_user(self, user_id: str) -> int:
        deleted = (
            self.db.query(UserSession)
            .filter(UserSession.user_id == user_id)
            .delete(synchronize_session=False)
        )
        self.db.flush()
        return int(deleted)
