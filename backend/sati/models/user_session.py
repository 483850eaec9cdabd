"""Server-side session store."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship
import ulid

from ..database import Base


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class UserSession(Base):
    """
    A login session keyed by an opaque id stored in the session cookie.

    last_seen_at drives the sliding inactivity window; expires_at is the
    absolute limit. Deleting every row of a user logs them out everywhere.
    """

    __tablename__ = "user_sessions"

    id = Column(String(64), primary_key=True, default=lambda: str(ulid.ULID()))
    user_id = Column(
        String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now_utc)
    last_seen_at = Column(DateTime(timezone=True), nullable=False, default=_now_utc)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    user = relationship("User", back_populates="sessions")
