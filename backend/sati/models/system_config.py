"""Database model for runtime system configuration."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, String, Text
import ulid

from ..database import Base


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class SystemConfig(Base):
    """Key/value policy knob; values are text with numeric semantics by convention."""

    __tablename__ = "system_config"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    key = Column(String(100), unique=True, nullable=False, index=True)
    value = Column(Text, nullable=False)
    description = Column(Text, nullable=False, default="")
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now_utc)
    updated_by = Column(String(26), ForeignKey("users.id"), nullable=True)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<SystemConfig {self.key}={self.value}>"


__all__ = ["SystemConfig"]
