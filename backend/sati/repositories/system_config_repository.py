"""Repository for system configuration records."""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Any, List, Optional

from sqlalchemy.orm import Session

from ..models.system_config import SystemConfig
from .base_repository import BaseRepository


class SystemConfigRepository(BaseRepository[SystemConfig]):
    """Data access helper for system configuration key/value records."""

    def __init__(self, db: Session) -> None:
        super().__init__(db, SystemConfig)
        self.logger = logging.getLogger(__name__)

    def get_by_key(self, key: str) -> Optional[SystemConfig]:
        return self.find_one_by(key=key)

    def get_all(self, skip: int = 0, limit: int = 100) -> List[SystemConfig]:
        return (
            self.db.query(SystemConfig).order_by(SystemConfig.key).offset(skip).limit(limit).all()
        )

    def create(self, **kwargs: Any) -> SystemConfig:
        """Insert a new key; a duplicate key raises RepositoryException caused by IntegrityError."""
        kwargs.setdefault("updated_at", datetime.now(timezone.utc))
        kwargs.setdefault("description", "")
        return super().create(**kwargs)

    def update_value(
        self, key: str, value: str, updated_by: Optional[str] = None
    ) -> Optional[SystemConfig]:
        record = self.get_by_key(key)
        if record is None:
            return None
        record.value = value
        record.updated_by = updated_by
        record.updated_at = datetime.now(timezone.utc)
        self.db.flush()
        return record


__all__ = ["SystemConfigRepository"]
