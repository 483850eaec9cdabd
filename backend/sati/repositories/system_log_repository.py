"""Repository for the append-only system log."""

from dataclasses import dataclass
from datetime import datetime
import logging
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.system_log import SystemLog
from .base_repository import BaseRepository


@dataclass
class LogFilters:
    severity: Optional[str] = None
    endpoint: Optional[str] = None
    user_id: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None


class SystemLogRepository(BaseRepository[SystemLog]):
    def __init__(self, db: Session):
        super().__init__(db, SystemLog)
        self.logger = logging.getLogger(__name__)

    def list_recent(self, limit: int = 50, severity: Optional[str] = None) -> List[SystemLog]:
        query = self.db.query(SystemLog)
        if severity:
            query = query.filter(SystemLog.severity == severity)
        return query.order_by(SystemLog.created_at.desc()).limit(limit).all()

    def list_logs(
        self, filters: LogFilters, page: int = 1, page_size: int = 20
    ) -> Tuple[List[SystemLog], int]:
        """Newest-first page of log entries plus the total matching count."""
        try:
            conditions = []
            if filters.severity:
                conditions.append(SystemLog.severity == filters.severity)
            if filters.endpoint:
                conditions.append(SystemLog.endpoint.ilike(f"%{filters.endpoint}%"))
            if filters.user_id:
                conditions.append(SystemLog.user_id == filters.user_id)
            if filters.date_from:
                conditions.append(SystemLog.created_at >= filters.date_from)
            if filters.date_to:
                conditions.append(SystemLog.created_at <= filters.date_to)

            total = self.db.query(func.count(SystemLog.id)).filter(*conditions).scalar() or 0
            rows = (
                self.db.query(SystemLog)
                .filter(*conditions)
                .order_by(SystemLog.created_at.desc(), SystemLog.id.desc())
                .offset(max(0, (page - 1) * page_size))
                .limit(page_size)
                .all()
            )
            return rows, int(total)
        except Exception as e:
            self.logger.error(f"Failed to list system logs: {str(e)}")
            raise RepositoryException(f"Failed to list system logs: {str(e)}")
