# backend/sati/services/system_log_service.py
"""
Admin monitoring over the system log.

Entries are written by AuditLogService and by the error handlers; this
service only pages through them. Credentials that ended up in a message or
stack trace are masked before they leave the server.
"""

import logging
import re
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ..core.exceptions import ForbiddenException, ValidationException
from ..core.timezone_utils import ensure_utc
from ..models.system_log import LogSeverity, SystemLog
from ..models.user import User
from ..repositories.factory import RepositoryFactory
from ..repositories.system_log_repository import LogFilters
from .base import BaseService

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100
MAX_TEXT_CHARS = 20000

_BEARER_PATTERN = re.compile(r"Bearer\s+[A-Za-z0-9\-_.~+/=]+", re.IGNORECASE)
_SECRET_PARAM_PATTERN = re.compile(
    r"(password|token|authorization|apiKey|api_key)=([^&\s]+)", re.IGNORECASE
)


def mask_secrets(text: Optional[str]) -> Optional[str]:
    """Hide bearer tokens and secret query parameters in free text."""
    if not text:
        return text
    masked = _BEARER_PATTERN.sub("Bearer ***", text)
    masked = _SECRET_PARAM_PATTERN.sub(r"\1=***", masked)
    return masked[:MAX_TEXT_CHARS]


class SystemLogService(BaseService):
    def __init__(self, db: Optional[Session], repository: Any = None):
        super().__init__(db)
        self.repository = repository or RepositoryFactory.create_system_log_repository(db)

    @staticmethod
    def parse_severity(severity: Optional[str]) -> Optional[str]:
        if severity is None or not severity.strip():
            return None
        value = severity.strip().upper()
        if value not in {s.value for s in LogSeverity}:
            raise ValidationException("Severidad inválida", code="INVALID_SEVERITY")
        return value

    @staticmethod
    def serialize(log: SystemLog) -> Dict[str, Any]:
        return {
            "id": log.id,
            "created_at": ensure_utc(log.created_at),
            "severity": log.severity,
            "message": mask_secrets(log.message) or "",
            "stack": mask_secrets(log.stack),
            "endpoint": log.endpoint,
            "url": log.url,
            "user_id": log.user_id,
            "user_agent": log.user_agent,
        }

    @BaseService.measure_operation("list_logs")
    def list_logs(
        self,
        actor: User,
        filters: LogFilters,
        page: int = 1,
        page_size: int = 20,
    ) -> Dict[str, Any]:
        """
        Page through the system log, newest first.

        Raises:
            ForbiddenException: Actor is not an admin
            ValidationException: Unknown severity or inverted date range
        """
        if not actor.is_admin:
            raise ForbiddenException("Acceso restringido a administradores")
        filters.severity = self.parse_severity(filters.severity)
        filters.date_from = ensure_utc(filters.date_from)
        filters.date_to = ensure_utc(filters.date_to)
        if filters.date_from and filters.date_to and filters.date_from > filters.date_to:
            raise ValidationException(
                "dateFrom no puede ser mayor que dateTo", code="INVALID_DATE_RANGE"
            )
        page = max(1, page)
        page_size = min(MAX_PAGE_SIZE, max(1, page_size))
        rows, total = self.repository.list_logs(filters, page, page_size)
        return {
            "data": [self.serialize(log) for log in rows],
            "total": total,
            "page": page,
            "page_size": page_size,
        }
