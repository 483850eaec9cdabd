"""Write-only sink for operational and audit events (system_logs table)."""

from __future__ import annotations

import logging
import traceback
from typing import Any, Optional

from sqlalchemy.orm import Session

from ..models.system_log import LogSeverity, SystemLog
from ..repositories.factory import RepositoryFactory

logger = logging.getLogger(__name__)

MAX_MESSAGE_CHARS = 2000


class AuditLogService:
    """
    Persist SystemLog rows on a best-effort basis.

    A failure to write is logged and never propagates: the outcome being
    audited always wins over the audit record. Call it outside an open
    business transaction, since it commits its own.
    """

    def __init__(self, db: Optional[Session], repository: Any = None):
        self.db = db
        self.repository = repository or RepositoryFactory.create_system_log_repository(db)

    def record(
        self,
        severity: LogSeverity | str,
        message: str,
        *,
        user_id: str | None = None,
        endpoint: str | None = None,
        url: str | None = None,
        user_agent: str | None = None,
        exc: BaseException | None = None,
    ) -> Optional[SystemLog]:
        level = severity.value if isinstance(severity, LogSeverity) else str(severity).upper()
        stack = None
        if exc is not None:
            stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        try:
            with self.repository.transaction():
                return self.repository.create(
                    severity=level,
                    message=message[:MAX_MESSAGE_CHARS],
                    stack=stack,
                    endpoint=endpoint,
                    url=url,
                    user_id=user_id,
                    user_agent=user_agent[:500] if user_agent else None,
                )
        except Exception as write_error:
            logger.warning("Failed to write system log (%s): %s", level, write_error)
            return None

    def info(self, message: str, **context: Any) -> Optional[SystemLog]:
        return self.record(LogSeverity.INFO, message, **context)

    def warn(self, message: str, **context: Any) -> Optional[SystemLog]:
        return self.record(LogSeverity.WARN, message, **context)

    def error(self, message: str, **context: Any) -> Optional[SystemLog]:
        return self.record(LogSeverity.ERROR, message, **context)

    def critical(self, message: str, **context: Any) -> Optional[SystemLog]:
        return self.record(LogSeverity.CRITICAL, message, **context)
