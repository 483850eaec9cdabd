"""System log monitoring schemas."""

from datetime import datetime
from typing import List, Optional

from ._strict_base import StrictModel


class SystemLogEntry(StrictModel):
    id: str
    created_at: Optional[datetime] = None
    severity: str
    message: str
    stack: Optional[str] = None
    endpoint: Optional[str] = None
    url: Optional[str] = None
    user_id: Optional[str] = None
    user_agent: Optional[str] = None


class SystemLogPage(StrictModel):
    data: List[SystemLogEntry]
    total: int
    page: int
    page_size: int
