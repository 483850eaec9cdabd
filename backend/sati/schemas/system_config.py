"""System configuration schemas."""

from datetime import datetime
from typing import Optional

from pydantic import Field

from ._strict_base import ORMResponseModel, StrictRequestModel


class SystemConfigResponse(ORMResponseModel):
    key: str
    value: str
    description: str = ""
    updated_at: Optional[datetime] = None
    updated_by: Optional[str] = None


class SystemConfigUpdate(StrictRequestModel):
    value: str = Field(..., max_length=1000)


class SystemConfigCreate(StrictRequestModel):
    key: str = Field(..., min_length=1, max_length=100)
    value: str = Field(..., max_length=1000)
    description: str = Field("", max_length=1000)
