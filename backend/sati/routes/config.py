# backend/sati/routes/config.py
"""
System configuration routes.

Reads are public so clients can show the booking policies; writes are
admin-only and take effect on the next admission attempt.
"""

import asyncio
import logging
from typing import List

from fastapi import APIRouter, Depends, status

from ..api.dependencies import get_config_service, require_admin
from ..core.exceptions import DomainException
from ..errors import handle_domain_exception
from ..models.user import User
from ..schemas.system_config import SystemConfigCreate, SystemConfigResponse, SystemConfigUpdate
from ..services.config_service import ConfigService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["config"])


@router.get("", response_model=List[SystemConfigResponse])
async def list_configs(
    config_service: ConfigService = Depends(get_config_service),
) -> List[SystemConfigResponse]:
    configs = await asyncio.to_thread(config_service.list_configs)
    return [SystemConfigResponse.model_validate(c) for c in configs]


@router.get("/{key}", response_model=SystemConfigResponse)
async def get_config(
    key: str,
    config_service: ConfigService = Depends(get_config_service),
) -> SystemConfigResponse:
    try:
        record = await asyncio.to_thread(config_service.get_config, key)
        return SystemConfigResponse.model_validate(record)
    except DomainException as e:
        handle_domain_exception(e)


@router.put("/{key}", response_model=SystemConfigResponse)
async def update_config(
    key: str,
    update: SystemConfigUpdate,
    current_user: User = Depends(require_admin),
    config_service: ConfigService = Depends(get_config_service),
) -> SystemConfigResponse:
    try:
        record = await asyncio.to_thread(
            config_service.update_config, current_user, key, update.value
        )
        return SystemConfigResponse.model_validate(record)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("", response_model=SystemConfigResponse, status_code=status.HTTP_201_CREATED)
async def create_config(
    request: SystemConfigCreate,
    current_user: User = Depends(require_admin),
    config_service: ConfigService = Depends(get_config_service),
) -> SystemConfigResponse:
    try:
        record = await asyncio.to_thread(
            config_service.create_config,
            current_user,
            request.key,
            request.value,
            request.description,
        )
        return SystemConfigResponse.model_validate(record)
    except DomainException as e:
        handle_domain_exception(e)
