"""Service helpers for runtime system configuration."""

from __future__ import annotations

import logging
from typing import Any, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.constants import SYSTEM_CONFIG_DEFAULTS
from ..core.exceptions import (
    ConflictException,
    ForbiddenException,
    NotFoundException,
    RepositoryException,
    ValidationException,
)
from ..models.system_config import SystemConfig
from ..models.user import User
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


def parse_int_setting(raw: Optional[str], default: int) -> int:
    """Integer value of a stored setting, falling back to the default when unparsable."""
    if raw is None:
        return default
    try:
        return int(str(raw).strip())
    except ValueError:
        logger.warning(f"Invalid integer config value {raw!r}; using default {default}")
        return default


class ConfigService(BaseService):
    """
    Business logic for reading/writing system configuration.

    Values are read from storage on every call. Admins expect a policy change
    to apply to the very next booking attempt, so nothing here is cached.
    """

    def __init__(self, db: Optional[Session], repository: Any = None) -> None:
        super().__init__(db)
        self.repository = repository or RepositoryFactory.create_system_config_repository(db)

    def get_int(self, key: str, default: Optional[int] = None) -> int:
        if default is None:
            default = int(SYSTEM_CONFIG_DEFAULTS[key][0]) if key in SYSTEM_CONFIG_DEFAULTS else 0
        record = self.repository.get_by_key(key)
        return parse_int_setting(record.value if record else None, default)

    def list_configs(self) -> List[SystemConfig]:
        return self.repository.get_all()

    def get_config(self, key: str) -> SystemConfig:
        record = self.repository.get_by_key(key)
        if record is None:
            raise NotFoundException(f"Configuración '{key}' no encontrada", code="CONFIG_NOT_FOUND")
        return record

    @staticmethod
    def _validate_value(key: str, value: str) -> str:
        value = str(value).strip()
        if key in SYSTEM_CONFIG_DEFAULTS:
            try:
                number = int(value)
            except ValueError:
                raise ValidationException(
                    f"El valor de '{key}' debe ser un número entero", code="INVALID_CONFIG_VALUE"
                )
            if number < 0:
                raise ValidationException(
                    f"El valor de '{key}' no puede ser negativo", code="INVALID_CONFIG_VALUE"
                )
            return str(number)
        return value

    @staticmethod
    def _require_admin(actor: User) -> None:
        if not actor.is_admin:
            raise ForbiddenException("Solo administradores pueden modificar la configuración")

    @BaseService.measure_operation("update_config")
    def update_config(self, actor: User, key: str, value: str) -> SystemConfig:
        self._require_admin(actor)
        normalized = self._validate_value(key, value)
        with self.repository.transaction():
            record = self.repository.update_value(key, normalized, updated_by=actor.id)
            if record is None:
                raise NotFoundException(
                    f"Configuración '{key}' no encontrada", code="CONFIG_NOT_FOUND"
                )
        self.log_operation("update_config", key=key, value=normalized, actor_id=actor.id)
        return record

    @BaseService.measure_operation("create_config")
    def create_config(
        self, actor: User, key: str, value: str, description: str = ""
    ) -> SystemConfig:
        self._require_admin(actor)
        key = key.strip()
        if not key:
            raise ValidationException("La clave es obligatoria", code="INVALID_CONFIG_KEY")
        normalized = self._validate_value(key, value)
        try:
            with self.repository.transaction():
                record = self.repository.create(
                    key=key, value=normalized, description=description, updated_by=actor.id
                )
        except RepositoryException as exc:
            if isinstance(exc.__cause__, IntegrityError):
                raise ConflictException(
                    f"La configuración '{key}' ya existe", code="CONFIG_EXISTS"
                ) from exc
            raise
        self.log_operation("create_config", key=key, actor_id=actor.id)
        return record

    def ensure_defaults(self) -> int:
        """Insert the default policy rows that are missing; returns how many were created."""
        created = 0
        with self.repository.transaction():
            for key, (value, description) in SYSTEM_CONFIG_DEFAULTS.items():
                if self.repository.get_by_key(key) is None:
                    self.repository.create(key=key, value=str(value), description=description)
                    created += 1
        if created:
            logger.info(f"Seeded {created} default system config values")
        return created
