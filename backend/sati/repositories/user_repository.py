"""User repository."""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..models.user import User
from .base_repository import BaseRepository


class UserRepository(BaseRepository[User]):
    def __init__(self, db: Session):
        super().__init__(db, User)
        self.logger = logging.getLogger(__name__)

    def get_by_email(self, email: str) -> Optional[User]:
        return self.find_one_by(email=email.strip().lower())
