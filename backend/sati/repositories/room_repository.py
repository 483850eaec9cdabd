"""Room catalog repository."""

import logging
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.room import Room
from .base_repository import BaseRepository


class RoomRepository(BaseRepository[Room]):
    def __init__(self, db: Session):
        super().__init__(db, Room)
        self.logger = logging.getLogger(__name__)

    def list_rooms(self, active_only: bool = False) -> List[Room]:
        try:
            query = self.db.query(Room)
            if active_only:
                query = query.filter(Room.is_active.is_(True))
            return query.order_by(Room.name).all()
        except Exception as e:
            self.logger.error(f"Error listing rooms: {str(e)}")
            raise RepositoryException(f"Failed to list rooms: {str(e)}")

    def lock_for_update(self, room_id: str) -> Optional[Room]:
        """
        Load the room holding a row lock until the transaction ends.

        Admissions for the same room serialize on this lock, so the overlap
        check and the insert that follows run without interleaving. SQLite
        has no row locks and ignores FOR UPDATE; there a no-op write to the
        room takes the database write lock instead, and a competing admission
        waits on it (busy timeout) until this transaction commits.
        """
        try:
            if self.db.get_bind().dialect.name == "sqlite":
                self.db.execute(
                    update(Room)
                    .where(Room.id == room_id)
                    .values(is_active=Room.is_active)
                    .execution_options(synchronize_session=False)
                )
            return (
                self.db.query(Room)
                .filter(Room.id == room_id)
                .populate_existing()
                .with_for_update()
                .first()
            )
        except Exception as e:
            self.logger.error(f"Error locking room {room_id}: {str(e)}")
            raise RepositoryException(f"Failed to lock room: {str(e)}") from e
