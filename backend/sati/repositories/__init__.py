"""Data access layer."""

from .base_repository import BaseRepository, IRepository
from .factory import RepositoryFactory

__all__ = ["BaseRepository", "IRepository", "RepositoryFactory"]
