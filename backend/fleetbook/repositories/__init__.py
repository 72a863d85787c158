"""
Repository layer for data access.

Repositories encapsulate queries and flush changes; services own commits.
"""

from .base_repository import BaseRepository
from .factory import RepositoryFactory

__all__ = ["BaseRepository", "RepositoryFactory"]
