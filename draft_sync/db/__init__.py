"""
Database package for Draft Sync.
"""

from .base import Base, get_db, get_engine, get_session_local, init_database
from .models import DraftModel
from .services import DraftStore, DuplicateDraftError

__all__ = [
    "Base",
    "get_db",
    "get_engine",
    "get_session_local",
    "init_database",
    "DraftModel",
    "DraftStore",
    "DuplicateDraftError",
]
