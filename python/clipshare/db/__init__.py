"""Database module for Clipshare.

Provides engine creation, session management, and ORM models.
"""

from clipshare.db.engine import create_db_engine, get_engine
from clipshare.db.models import (
    AccessLog,
    AccessType,
    Base,
    Clip,
    ContentType,
    Tag,
    User,
    UserSession,
    UserStatus,
)
from clipshare.db.session import get_db

__all__ = [
    # Engine and session
    "create_db_engine",
    "get_engine",
    "get_db",
    # Base
    "Base",
    # Enums
    "UserStatus",
    "ContentType",
    "AccessType",
    # Models
    "User",
    "UserSession",
    "Clip",
    "AccessLog",
    "Tag",
]
