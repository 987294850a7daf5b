"""Pydantic schemas for request/response models.

All schemas are re-exported here for convenient imports.
"""

from clipshare.schemas.auth import (
    LoginOut,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    TokenPairOut,
    UserOut,
)
from clipshare.schemas.clips import (
    AccessLogOut,
    ClipCreate,
    ClipListOut,
    ClipOut,
    ClipUpdate,
    PageInfo,
    TagOut,
)

__all__ = [
    # Auth
    "RegisterRequest",
    "LoginRequest",
    "RefreshRequest",
    "UserOut",
    "TokenPairOut",
    "LoginOut",
    # Clips
    "ClipCreate",
    "ClipUpdate",
    "ClipOut",
    "ClipListOut",
    "PageInfo",
    "AccessLogOut",
    "TagOut",
]
