"""Authentication module.

This module provides:
- Auth middleware for FastAPI resolving bearer tokens to sessions
- Request state with viewer identity
"""

from clipshare.auth.middleware import (
    AuthMiddleware,
    Viewer,
    get_optional_viewer,
    get_viewer,
    viewer_from_token,
)

__all__ = [
    "AuthMiddleware",
    "Viewer",
    "get_optional_viewer",
    "get_viewer",
    "viewer_from_token",
]
