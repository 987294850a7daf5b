"""Authentication middleware for FastAPI.

Provides:
- AuthMiddleware: Global middleware resolving `Authorization: Bearer` tokens
- get_viewer: Dependency for routes that require an authenticated viewer
- get_optional_viewer: Dependency for routes that also serve anonymous callers

Requests without an Authorization header continue anonymously; routes decide
whether a viewer is required. A header that is present but malformed, or a
token the session manager rejects, short-circuits with the error envelope.
"""

from collections.abc import Callable
from dataclasses import dataclass, field

from fastapi import Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from clipshare.errors import ApiError, ApiErrorCode
from clipshare.logging import get_logger
from clipshare.responses import error_response
from clipshare.services.sessions import validate_access_token

logger = get_logger(__name__)

# Header names
AUTHORIZATION_HEADER = "authorization"

# Paths that never look at the Authorization header
PUBLIC_PATHS = {
    "/health",
    "/health/db",
    "/docs",
    "/redoc",
    "/openapi.json",
    "/auth/register",
    "/auth/login",
    "/auth/refresh",
}


@dataclass
class Viewer:
    """Authenticated viewer identity.

    Attributes:
        user_id: The viewer's user ID.
        session_id: The session the access token belongs to.
        token: The raw access token (needed to revoke the session on logout).
    """

    user_id: int
    session_id: int
    token: str = field(repr=False)


TokenVerifier = Callable[[str], Viewer]


def viewer_from_token(db: Session, token: str) -> Viewer:
    """Resolve an access token to a Viewer through the session manager.

    Raises:
        ApiError: TokenNotFound / TokenExpired / AccountDisabled from validation.
    """
    session = validate_access_token(db, token)
    return Viewer(user_id=session.user_id, session_id=session.id, token=token)


class AuthMiddleware(BaseHTTPMiddleware):
    """Authentication middleware for FastAPI.

    Order of checks:
    1. Skip if public path
    2. Continue anonymously if there is no Authorization header
    3. Parse the bearer token
    4. Verify token via the verifier callable
    5. Attach Viewer to request state
    """

    def __init__(self, app: ASGIApp, verifier: TokenVerifier):
        """Initialize the auth middleware.

        Args:
            app: The ASGI application.
            verifier: Callable(token) -> Viewer, raising ApiError on rejection.
                      It is expected to manage its own database session.
        """
        super().__init__(app)
        self.verifier = verifier

    async def dispatch(self, request: Request, call_next) -> JSONResponse:
        """Process the request through auth checks."""
        request.state.viewer = None

        if request.url.path in PUBLIC_PATHS:
            return await call_next(request)

        auth_header = request.headers.get(AUTHORIZATION_HEADER)
        if not auth_header:
            return await call_next(request)

        token = self._parse_bearer_token(auth_header)
        if not token:
            logger.warning(
                "auth_failure", reason="invalid_header_format", request_path=request.url.path
            )
            return self._error_json_response(
                ApiErrorCode.E_UNAUTHENTICATED, "Invalid authorization header format", 401
            )

        try:
            viewer = self.verifier(token)
        except ApiError as e:
            logger.info("auth_failure", reason=e.code.value, request_path=request.url.path)
            return self._error_json_response(e.code, e.message, e.status_code)

        request.state.viewer = viewer
        return await call_next(request)

    @staticmethod
    def _parse_bearer_token(auth_header: str) -> str:
        """Return the token after a case-insensitive "Bearer " prefix, or ""."""
        if not auth_header.lower().startswith("bearer "):
            return ""
        return auth_header[7:].strip()

    def _error_json_response(
        self, code: ApiErrorCode, message: str, status_code: int
    ) -> JSONResponse:
        """Create a JSON error response."""
        return JSONResponse(
            status_code=status_code,
            content=error_response(code, message),
        )


def get_optional_viewer(request: Request) -> Viewer | None:
    """FastAPI dependency returning the viewer, or None for anonymous requests."""
    return getattr(request.state, "viewer", None)


def get_viewer(request: Request) -> Viewer:
    """FastAPI dependency to get the authenticated viewer.

    Raises:
        ApiError(E_UNAUTHENTICATED): If the request carried no valid bearer token.
    """
    viewer = get_optional_viewer(request)
    if viewer is None:
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Authentication required")
    return viewer
