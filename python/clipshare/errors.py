"""API error definitions.

All API errors are defined here with their corresponding HTTP status codes.
Services raise these; the exception handlers in clipshare.responses render them.
"""

from enum import Enum


class ApiErrorCode(str, Enum):
    """Standardized error codes for the API.

    Format: E_CATEGORY_NAME
    """

    # Authentication errors (401)
    E_UNAUTHENTICATED = "E_UNAUTHENTICATED"
    E_INVALID_CREDENTIALS = "E_INVALID_CREDENTIALS"
    E_TOKEN_NOT_FOUND = "E_TOKEN_NOT_FOUND"
    E_TOKEN_EXPIRED = "E_TOKEN_EXPIRED"
    E_REFRESH_EXPIRED = "E_REFRESH_EXPIRED"

    # Authorization errors (403)
    E_FORBIDDEN = "E_FORBIDDEN"
    E_ACCOUNT_DISABLED = "E_ACCOUNT_DISABLED"

    # Not found errors (404)
    E_NOT_FOUND = "E_NOT_FOUND"
    E_USER_NOT_FOUND = "E_USER_NOT_FOUND"
    E_CLIP_NOT_FOUND = "E_CLIP_NOT_FOUND"

    # Conflict errors (409)
    E_DUPLICATE_IDENTITY = "E_DUPLICATE_IDENTITY"

    # Gone (410)
    E_CLIP_EXPIRED = "E_CLIP_EXPIRED"

    # Validation errors (400)
    E_INVALID_REQUEST = "E_INVALID_REQUEST"
    E_INVALID_CONTENT_TYPE = "E_INVALID_CONTENT_TYPE"
    E_INVALID_ACCESS_TYPE = "E_INVALID_ACCESS_TYPE"
    E_INVALID_CURSOR = "E_INVALID_CURSOR"

    # Server errors
    E_UNIQUE_RETRY_EXHAUSTED = "E_UNIQUE_RETRY_EXHAUSTED"  # 503
    E_DATABASE_UNAVAILABLE = "E_DATABASE_UNAVAILABLE"  # 503
    E_INTERNAL = "E_INTERNAL"  # 500


# Error code to HTTP status mapping
ERROR_CODE_TO_STATUS: dict[ApiErrorCode, int] = {
    ApiErrorCode.E_UNAUTHENTICATED: 401,
    ApiErrorCode.E_INVALID_CREDENTIALS: 401,
    ApiErrorCode.E_TOKEN_NOT_FOUND: 401,
    ApiErrorCode.E_TOKEN_EXPIRED: 401,
    ApiErrorCode.E_REFRESH_EXPIRED: 401,
    ApiErrorCode.E_FORBIDDEN: 403,
    ApiErrorCode.E_ACCOUNT_DISABLED: 403,
    ApiErrorCode.E_NOT_FOUND: 404,
    ApiErrorCode.E_USER_NOT_FOUND: 404,
    ApiErrorCode.E_CLIP_NOT_FOUND: 404,
    ApiErrorCode.E_DUPLICATE_IDENTITY: 409,
    ApiErrorCode.E_CLIP_EXPIRED: 410,
    ApiErrorCode.E_INVALID_REQUEST: 400,
    ApiErrorCode.E_INVALID_CONTENT_TYPE: 400,
    ApiErrorCode.E_INVALID_ACCESS_TYPE: 400,
    ApiErrorCode.E_INVALID_CURSOR: 400,
    ApiErrorCode.E_UNIQUE_RETRY_EXHAUSTED: 503,
    ApiErrorCode.E_DATABASE_UNAVAILABLE: 503,
    ApiErrorCode.E_INTERNAL: 500,
}


class ApiError(Exception):
    """Base exception for API errors.

    Attributes:
        code: The error code enum value
        message: Human-readable error message
        status_code: HTTP status code (derived from code)
    """

    def __init__(self, code: ApiErrorCode, message: str):
        self.code = code
        self.message = message
        self.status_code = ERROR_CODE_TO_STATUS.get(code, 500)
        super().__init__(message)


class NotFoundError(ApiError):
    """Resource not found error."""

    def __init__(self, code: ApiErrorCode = ApiErrorCode.E_NOT_FOUND, message: str = "Not found"):
        super().__init__(code, message)


class ForbiddenError(ApiError):
    """Authorization failure error."""

    def __init__(self, code: ApiErrorCode = ApiErrorCode.E_FORBIDDEN, message: str = "Forbidden"):
        super().__init__(code, message)


class InvalidRequestError(ApiError):
    """Invalid request error."""

    def __init__(
        self, code: ApiErrorCode = ApiErrorCode.E_INVALID_REQUEST, message: str = "Invalid request"
    ):
        super().__init__(code, message)


class DuplicateIdentityError(ApiError):
    """Username or email already taken."""

    def __init__(self, message: str = "Username or email already registered"):
        super().__init__(ApiErrorCode.E_DUPLICATE_IDENTITY, message)


class InvalidCredentialsError(ApiError):
    """Login identifier/password pair rejected."""

    def __init__(self, message: str = "Invalid username or password"):
        super().__init__(ApiErrorCode.E_INVALID_CREDENTIALS, message)


class TokenNotFoundError(ApiError):
    """Access or refresh token is unknown, revoked or already rotated."""

    def __init__(self, message: str = "Token not found"):
        super().__init__(ApiErrorCode.E_TOKEN_NOT_FOUND, message)


class TokenExpiredError(ApiError):
    """Access token is past its expiry."""

    def __init__(self, message: str = "Access token expired"):
        super().__init__(ApiErrorCode.E_TOKEN_EXPIRED, message)


class RefreshExpiredError(ApiError):
    """Refresh token is past its expiry."""

    def __init__(self, message: str = "Refresh token expired"):
        super().__init__(ApiErrorCode.E_REFRESH_EXPIRED, message)


class ClipExpiredError(ApiError):
    """Clip exists but is past its expires_at."""

    def __init__(self, message: str = "Clip has expired"):
        super().__init__(ApiErrorCode.E_CLIP_EXPIRED, message)


class RetryExhaustedError(ApiError):
    """Unique-constraint collisions persisted past the retry budget."""

    def __init__(self, message: str = "Could not allocate a unique value, try again"):
        super().__init__(ApiErrorCode.E_UNIQUE_RETRY_EXHAUSTED, message)


class DatabaseUnavailableError(ApiError):
    """The database could not be reached."""

    def __init__(self, message: str = "Database unavailable"):
        super().__init__(ApiErrorCode.E_DATABASE_UNAVAILABLE, message)
