"""Account and session Pydantic schemas.

Request and response models for the /auth and /me endpoints.
password_hash and salt are never part of any response model.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

USERNAME_PATTERN = r"^[A-Za-z0-9_.-]+$"


class RegisterRequest(BaseModel):
    """Request schema for creating an account."""

    username: str = Field(..., min_length=3, max_length=50, pattern=USERNAME_PATTERN)
    email: EmailStr = Field(..., max_length=100)
    password: str = Field(..., min_length=6, max_length=128)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()


class LoginRequest(BaseModel):
    """Request schema for logging in.

    `username` accepts either the username or the email address.
    """

    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=1, max_length=128)


class RefreshRequest(BaseModel):
    """Request schema for rotating a token pair."""

    refresh_token: str = Field(..., min_length=1, max_length=255)


class UserOut(BaseModel):
    """Response schema for an account."""

    id: int
    username: str
    email: str
    status: int
    last_login_at: datetime | None = None
    login_count: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TokenPairOut(BaseModel):
    """Response schema for a freshly issued access/refresh token pair."""

    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int
    expires_at: datetime
    refresh_expires_at: datetime


class LoginOut(TokenPairOut):
    """Response schema for a successful login: the token pair plus the account."""

    user: UserOut
