"""Clip, access log and tag Pydantic schemas.

content_type and access_type are accepted as plain strings so that unknown
values reach the service layer and fail with their specific error codes
(E_INVALID_CONTENT_TYPE / E_INVALID_ACCESS_TYPE) instead of a generic
request validation error.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

# Longest accepted clip lifetime: 100 years, in seconds
MAX_TTL_S = 100 * 365 * 24 * 3600

# =============================================================================
# Request Schemas
# =============================================================================


class ClipCreate(BaseModel):
    """Request schema for creating a clip."""

    content: str = Field(..., min_length=1)
    content_type: str = "text"
    access_type: str = "private"
    title: str | None = Field(default=None, max_length=255)
    language: str | None = Field(default=None, max_length=50)
    expires_in: int | None = Field(
        default=None,
        le=MAX_TTL_S,
        description="Lifetime in seconds; omitted means the clip never expires",
    )
    is_encrypted: bool = False
    encryption_key: str | None = Field(
        default=None, description="Owner key material, required when is_encrypted"
    )
    tags: list[str] = Field(default_factory=list)


class ClipUpdate(BaseModel):
    """Request schema for updating a clip.

    Only fields present in the request body are applied. Sending
    `"expires_in": null` clears the expiry. short_url cannot be changed.
    """

    content: str | None = Field(default=None, min_length=1)
    content_type: str | None = None
    access_type: str | None = None
    title: str | None = Field(default=None, max_length=255)
    language: str | None = Field(default=None, max_length=50)
    expires_in: int | None = Field(default=None, le=MAX_TTL_S)
    is_encrypted: bool | None = None
    encryption_key: str | None = None
    tags: list[str] | None = None


# =============================================================================
# Response Schemas
# =============================================================================


class ClipOut(BaseModel):
    """Response schema for a clip.

    encryption_key carries the unwrapped owner key material and is only
    populated for the owner; every other viewer gets null.
    """

    id: int
    user_id: int
    title: str | None = None
    content: str
    content_type: str
    language: str | None = None
    is_encrypted: bool
    encryption_key: str | None = None
    access_type: str
    view_count: int
    expires_at: datetime | None = None
    is_expired: bool = False
    short_url: str | None = None
    tags: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class PageInfo(BaseModel):
    """Pagination information for list responses."""

    next_cursor: str | None = None


class ClipListOut(BaseModel):
    """A page of clips."""

    clips: list[ClipOut]
    page: PageInfo


class AccessLogOut(BaseModel):
    """Response schema for one clip view."""

    id: int
    content_id: int
    user_id: int | None = None
    access_ip: str
    user_agent: str | None = None
    referrer: str | None = None
    accessed_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TagOut(BaseModel):
    """Response schema for a tag."""

    id: int
    name: str
    usage_count: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
