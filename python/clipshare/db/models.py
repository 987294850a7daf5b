"""SQLAlchemy ORM models for Clipshare.

Defines the five tables of the clip service using SQLAlchemy 2.x declarative
patterns. Table and column names match the deployed relational schema:

- clip_users: accounts (soft-deleted via deleted_at)
- clip_user_sessions: access/refresh token pairs
- clip_contents: clips with visibility, expiry and optional encryption
- clip_access_logs: append-only view log
- clip_tags: per-user tag usage counters

Enumerated columns are plain text/integers guarded by CHECK constraints so the
same models work on PostgreSQL and SQLite.
"""

from datetime import UTC, datetime
from enum import Enum as PyEnum
from enum import IntEnum

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    SmallInteger,
    String,
    Text,
    TypeDecorator,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# BIGINT primary keys; SQLite only autoincrements INTEGER PRIMARY KEY
BigIntId = BigInteger().with_variant(Integer, "sqlite")


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC timestamp on every backend.

    PostgreSQL stores timestamptz natively. SQLite has no timezone support, so
    values are normalized to naive UTC on the way in and re-tagged as UTC on
    the way out; string comparisons in SQL then stay chronological.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        value = value.astimezone(UTC)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# =============================================================================
# Enums
# =============================================================================


class UserStatus(IntEnum):
    """Account status stored in clip_users.status."""

    disabled = 0
    active = 1


class ContentType(str, PyEnum):
    """Kind of clip content."""

    text = "text"
    code = "code"
    markdown = "markdown"
    url = "url"


class AccessType(str, PyEnum):
    """Clip visibility policy.

    private: owner only
    public: anyone, and listed in the public feed
    unlisted: anyone holding the id or short_url, never listed
    """

    private = "private"
    public = "public"
    unlisted = "unlisted"


# =============================================================================
# Models
# =============================================================================


class User(Base):
    """Account with credential hash and login bookkeeping."""

    __tablename__ = "clip_users"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str] = mapped_column(String(100), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    salt: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[int] = mapped_column(
        SmallInteger, nullable=False, default=UserStatus.active, server_default="1"
    )
    last_login_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    last_login_ip: Mapped[str | None] = mapped_column(String(45), nullable=True)
    login_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow, server_default=func.now()
    )
    deleted_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint("username", name="uk_username"),
        UniqueConstraint("email", name="uk_email"),
        CheckConstraint("status IN (0, 1)", name="ck_clip_users_status"),
        Index("idx_clip_users_status", "status"),
        Index("idx_clip_users_created_at", "created_at"),
    )

    # Relationships
    sessions: Mapped[list["UserSession"]] = relationship(
        "UserSession", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    clips: Mapped[list["Clip"]] = relationship(
        "Clip", back_populates="owner", cascade="all, delete-orphan", passive_deletes=True
    )
    tags: Mapped[list["Tag"]] = relationship(
        "Tag", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.active and self.deleted_at is None


class UserSession(Base):
    """Login session: one access/refresh token pair per row."""

    __tablename__ = "clip_user_sessions"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("clip_users.id", ondelete="CASCADE"), nullable=False
    )
    token: Mapped[str] = mapped_column(String(255), nullable=False)
    refresh_token: Mapped[str] = mapped_column(String(255), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    refresh_expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    device_info: Mapped[str | None] = mapped_column(String(500), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("token", name="uk_token"),
        UniqueConstraint("refresh_token", name="uk_refresh_token"),
        CheckConstraint("expires_at < refresh_expires_at", name="ck_sessions_expiry_order"),
        Index("idx_sessions_user_id", "user_id"),
        Index("idx_sessions_expires_at", "expires_at"),
    )

    user: Mapped["User"] = relationship("User", back_populates="sessions")


class Clip(Base):
    """Shared text/code/markdown/url artifact."""

    __tablename__ = "clip_contents"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("clip_users.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    content_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ContentType.text.value, server_default="text"
    )
    language: Mapped[str | None] = mapped_column(String(50), nullable=True)
    is_encrypted: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="0"
    )
    # Server-wrapped owner key material, see clipshare.services.crypto
    encryption_key: Mapped[str | None] = mapped_column(String(255), nullable=True)
    access_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=AccessType.private.value, server_default="private"
    )
    view_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    short_url: Mapped[str | None] = mapped_column(String(50), nullable=True)
    tags: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow, server_default=func.now()
    )
    deleted_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint("short_url", name="uk_short_url"),
        CheckConstraint(
            "content_type IN ('text', 'code', 'markdown', 'url')",
            name="ck_clip_contents_content_type",
        ),
        CheckConstraint(
            "access_type IN ('private', 'public', 'unlisted')",
            name="ck_clip_contents_access_type",
        ),
        CheckConstraint(
            "is_encrypted = false OR encryption_key IS NOT NULL",
            name="ck_clip_contents_encryption_key",
        ),
        CheckConstraint("view_count >= 0", name="ck_clip_contents_view_count"),
        Index("idx_clip_contents_user_id", "user_id"),
        Index("idx_clip_contents_access_type", "access_type"),
        Index("idx_clip_contents_content_type", "content_type"),
        Index("idx_clip_contents_expires_at", "expires_at"),
        Index("idx_clip_contents_created_at", "created_at"),
    )

    owner: Mapped["User"] = relationship("User", back_populates="clips")
    access_logs: Mapped[list["AccessLog"]] = relationship(
        "AccessLog", back_populates="clip", cascade="all, delete-orphan", passive_deletes=True
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def is_expired(self, now: datetime | None = None) -> bool:
        """Whether the clip is past its expires_at at `now`."""
        if self.expires_at is None:
            return False
        return (now or utcnow()) > self.expires_at


class AccessLog(Base):
    """One row per successful clip view. Never updated."""

    __tablename__ = "clip_access_logs"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    content_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("clip_contents.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int | None] = mapped_column(
        BigIntId, ForeignKey("clip_users.id", ondelete="SET NULL"), nullable=True
    )
    access_ip: Mapped[str] = mapped_column(String(45), nullable=False)
    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)
    referrer: Mapped[str | None] = mapped_column(String(500), nullable=True)
    accessed_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow, server_default=func.now()
    )

    __table_args__ = (
        Index("idx_access_logs_content_id", "content_id"),
        Index("idx_access_logs_user_id", "user_id"),
        Index("idx_access_logs_accessed_at", "accessed_at"),
    )

    clip: Mapped["Clip"] = relationship("Clip", back_populates="access_logs")


class Tag(Base):
    """Per-user tag with the number of live clips using it."""

    __tablename__ = "clip_tags"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    user_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("clip_users.id", ondelete="CASCADE"), nullable=False
    )
    usage_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uk_user_tag"),
        CheckConstraint("usage_count >= 0", name="ck_clip_tags_usage_count"),
        Index("idx_clip_tags_name", "name"),
    )

    user: Mapped["User"] = relationship("User", back_populates="tags")
