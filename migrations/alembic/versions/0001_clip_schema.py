"""Clip schema - users, sessions, clip contents, access logs, tags

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Creates the five clip service tables. Enumerated columns are text/smallint
guarded by CHECK constraints; every timestamp is timezone-aware.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

BigIntId = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def _timestamp(name: str, nullable: bool = False, server_default: bool = True) -> sa.Column:
    return sa.Column(
        name,
        sa.TIMESTAMP(timezone=True),
        server_default=sa.text("CURRENT_TIMESTAMP") if server_default else None,
        nullable=nullable,
    )


def upgrade() -> None:
    # ==========================================================================
    # clip_users table
    # ==========================================================================
    op.create_table(
        "clip_users",
        sa.Column("id", BigIntId, autoincrement=True, nullable=False),
        sa.Column("username", sa.String(50), nullable=False),
        sa.Column("email", sa.String(100), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("salt", sa.String(50), nullable=False),
        sa.Column("status", sa.SmallInteger(), server_default="1", nullable=False),
        _timestamp("last_login_at", nullable=True, server_default=False),
        sa.Column("last_login_ip", sa.String(45), nullable=True),
        sa.Column("login_count", sa.Integer(), server_default="0", nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        _timestamp("deleted_at", nullable=True, server_default=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("username", name="uk_username"),
        sa.UniqueConstraint("email", name="uk_email"),
        # 0 = disabled, 1 = active
        sa.CheckConstraint("status IN (0, 1)", name="ck_clip_users_status"),
    )
    op.create_index("idx_clip_users_status", "clip_users", ["status"])
    op.create_index("idx_clip_users_created_at", "clip_users", ["created_at"])

    # ==========================================================================
    # clip_user_sessions table
    # ==========================================================================
    op.create_table(
        "clip_user_sessions",
        sa.Column("id", BigIntId, autoincrement=True, nullable=False),
        sa.Column("user_id", BigIntId, nullable=False),
        sa.Column("token", sa.String(255), nullable=False),
        sa.Column("refresh_token", sa.String(255), nullable=False),
        _timestamp("expires_at", server_default=False),
        _timestamp("refresh_expires_at", server_default=False),
        sa.Column("device_info", sa.String(500), nullable=True),
        sa.Column("ip_address", sa.String(45), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["clip_users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("token", name="uk_token"),
        sa.UniqueConstraint("refresh_token", name="uk_refresh_token"),
        sa.CheckConstraint("expires_at < refresh_expires_at", name="ck_sessions_expiry_order"),
    )
    op.create_index("idx_sessions_user_id", "clip_user_sessions", ["user_id"])
    op.create_index("idx_sessions_expires_at", "clip_user_sessions", ["expires_at"])

    # ==========================================================================
    # clip_contents table
    # ==========================================================================
    op.create_table(
        "clip_contents",
        sa.Column("id", BigIntId, autoincrement=True, nullable=False),
        sa.Column("user_id", BigIntId, nullable=False),
        sa.Column("title", sa.String(255), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("content_type", sa.String(20), server_default="text", nullable=False),
        sa.Column("language", sa.String(50), nullable=True),
        sa.Column("is_encrypted", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("encryption_key", sa.String(255), nullable=True),
        sa.Column("access_type", sa.String(20), server_default="private", nullable=False),
        sa.Column("view_count", sa.Integer(), server_default="0", nullable=False),
        _timestamp("expires_at", nullable=True, server_default=False),
        sa.Column("short_url", sa.String(50), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        _timestamp("deleted_at", nullable=True, server_default=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["clip_users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("short_url", name="uk_short_url"),
        sa.CheckConstraint(
            "content_type IN ('text', 'code', 'markdown', 'url')",
            name="ck_clip_contents_content_type",
        ),
        sa.CheckConstraint(
            "access_type IN ('private', 'public', 'unlisted')",
            name="ck_clip_contents_access_type",
        ),
        sa.CheckConstraint(
            "is_encrypted = false OR encryption_key IS NOT NULL",
            name="ck_clip_contents_encryption_key",
        ),
        sa.CheckConstraint("view_count >= 0", name="ck_clip_contents_view_count"),
    )
    op.create_index("idx_clip_contents_user_id", "clip_contents", ["user_id"])
    op.create_index("idx_clip_contents_access_type", "clip_contents", ["access_type"])
    op.create_index("idx_clip_contents_content_type", "clip_contents", ["content_type"])
    op.create_index("idx_clip_contents_expires_at", "clip_contents", ["expires_at"])
    op.create_index("idx_clip_contents_created_at", "clip_contents", ["created_at"])

    # ==========================================================================
    # clip_access_logs table
    # ==========================================================================
    op.create_table(
        "clip_access_logs",
        sa.Column("id", BigIntId, autoincrement=True, nullable=False),
        sa.Column("content_id", BigIntId, nullable=False),
        sa.Column("user_id", BigIntId, nullable=True),
        sa.Column("access_ip", sa.String(45), nullable=False),
        sa.Column("user_agent", sa.String(500), nullable=True),
        sa.Column("referrer", sa.String(500), nullable=True),
        _timestamp("accessed_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["content_id"], ["clip_contents.id"], ondelete="CASCADE"),
        # Logs outlive the viewer's account
        sa.ForeignKeyConstraint(["user_id"], ["clip_users.id"], ondelete="SET NULL"),
    )
    op.create_index("idx_access_logs_content_id", "clip_access_logs", ["content_id"])
    op.create_index("idx_access_logs_user_id", "clip_access_logs", ["user_id"])
    op.create_index("idx_access_logs_accessed_at", "clip_access_logs", ["accessed_at"])

    # ==========================================================================
    # clip_tags table
    # ==========================================================================
    op.create_table(
        "clip_tags",
        sa.Column("id", BigIntId, autoincrement=True, nullable=False),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("user_id", BigIntId, nullable=False),
        sa.Column("usage_count", sa.Integer(), server_default="0", nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["clip_users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("user_id", "name", name="uk_user_tag"),
        sa.CheckConstraint("usage_count >= 0", name="ck_clip_tags_usage_count"),
    )
    op.create_index("idx_clip_tags_name", "clip_tags", ["name"])


def downgrade() -> None:
    op.drop_table("clip_tags")
    op.drop_table("clip_access_logs")
    op.drop_table("clip_contents")
    op.drop_table("clip_user_sessions")
    op.drop_table("clip_users")
