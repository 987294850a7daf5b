"""Clip store.

Clips are shared text/code/markdown/url artifacts addressed by numeric id or by
a random short_url. Every read path enforces, in this order:

1. existence (missing or soft-deleted -> E_CLIP_NOT_FOUND)
2. expiry (past expires_at -> E_CLIP_EXPIRED, whoever asks)
3. visibility (private clips -> owner only, else E_FORBIDDEN)

Expiry is lazy: expired rows stay in the table until the reaper removes them.

Encrypted clips carry an opaque client-side ciphertext. The key material the
owner supplies is wrapped with the server master key (clipshare.services.crypto)
and only ever unwrapped for the owner.
"""

import json
import secrets
import string
from datetime import datetime, timedelta
from typing import Any
from urllib.parse import urlsplit

from sqlalchemy import Text, and_, cast, delete, or_, select, update
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from clipshare.config import get_settings
from clipshare.db.models import AccessLog, AccessType, Clip, ContentType, utcnow
from clipshare.errors import (
    ApiErrorCode,
    ClipExpiredError,
    ForbiddenError,
    InvalidRequestError,
    NotFoundError,
)
from clipshare.logging import get_logger
from clipshare.schemas.clips import MAX_TTL_S, ClipOut, PageInfo
from clipshare.services.access_log import record_access
from clipshare.services.crypto import MAX_CLIP_KEY_LENGTH, unwrap_clip_key, wrap_clip_key
from clipshare.services.pagination import (
    DEFAULT_LIMIT,
    clamp_limit,
    decode_cursor,
    encode_cursor,
)
from clipshare.services.tags import attach_tags, detach_tags, normalize_tag_names
from clipshare.services.unique import retry_on_unique_violation

logger = get_logger(__name__)

# =============================================================================
# Constants
# =============================================================================

SHORT_URL_ALPHABET = string.ascii_letters + string.digits

# Numeric identifiers longer than this cannot be a BIGINT id
MAX_ID_DIGITS = 18

URL_SCHEMES = ("http", "https")


# =============================================================================
# Helper Functions
# =============================================================================


def generate_short_url(length: int) -> str:
    """Random alphanumeric short URL that is never all digits.

    All-digit identifiers are reserved for numeric clip ids.
    """
    while True:
        candidate = "".join(secrets.choice(SHORT_URL_ALPHABET) for _ in range(length))
        if not candidate.isdigit():
            return candidate


def _parse_content_type(value: str) -> ContentType:
    try:
        return ContentType(value)
    except ValueError:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_CONTENT_TYPE, f"Unknown content_type: {value!r}"
        ) from None


def _parse_access_type(value: str) -> AccessType:
    try:
        return AccessType(value)
    except ValueError:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_ACCESS_TYPE, f"Unknown access_type: {value!r}"
        ) from None


def _validate_content(content: str, content_type: ContentType, is_encrypted: bool) -> None:
    if not content or not content.strip():
        raise InvalidRequestError(message="Clip content must not be empty")

    max_bytes = get_settings().max_clip_bytes
    if len(content.encode("utf-8")) > max_bytes:
        raise InvalidRequestError(message=f"Clip content exceeds {max_bytes} bytes")

    # Ciphertext is opaque; only plaintext URLs can be checked
    if content_type == ContentType.url and not is_encrypted:
        parts = urlsplit(content.strip())
        if parts.scheme not in URL_SCHEMES or not parts.netloc:
            raise InvalidRequestError(message="url clips must contain an http(s) URL")


def _validate_language(language: str | None, content_type: ContentType) -> None:
    if language is not None and content_type != ContentType.code:
        raise InvalidRequestError(message="language is only allowed on code clips")


def _expires_at_from_ttl(ttl: int | None, now: datetime) -> datetime | None:
    if ttl is None:
        return None
    if ttl <= 0:
        raise InvalidRequestError(message="expires_in must be a positive number of seconds")
    if ttl > MAX_TTL_S:
        raise InvalidRequestError(message=f"expires_in must be at most {MAX_TTL_S} seconds")
    return now + timedelta(seconds=ttl)


def _wrap_key(encryption_key: str | None) -> str:
    if not encryption_key:
        raise InvalidRequestError(message="Encrypted clips require an encryption_key")
    if len(encryption_key.encode("utf-8")) > MAX_CLIP_KEY_LENGTH:
        raise InvalidRequestError(
            message=f"encryption_key must be at most {MAX_CLIP_KEY_LENGTH} bytes"
        )
    return wrap_clip_key(encryption_key)


def _find_clip(db: Session, identifier: str) -> Clip | None:
    """Look up a live clip by numeric id or short_url."""
    if identifier.isascii() and identifier.isdigit():
        if len(identifier) > MAX_ID_DIGITS:
            return None
        clip = db.get(Clip, int(identifier))
    else:
        clip = db.scalar(select(Clip).where(Clip.short_url == identifier))

    if clip is None or clip.is_deleted:
        return None
    return clip


def get_clip_for_owner_or_error(db: Session, clip_id: int, owner_id: int) -> Clip:
    """Load a live clip and verify ownership.

    Raises:
        NotFoundError(E_CLIP_NOT_FOUND): If the clip doesn't exist or is deleted.
        ForbiddenError: If the caller is not the owner.
    """
    clip = db.get(Clip, clip_id)
    if clip is None or clip.is_deleted:
        raise NotFoundError(ApiErrorCode.E_CLIP_NOT_FOUND, "Clip not found")
    if clip.user_id != owner_id:
        raise ForbiddenError(message="Only the owner can modify this clip")
    return clip


def clip_to_out(clip: Clip, viewer_id: int | None, now: datetime | None = None) -> ClipOut:
    """Convert Clip ORM model to ClipOut schema for a given viewer.

    The unwrapped encryption key is included only when the viewer owns the clip.
    """
    encryption_key = None
    if clip.is_encrypted and clip.encryption_key and viewer_id == clip.user_id:
        encryption_key = unwrap_clip_key(clip.encryption_key)

    return ClipOut(
        id=clip.id,
        user_id=clip.user_id,
        title=clip.title,
        content=clip.content,
        content_type=clip.content_type,
        language=clip.language,
        is_encrypted=clip.is_encrypted,
        encryption_key=encryption_key,
        access_type=clip.access_type,
        view_count=clip.view_count,
        expires_at=clip.expires_at,
        is_expired=clip.is_expired(now),
        short_url=clip.short_url,
        tags=list(clip.tags or []),
        created_at=clip.created_at,
        updated_at=clip.updated_at,
    )


def _page(
    db: Session,
    query,
    viewer_id: int | None,
    limit: int,
    cursor: str | None,
    now: datetime,
) -> tuple[list[ClipOut], PageInfo]:
    limit = clamp_limit(limit)
    if cursor:
        cursor_created_at, cursor_id = decode_cursor(cursor)
        query = query.where(
            or_(
                Clip.created_at < cursor_created_at,
                and_(Clip.created_at == cursor_created_at, Clip.id < cursor_id),
            )
        )

    rows = list(
        db.scalars(query.order_by(Clip.created_at.desc(), Clip.id.desc()).limit(limit + 1))
    )
    has_more = len(rows) > limit
    clips = [clip_to_out(clip, viewer_id, now) for clip in rows[:limit]]

    next_cursor = None
    if has_more and clips:
        next_cursor = encode_cursor(clips[-1].created_at, clips[-1].id)
    return clips, PageInfo(next_cursor=next_cursor)


def _has_tag(name: str):
    # Matches the JSON-encoded element inside the serialized tags list
    return cast(Clip.tags, Text).contains(json.dumps(name), autoescape=True)


# =============================================================================
# Service Functions
# =============================================================================


def create_clip(
    db: Session,
    owner_id: int,
    content: str,
    content_type: str = ContentType.text.value,
    access_type: str = AccessType.private.value,
    *,
    ttl: int | None = None,
    is_encrypted: bool = False,
    encryption_key: str | None = None,
    title: str | None = None,
    language: str | None = None,
    tags: list[str] | None = None,
    now: datetime | None = None,
) -> Clip:
    """Create a clip with a freshly allocated short_url.

    Args:
        db: Database session.
        owner_id: The creating user.
        content: Clip body (ciphertext when is_encrypted).
        content_type: One of text, code, markdown, url.
        access_type: One of private, public, unlisted.
        ttl: Lifetime in seconds; None means the clip never expires.
        is_encrypted: Whether content is client-side ciphertext.
        encryption_key: Owner key material, required when is_encrypted.
        title: Optional title.
        language: Syntax language, code clips only.
        tags: Tag names (normalized before storing).
        now: Clock override.

    Raises:
        InvalidRequestError: On any validation failure (see module rules).
        RetryExhaustedError: If short_url collisions persisted past MAX_UNIQUE_RETRIES.
    """
    now = now or utcnow()
    parsed_content_type = _parse_content_type(content_type)
    parsed_access_type = _parse_access_type(access_type)
    _validate_content(content, parsed_content_type, is_encrypted)
    _validate_language(language, parsed_content_type)
    expires_at = _expires_at_from_ttl(ttl, now)
    tag_names = normalize_tag_names(tags or [])

    if is_encrypted:
        wrapped_key = _wrap_key(encryption_key)
    elif encryption_key is not None:
        raise InvalidRequestError(message="encryption_key requires is_encrypted")
    else:
        wrapped_key = None

    short_url_length = get_settings().short_url_length

    def insert_clip() -> Clip:
        clip = Clip(
            user_id=owner_id,
            title=title,
            content=content,
            content_type=parsed_content_type.value,
            language=language,
            is_encrypted=is_encrypted,
            encryption_key=wrapped_key,
            access_type=parsed_access_type.value,
            view_count=0,
            expires_at=expires_at,
            short_url=generate_short_url(short_url_length),
            tags=tag_names,
            created_at=now,
            updated_at=now,
        )
        db.add(clip)
        return clip

    clip = retry_on_unique_violation(db, insert_clip, label="short_url")
    attach_tags(db, owner_id, clip.id, tag_names)
    db.commit()

    logger.info(
        "clip_created",
        clip_id=clip.id,
        user_id=owner_id,
        content_type=clip.content_type,
        access_type=clip.access_type,
        is_encrypted=is_encrypted,
    )
    return clip


def get_clip(
    db: Session,
    identifier: str,
    viewer_id: int | None = None,
    *,
    access_ip: str = "unknown",
    user_agent: str | None = None,
    referrer: str | None = None,
    now: datetime | None = None,
) -> Clip:
    """Read a clip and count the view.

    A successful read increments view_count atomically and appends one access
    log row in the same transaction.

    Raises:
        NotFoundError(E_CLIP_NOT_FOUND): Missing or deleted clip.
        ClipExpiredError: The clip is past expires_at, regardless of access_type.
        ForbiddenError: The clip is private and the viewer is not the owner.
    """
    clip = _find_clip(db, identifier)
    if clip is None:
        raise NotFoundError(ApiErrorCode.E_CLIP_NOT_FOUND, "Clip not found")
    if clip.is_expired(now):
        raise ClipExpiredError()
    if clip.access_type == AccessType.private.value and viewer_id != clip.user_id:
        raise ForbiddenError(message="This clip is private")

    db.execute(
        update(Clip)
        .where(Clip.id == clip.id)
        .values(view_count=Clip.view_count + 1, updated_at=Clip.updated_at),
        execution_options={"synchronize_session": False},
    )
    view_count = db.scalar(select(Clip.view_count).where(Clip.id == clip.id))
    set_committed_value(clip, "view_count", view_count)

    record_access(db, clip.id, viewer_id, access_ip, user_agent, referrer)
    db.commit()

    logger.debug("clip_viewed", clip_id=clip.id, viewer_id=viewer_id)
    return clip


def list_user_clips(
    db: Session,
    owner_id: int,
    limit: int = DEFAULT_LIMIT,
    cursor: str | None = None,
    content_type: str | None = None,
    tag: str | None = None,
    now: datetime | None = None,
) -> tuple[list[ClipOut], PageInfo]:
    """List the owner's live clips, newest first.

    Expired clips are included and flagged with is_expired.

    Raises:
        InvalidRequestError(E_INVALID_CONTENT_TYPE): Unknown content_type filter.
        InvalidRequestError(E_INVALID_CURSOR): Malformed cursor.
    """
    query = select(Clip).where(Clip.user_id == owner_id, Clip.deleted_at.is_(None))
    if content_type is not None:
        query = query.where(Clip.content_type == _parse_content_type(content_type).value)
    if tag is not None:
        query = query.where(_has_tag(tag.strip().lower()))

    return _page(db, query, owner_id, limit, cursor, now or utcnow())


def list_public_clips(
    db: Session,
    viewer_id: int | None = None,
    limit: int = DEFAULT_LIMIT,
    cursor: str | None = None,
    content_type: str | None = None,
    now: datetime | None = None,
) -> tuple[list[ClipOut], PageInfo]:
    """List public, live, unexpired clips, newest first.

    Unlisted and private clips never appear. Listing does not count as a view.
    """
    now = now or utcnow()
    query = select(Clip).where(
        Clip.access_type == AccessType.public.value,
        Clip.deleted_at.is_(None),
        or_(Clip.expires_at.is_(None), Clip.expires_at > now),
    )
    if content_type is not None:
        query = query.where(Clip.content_type == _parse_content_type(content_type).value)

    return _page(db, query, viewer_id, limit, cursor, now)


def update_clip(
    db: Session,
    clip_id: int,
    owner_id: int,
    changes: dict[str, Any],
    now: datetime | None = None,
) -> Clip:
    """Apply a partial update to a clip.

    `changes` holds only the fields the caller sent (title, content,
    content_type, language, access_type, expires_in, tags, is_encrypted,
    encryption_key). expires_in=None clears the expiry. A new encryption key
    must come with the content it encrypts. short_url never changes.

    Raises:
        NotFoundError(E_CLIP_NOT_FOUND): Missing or deleted clip.
        ForbiddenError: Caller is not the owner.
        InvalidRequestError: On any validation failure.
    """
    now = now or utcnow()
    clip = get_clip_for_owner_or_error(db, clip_id, owner_id)

    # Validate everything before touching the row
    content_type = _parse_content_type(changes.get("content_type") or clip.content_type)
    access_type = clip.access_type
    if changes.get("access_type") is not None:
        access_type = _parse_access_type(changes["access_type"]).value

    # Switching away from code drops the language unless one is sent
    if "language" in changes:
        language = changes["language"]
    elif content_type != ContentType.code:
        language = None
    else:
        language = clip.language
    _validate_language(language, content_type)

    content = changes.get("content")
    is_encrypted = changes.get("is_encrypted")
    if is_encrypted is None:
        is_encrypted = clip.is_encrypted
    new_key = changes.get("encryption_key")

    if new_key is not None and not is_encrypted:
        raise InvalidRequestError(message="encryption_key requires is_encrypted")
    if is_encrypted != clip.is_encrypted and content is None:
        raise InvalidRequestError(message="Changing encryption requires new content")
    if new_key is not None and content is None:
        raise InvalidRequestError(message="A new encryption_key requires new content")

    new_content = content if content is not None else clip.content
    _validate_content(new_content, content_type, is_encrypted)

    wrapped_key = clip.encryption_key
    if is_encrypted and (new_key is not None or not clip.is_encrypted):
        wrapped_key = _wrap_key(new_key)
    elif not is_encrypted:
        wrapped_key = None

    expires_at = clip.expires_at
    if "expires_in" in changes:
        expires_at = _expires_at_from_ttl(changes["expires_in"], now)

    old_tags = list(clip.tags or [])
    new_tags = old_tags
    if changes.get("tags") is not None:
        new_tags = normalize_tag_names(changes["tags"])

    # Apply
    clip.content = new_content
    clip.content_type = content_type.value
    clip.language = language
    clip.access_type = access_type
    clip.is_encrypted = is_encrypted
    clip.encryption_key = wrapped_key
    clip.expires_at = expires_at
    if "title" in changes:
        clip.title = changes["title"]
    if new_tags != old_tags:
        detach_tags(db, owner_id, clip.id, [t for t in old_tags if t not in new_tags])
        attach_tags(db, owner_id, clip.id, [t for t in new_tags if t not in old_tags])
        clip.tags = new_tags

    clip.updated_at = now
    db.commit()

    logger.info("clip_updated", clip_id=clip.id, fields=sorted(changes))
    return clip


def delete_clip(db: Session, clip_id: int, owner_id: int, now: datetime | None = None) -> None:
    """Soft-delete a clip and release its tags.

    Raises:
        NotFoundError(E_CLIP_NOT_FOUND): Missing or already deleted clip.
        ForbiddenError: Caller is not the owner.
    """
    clip = get_clip_for_owner_or_error(db, clip_id, owner_id)
    clip.deleted_at = now or utcnow()
    detach_tags(db, owner_id, clip.id, list(clip.tags or []))
    db.commit()

    logger.info("clip_deleted", clip_id=clip_id, user_id=owner_id)


def reap_expired_clips(
    db: Session, now: datetime | None = None, grace_s: int | None = None
) -> int:
    """Hard-delete clips expired or soft-deleted longer ago than the grace period.

    Access logs go with their clips. Expired-but-live clips release their
    tags here; soft-deleted clips already did when they were deleted.

    Returns:
        Number of clips removed.
    """
    now = now or utcnow()
    if grace_s is None:
        grace_s = get_settings().reaper_grace_s
    cutoff = now - timedelta(seconds=grace_s)

    expired = list(
        db.scalars(
            select(Clip).where(
                Clip.deleted_at.is_(None),
                Clip.expires_at.is_not(None),
                Clip.expires_at < cutoff,
            )
        )
    )
    for clip in expired:
        detach_tags(db, clip.user_id, clip.id, list(clip.tags or []))

    deleted_ids = list(db.scalars(select(Clip.id).where(Clip.deleted_at < cutoff)))
    ids = [clip.id for clip in expired] + deleted_ids
    if ids:
        db.execute(delete(AccessLog).where(AccessLog.content_id.in_(ids)))
        db.execute(delete(Clip).where(Clip.id.in_(ids)))
    db.commit()

    if ids:
        logger.info("clips_reaped", count=len(ids), expired=len(expired))
    return len(ids)
