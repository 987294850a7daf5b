"""Access recorder.

One clip_access_logs row per successful clip view. Rows are inserted and never
updated. Recording is best-effort: a failed insert is rolled back to its own
savepoint, logged, and never fails the view that triggered it.
"""

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clipshare.db.models import AccessLog, Clip
from clipshare.errors import ApiErrorCode, ForbiddenError, NotFoundError
from clipshare.logging import get_logger
from clipshare.schemas.clips import AccessLogOut, PageInfo
from clipshare.services.pagination import (
    DEFAULT_LIMIT,
    clamp_limit,
    decode_cursor,
    encode_cursor,
)

logger = get_logger(__name__)

MAX_HEADER_LENGTH = 500
MAX_IP_LENGTH = 45


def _truncate(value: str | None, length: int) -> str | None:
    if value is None:
        return None
    return value[:length]


def record_access(
    db: Session,
    content_id: int,
    viewer_user_id: int | None,
    ip: str,
    user_agent: str | None = None,
    referrer: str | None = None,
) -> bool:
    """Append an access log row inside a savepoint.

    Returns:
        True if the row was written, False if the insert failed (logged).
    """
    try:
        with db.begin_nested():
            db.add(
                AccessLog(
                    content_id=content_id,
                    user_id=viewer_user_id,
                    access_ip=_truncate(ip, MAX_IP_LENGTH) or "unknown",
                    user_agent=_truncate(user_agent, MAX_HEADER_LENGTH),
                    referrer=_truncate(referrer, MAX_HEADER_LENGTH),
                )
            )
            db.flush()
    except SQLAlchemyError as e:
        logger.warning(
            "access_log_write_failed",
            content_id=content_id,
            error_type=type(e).__name__,
        )
        return False
    return True


def list_clip_access(
    db: Session,
    clip_id: int,
    owner_id: int,
    limit: int = DEFAULT_LIMIT,
    cursor: str | None = None,
) -> tuple[list[AccessLogOut], PageInfo]:
    """List the views of a clip, newest first. Owner only.

    Expired clips keep their log visible to the owner; deleted clips do not.

    Raises:
        NotFoundError(E_CLIP_NOT_FOUND): Clip missing or deleted.
        ForbiddenError: Caller is not the owner.
        InvalidRequestError(E_INVALID_CURSOR): Malformed cursor.
    """
    clip = db.get(Clip, clip_id)
    if clip is None or clip.is_deleted:
        raise NotFoundError(ApiErrorCode.E_CLIP_NOT_FOUND, "Clip not found")
    if clip.user_id != owner_id:
        raise ForbiddenError()

    limit = clamp_limit(limit)
    query = select(AccessLog).where(AccessLog.content_id == clip_id)
    if cursor:
        cursor_ts, cursor_id = decode_cursor(cursor)
        query = query.where(
            or_(
                AccessLog.accessed_at < cursor_ts,
                and_(AccessLog.accessed_at == cursor_ts, AccessLog.id < cursor_id),
            )
        )
    rows = list(
        db.scalars(query.order_by(AccessLog.accessed_at.desc(), AccessLog.id.desc()).limit(limit + 1))
    )

    has_more = len(rows) > limit
    rows = rows[:limit]
    logs = [AccessLogOut.model_validate(row) for row in rows]

    next_cursor = None
    if has_more and logs:
        next_cursor = encode_cursor(logs[-1].accessed_at, logs[-1].id)
    return logs, PageInfo(next_cursor=next_cursor)
