"""Tag index: per-user tag usage counters.

Each (user_id, name) pair has one clip_tags row whose usage_count is the
number of live clips carrying that tag. Counters move only through atomic SQL
increments/decrements so concurrent clip writes cannot lose updates.

Helpers here accept a Session and never commit, except prune_unused_tags which
is a standalone maintenance operation.
"""

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clipshare.db.models import Tag
from clipshare.errors import InvalidRequestError
from clipshare.logging import get_logger

logger = get_logger(__name__)

MAX_TAG_LENGTH = 50
MAX_TAGS_PER_CLIP = 20


def normalize_tag_names(names: list[str]) -> list[str]:
    """Strip, lower-case and de-duplicate tag names, keeping first-seen order.

    Raises:
        InvalidRequestError: On an empty or over-long name, or too many tags.
    """
    normalized: list[str] = []
    for raw in names:
        name = raw.strip().lower()
        if not name:
            raise InvalidRequestError(message="Tag names must not be empty")
        if len(name) > MAX_TAG_LENGTH:
            raise InvalidRequestError(
                message=f"Tag names must be at most {MAX_TAG_LENGTH} characters"
            )
        if name not in normalized:
            normalized.append(name)

    if len(normalized) > MAX_TAGS_PER_CLIP:
        raise InvalidRequestError(message=f"A clip can carry at most {MAX_TAGS_PER_CLIP} tags")
    return normalized


def _get_or_create_tag_id(db: Session, user_id: int, name: str) -> int:
    tag_id = db.scalar(select(Tag.id).where(Tag.user_id == user_id, Tag.name == name))
    if tag_id is not None:
        return tag_id

    try:
        with db.begin_nested():
            tag = Tag(user_id=user_id, name=name, usage_count=0)
            db.add(tag)
            db.flush()
        return tag.id
    except IntegrityError:
        # A concurrent writer created it first
        logger.info("tag_create_race", user_id=user_id, tag=name)
        return db.scalars(select(Tag.id).where(Tag.user_id == user_id, Tag.name == name)).one()


def attach_tags(db: Session, user_id: int, clip_id: int | None, names: list[str]) -> None:
    """Count one more use of each (already normalized) tag name."""
    for name in names:
        tag_id = _get_or_create_tag_id(db, user_id, name)
        db.execute(
            update(Tag).where(Tag.id == tag_id).values(usage_count=Tag.usage_count + 1),
            execution_options={"synchronize_session": False},
        )

    if names:
        logger.debug("tags_attached", user_id=user_id, clip_id=clip_id, count=len(names))


def detach_tags(db: Session, user_id: int, clip_id: int | None, names: list[str]) -> None:
    """Count one fewer use of each tag name. Counters never go below zero."""
    if not names:
        return

    db.execute(
        update(Tag)
        .where(Tag.user_id == user_id, Tag.name.in_(names), Tag.usage_count > 0)
        .values(usage_count=Tag.usage_count - 1),
        execution_options={"synchronize_session": False},
    )
    logger.debug("tags_detached", user_id=user_id, clip_id=clip_id, count=len(names))


def list_user_tags(db: Session, user_id: int, include_unused: bool = False) -> list[Tag]:
    """Tags of a user, most used first."""
    query = select(Tag).where(Tag.user_id == user_id)
    if not include_unused:
        query = query.where(Tag.usage_count > 0)
    query = query.order_by(Tag.usage_count.desc(), Tag.name).execution_options(
        populate_existing=True
    )
    return list(db.scalars(query))


def prune_unused_tags(db: Session, user_id: int | None = None) -> int:
    """Delete tags no clip uses any more. Returns the number removed."""
    query = delete(Tag).where(Tag.usage_count == 0)
    if user_id is not None:
        query = query.where(Tag.user_id == user_id)

    result = db.execute(query, execution_options={"synchronize_session": False})
    db.commit()

    if result.rowcount:
        logger.info("tags_pruned", user_id=user_id, count=result.rowcount)
    return result.rowcount
