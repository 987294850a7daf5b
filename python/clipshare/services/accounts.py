"""Account store.

Owns user identity and credential hashes. Passwords are hashed with argon2
through a passlib CryptContext; every user also gets a random salt that is
prepended to the password before hashing, so the stored salt column stays
meaningful for rows migrated from older hash schemes.

Accounts are soft-deleted (deleted_at) and never hard-deleted while referenced;
purge_user is the explicit administrative hard delete.
"""

import secrets
from datetime import datetime

from passlib.context import CryptContext
from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clipshare.db.models import AccessLog, Clip, Tag, User, UserSession, UserStatus, utcnow
from clipshare.errors import (
    ApiErrorCode,
    DuplicateIdentityError,
    ForbiddenError,
    InvalidCredentialsError,
    NotFoundError,
)
from clipshare.logging import get_logger
from clipshare.services.sessions import revoke_user_sessions
from clipshare.services.tags import detach_tags

logger = get_logger(__name__)

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")

# 16 random bytes, hex encoded (32 chars, fits clip_users.salt)
SALT_BYTES = 16


def hash_password(password: str, salt: str) -> str:
    return pwd_context.hash(salt + password)


def verify_password(password: str, salt: str, password_hash: str) -> bool:
    return pwd_context.verify(salt + password, password_hash)


def get_user(db: Session, user_id: int) -> User:
    """Load a live (not soft-deleted) user.

    Raises:
        NotFoundError(E_USER_NOT_FOUND): If the user does not exist or is deleted.
    """
    user = db.get(User, user_id)
    if user is None or user.is_deleted:
        raise NotFoundError(ApiErrorCode.E_USER_NOT_FOUND, "User not found")
    return user


def create_user(
    db: Session,
    username: str,
    email: str,
    password: str,
    ip: str | None = None,
) -> User:
    """Register a new account.

    Args:
        db: Database session.
        username: Unique login name.
        email: Unique email address (stored lower-cased).
        password: Plaintext password; only its hash is stored.
        ip: Client address of the registration request (logged only).

    Returns:
        The created user.

    Raises:
        DuplicateIdentityError: If the username or email is already taken,
            including a race detected only by the unique constraints.
    """
    email = email.strip().lower()

    existing = db.scalar(
        select(User.id).where(or_(User.username == username, User.email == email))
    )
    if existing is not None:
        raise DuplicateIdentityError()

    salt = secrets.token_hex(SALT_BYTES)
    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password, salt),
        salt=salt,
        status=UserStatus.active,
        login_count=0,
    )

    try:
        with db.begin_nested():
            db.add(user)
            db.flush()
    except IntegrityError:
        logger.info("user_register_race", username=username)
        raise DuplicateIdentityError() from None

    db.commit()
    logger.info("user_registered", user_id=user.id, ip=ip)
    return user


def verify_credentials(
    db: Session,
    identifier: str,
    password: str,
    ip: str | None = None,
    now: datetime | None = None,
) -> User:
    """Check a username-or-email / password pair and record the login.

    On success last_login_at and last_login_ip are set and login_count is
    incremented atomically, all in one transaction.

    Raises:
        InvalidCredentialsError: Unknown identifier, wrong password or deleted account.
        ForbiddenError(E_ACCOUNT_DISABLED): Correct credentials for a disabled account.
    """
    identifier = identifier.strip()
    user = db.scalar(
        select(User).where(or_(User.username == identifier, User.email == identifier.lower()))
    )

    if user is None or user.is_deleted:
        raise InvalidCredentialsError()
    if not verify_password(password, user.salt, user.password_hash):
        logger.info("login_failed", user_id=user.id)
        raise InvalidCredentialsError()
    if user.status != UserStatus.active:
        raise ForbiddenError(ApiErrorCode.E_ACCOUNT_DISABLED, "Account is disabled")

    db.execute(
        update(User)
        .where(User.id == user.id)
        .values(
            last_login_at=now or utcnow(),
            last_login_ip=ip,
            login_count=User.login_count + 1,
        ),
        execution_options={"synchronize_session": False},
    )
    db.commit()
    db.refresh(user)

    logger.info("login_succeeded", user_id=user.id, login_count=user.login_count)
    return user


def soft_delete_user(db: Session, user_id: int, now: datetime | None = None) -> None:
    """Mark an account deleted, along with its clips, and revoke every session.

    Owned clips are soft-deleted with the same timestamp and release their
    tags, so they drop out of every read path and listing at once.

    Raises:
        NotFoundError(E_USER_NOT_FOUND): If the user does not exist or is already deleted.
    """
    deleted_at = now or utcnow()
    user = get_user(db, user_id)
    user.deleted_at = deleted_at

    clips = list(
        db.scalars(select(Clip).where(Clip.user_id == user_id, Clip.deleted_at.is_(None)))
    )
    for clip in clips:
        clip.deleted_at = deleted_at
        detach_tags(db, user_id, clip.id, list(clip.tags or []))

    revoked = revoke_user_sessions(db, user_id, commit=False)
    db.commit()

    logger.info(
        "user_soft_deleted",
        user_id=user_id,
        sessions_revoked=revoked,
        clips_deleted=len(clips),
    )


def purge_user(db: Session, user_id: int) -> None:
    """Hard-delete an account and everything it owns.

    The cascade is performed explicitly rather than relying on ON DELETE
    actions: sessions, tags and clips (with their access logs) are removed,
    while access logs the user left on other users' clips are kept with
    user_id set to NULL.

    Raises:
        NotFoundError(E_USER_NOT_FOUND): If the user does not exist.
    """
    if db.get(User, user_id) is None:
        raise NotFoundError(ApiErrorCode.E_USER_NOT_FOUND, "User not found")

    owned_clips = select(Clip.id).where(Clip.user_id == user_id)

    db.execute(delete(AccessLog).where(AccessLog.content_id.in_(owned_clips)))
    db.execute(update(AccessLog).where(AccessLog.user_id == user_id).values(user_id=None))
    db.execute(delete(Clip).where(Clip.user_id == user_id))
    db.execute(delete(Tag).where(Tag.user_id == user_id))
    db.execute(delete(UserSession).where(UserSession.user_id == user_id))
    db.execute(delete(User).where(User.id == user_id))
    db.commit()

    logger.info("user_purged", user_id=user_id)
