"""Session manager.

A session row holds one access/refresh token pair:

    Active --refresh--> Active (new pair, old pair dead) --revoke/expiry--> gone

Access tokens are HS256 JWTs carrying sub, iat, exp and a random jti. The
signature is checked on every request, but the session row is authoritative:
a token is only valid while its row exists and now <= expires_at. Refresh
tokens are opaque random strings.

Rotation is a compare-and-swap on the refresh_token column, so of two
concurrent refreshes with the same token exactly one wins and the other
sees E_TOKEN_NOT_FOUND.
"""

import secrets
from datetime import datetime, timedelta

import jwt
from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from clipshare.config import get_settings
from clipshare.db.models import User, UserSession, UserStatus, utcnow
from clipshare.errors import (
    ApiErrorCode,
    ForbiddenError,
    RefreshExpiredError,
    TokenExpiredError,
    TokenNotFoundError,
)
from clipshare.logging import get_logger
from clipshare.schemas.auth import TokenPairOut
from clipshare.services.unique import retry_on_unique_violation

logger = get_logger(__name__)

JWT_ALGORITHM = "HS256"

# Refresh tokens: 48 random bytes, urlsafe base64 (64 chars)
REFRESH_TOKEN_BYTES = 48

# Bounded by clip_user_sessions.device_info
MAX_DEVICE_INFO_LENGTH = 500


def _new_access_token(user_id: int, issued_at: datetime, expires_at: datetime) -> str:
    settings = get_settings()
    claims = {
        "sub": str(user_id),
        "iat": issued_at,
        "exp": expires_at,
        "jti": secrets.token_hex(16),
    }
    return jwt.encode(claims, settings.effective_jwt_secret, algorithm=JWT_ALGORITHM)


def _new_refresh_token() -> str:
    return secrets.token_urlsafe(REFRESH_TOKEN_BYTES)


def _expiry_window(now: datetime) -> tuple[datetime, datetime]:
    settings = get_settings()
    return (
        now + timedelta(seconds=settings.access_token_ttl_s),
        now + timedelta(seconds=settings.refresh_token_ttl_s),
    )


def _token_pair_out(
    access_token: str, refresh_token: str, expires_at: datetime, refresh_expires_at: datetime
) -> TokenPairOut:
    return TokenPairOut(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=get_settings().access_token_ttl_s,
        expires_at=expires_at,
        refresh_expires_at=refresh_expires_at,
    )


def _load_live_user(db: Session, user_id: int) -> User:
    """Owning user of a session; deleted users make every token unknown."""
    user = db.get(User, user_id)
    if user is None or user.is_deleted:
        raise TokenNotFoundError()
    if user.status != UserStatus.active:
        raise ForbiddenError(ApiErrorCode.E_ACCOUNT_DISABLED, "Account is disabled")
    return user


# =============================================================================
# Service Functions
# =============================================================================


def issue_session(
    db: Session,
    user_id: int,
    device_info: str | None = None,
    ip: str | None = None,
    now: datetime | None = None,
) -> TokenPairOut:
    """Create a session with a fresh access/refresh token pair.

    Raises:
        RetryExhaustedError: If token collisions persisted past MAX_UNIQUE_RETRIES.
    """
    now = now or utcnow()
    expires_at, refresh_expires_at = _expiry_window(now)
    if device_info is not None:
        device_info = device_info[:MAX_DEVICE_INFO_LENGTH]

    def insert_session() -> UserSession:
        session = UserSession(
            user_id=user_id,
            token=_new_access_token(user_id, now, expires_at),
            refresh_token=_new_refresh_token(),
            expires_at=expires_at,
            refresh_expires_at=refresh_expires_at,
            device_info=device_info,
            ip_address=ip,
            created_at=now,
            updated_at=now,
        )
        db.add(session)
        return session

    session = retry_on_unique_violation(db, insert_session, label="session token")
    db.commit()

    logger.info("session_issued", user_id=user_id, session_id=session.id)
    return _token_pair_out(
        session.token, session.refresh_token, session.expires_at, session.refresh_expires_at
    )


def validate_access_token(db: Session, token: str, now: datetime | None = None) -> UserSession:
    """Resolve an access token to its live session. Read-only.

    Raises:
        TokenNotFoundError: Malformed, badly signed, revoked or rotated token,
            or a token whose owner has been deleted.
        TokenExpiredError: The session exists but now > expires_at.
        ForbiddenError(E_ACCOUNT_DISABLED): The owner is disabled.
    """
    settings = get_settings()
    try:
        claims = jwt.decode(
            token,
            settings.effective_jwt_secret,
            algorithms=[JWT_ALGORITHM],
            options={"verify_exp": False, "verify_iat": False, "require": ["sub", "jti"]},
        )
    except jwt.InvalidTokenError:
        raise TokenNotFoundError() from None

    session = db.scalar(select(UserSession).where(UserSession.token == token))
    if session is None or str(session.user_id) != claims["sub"]:
        raise TokenNotFoundError()

    _load_live_user(db, session.user_id)

    if (now or utcnow()) > session.expires_at:
        raise TokenExpiredError()

    return session


def refresh_session(
    db: Session, refresh_token: str, now: datetime | None = None
) -> TokenPairOut:
    """Rotate a session's token pair.

    Both tokens are replaced and both TTLs restart from now. The old access
    and refresh tokens stop working immediately.

    Raises:
        TokenNotFoundError: Unknown refresh token, including a replay of an
            already rotated one or the loser of a concurrent refresh.
        RefreshExpiredError: now > refresh_expires_at.
    """
    now = now or utcnow()
    session = db.scalar(select(UserSession).where(UserSession.refresh_token == refresh_token))
    if session is None:
        raise TokenNotFoundError()

    _load_live_user(db, session.user_id)

    if now > session.refresh_expires_at:
        raise RefreshExpiredError()

    session_id = session.id
    user_id = session.user_id
    expires_at, refresh_expires_at = _expiry_window(now)

    def rotate() -> TokenPairOut:
        pair = _token_pair_out(
            _new_access_token(user_id, now, expires_at),
            _new_refresh_token(),
            expires_at,
            refresh_expires_at,
        )
        result = db.execute(
            update(UserSession)
            .where(UserSession.id == session_id, UserSession.refresh_token == refresh_token)
            .values(
                token=pair.access_token,
                refresh_token=pair.refresh_token,
                expires_at=expires_at,
                refresh_expires_at=refresh_expires_at,
                updated_at=now,
            ),
            execution_options={"synchronize_session": False},
        )
        if result.rowcount == 0:
            logger.info("session_refresh_lost_race", session_id=session_id)
            raise TokenNotFoundError()
        return pair

    pair = retry_on_unique_violation(db, rotate, label="session token")
    db.commit()
    db.expire(session)

    logger.info("session_refreshed", user_id=user_id, session_id=session_id)
    return pair


def revoke_session(db: Session, token: str) -> None:
    """Delete the session owning `token`. Immediate and irreversible.

    Raises:
        TokenNotFoundError: If no session holds this access token.
    """
    result = db.execute(
        delete(UserSession).where(UserSession.token == token),
        execution_options={"synchronize_session": False},
    )
    if result.rowcount == 0:
        raise TokenNotFoundError()
    db.commit()
    logger.info("session_revoked")


def revoke_user_sessions(db: Session, user_id: int, *, commit: bool = True) -> int:
    """Delete every session of a user. Returns the number removed."""
    result = db.execute(
        delete(UserSession).where(UserSession.user_id == user_id),
        execution_options={"synchronize_session": False},
    )
    if commit:
        db.commit()
    return result.rowcount


def reap_expired_sessions(db: Session, now: datetime | None = None) -> int:
    """Hard-delete sessions past refresh_expires_at. Returns the number removed."""
    now = now or utcnow()
    result = db.execute(
        delete(UserSession).where(UserSession.refresh_expires_at < now),
        execution_options={"synchronize_session": False},
    )
    db.commit()

    if result.rowcount:
        logger.info("sessions_reaped", count=result.rowcount)
    return result.rowcount
