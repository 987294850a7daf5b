"""Bounded retry for writes that race on a unique constraint.

Random values (short URLs, session tokens) are allocated optimistically: the
row is written inside a SAVEPOINT and, if the database rejects it with an
IntegrityError, only the savepoint is rolled back and a fresh value is tried.
After the retry budget is spent the caller gets E_UNIQUE_RETRY_EXHAUSTED.
"""

from collections.abc import Callable
from typing import TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clipshare.config import get_settings
from clipshare.errors import RetryExhaustedError
from clipshare.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

UNIQUE_VIOLATION_SQLSTATE = "23505"


def is_unique_violation(e: IntegrityError) -> bool:
    """Whether an IntegrityError came from a UNIQUE constraint (not FK, CHECK or NOT NULL)."""
    # psycopg exposes the SQLSTATE on diag
    if hasattr(e.orig, "diag") and getattr(e.orig.diag, "sqlstate", None):
        return e.orig.diag.sqlstate == UNIQUE_VIOLATION_SQLSTATE

    # Fallback: sqlite reports "UNIQUE constraint failed: table.column"
    msg = str(e.orig) if e.orig else str(e)
    return "UNIQUE constraint failed" in msg


def retry_on_unique_violation(
    db: Session,
    operation: Callable[[], T],
    *,
    label: str,
    max_attempts: int | None = None,
) -> T:
    """Run `operation` in a savepoint, retrying on unique-constraint violations.

    Any other IntegrityError (foreign key, CHECK, NOT NULL) is re-raised at
    once; only the savepoint is rolled back.

    `operation` must generate its random values afresh on every call and
    flush its own writes so constraint violations surface inside the savepoint.

    Args:
        db: Database session (inside the caller's transaction).
        operation: Callable performing the write; its return value is passed through.
        label: Name used in log events (e.g. "short_url").
        max_attempts: Override for MAX_UNIQUE_RETRIES.

    Returns:
        Whatever `operation` returns on the first successful attempt.

    Raises:
        RetryExhaustedError: If every attempt collided.
        IntegrityError: If the write violated anything other than a unique constraint.
    """
    attempts = max_attempts or get_settings().max_unique_retries

    for attempt in range(1, attempts + 1):
        try:
            with db.begin_nested():
                result = operation()
                db.flush()
            return result
        except IntegrityError as e:
            if not is_unique_violation(e):
                raise
            logger.warning("unique_collision", label=label, attempt=attempt)

    logger.error("unique_retry_exhausted", label=label, attempts=attempts)
    raise RetryExhaustedError(f"Could not allocate a unique {label}, try again")
