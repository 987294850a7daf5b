"""Periodic hard-delete of rows past their useful life.

- sessions past refresh_expires_at
- clips expired, or soft-deleted, longer ago than REAPER_GRACE_S (with their access logs)
- tags whose usage_count dropped to zero

Reads already treat all of these as gone; reaping only reclaims storage, so a
missed run changes nothing observable.
"""

from datetime import datetime

from sqlalchemy.orm import Session

from clipshare.celery import celery_app
from clipshare.db.models import utcnow
from clipshare.db.session import get_session_factory
from clipshare.logging import clear_task_context, configure_task_logging, get_logger
from clipshare.services.clips import reap_expired_clips
from clipshare.services.sessions import reap_expired_sessions
from clipshare.services.tags import prune_unused_tags

logger = get_logger(__name__)


def run_reaper(db: Session, now: datetime | None = None, grace_s: int | None = None) -> dict:
    """Run every reaping step against one session. Returns per-step counts."""
    now = now or utcnow()
    counts = {
        "sessions": reap_expired_sessions(db, now),
        "clips": reap_expired_clips(db, now, grace_s),
        "tags": prune_unused_tags(db),
    }
    logger.info("reaper_completed", **counts)
    return counts


@celery_app.task(bind=True, max_retries=0, name="reap_expired")
def reap_expired(self, request_id: str | None = None) -> dict:
    """Celery entrypoint for the expiry reaper (scheduled by beat)."""
    configure_task_logging(request_id=request_id, task_name="reap_expired", task_id=self.request.id)

    db = get_session_factory()()
    try:
        return run_reaper(db)
    except Exception:
        db.rollback()
        logger.exception("reaper_failed")
        raise
    finally:
        db.close()
        clear_task_context()
