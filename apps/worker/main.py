"""Celery worker entrypoint.

Run the worker with:
    celery -A apps.worker.main:celery_app worker -Q default,maintenance --loglevel=info
Run the scheduler with:
    celery -A apps.worker.main:celery_app beat --loglevel=info

Task definitions are in the clipshare.tasks package - no autodiscovery.

Queue Configuration:
- maintenance: expiry reaper
- default: general background tasks
"""

from celery.signals import worker_process_init

from clipshare.celery import celery_app
from clipshare.logging import configure_logging, get_logger

# =============================================================================
# Task Registration (explicit imports - no autodiscovery)
# =============================================================================

from clipshare.tasks import reap_expired  # noqa: F401, E402

# =============================================================================
# Worker Lifecycle
# =============================================================================


@worker_process_init.connect
def setup_worker_logging(**kwargs):
    """Configure structlog when a worker process starts.

    Worker logs use the same JSON format as the API, with task_name and
    task_id bound by each task.
    """
    configure_logging()
    logger = get_logger(__name__)
    logger.info("celery_worker_started")


__all__ = ["celery_app"]
