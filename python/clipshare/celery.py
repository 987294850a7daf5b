"""Celery application configuration.

Central configuration for Celery used by the worker and the beat scheduler.

Usage:
    from clipshare.celery import celery_app

    # Run the reaper now instead of waiting for beat:
    from clipshare.tasks import reap_expired
    reap_expired.apply_async(kwargs={"request_id": request_id})
"""

from celery import Celery

from clipshare.config import get_settings

settings = get_settings()

celery_app = Celery("clipshare")

celery_app.conf.broker_url = settings.effective_celery_broker_url
celery_app.conf.result_backend = settings.effective_celery_result_backend

# Task configuration
celery_app.conf.task_serializer = "json"
celery_app.conf.result_serializer = "json"
celery_app.conf.accept_content = ["json"]
celery_app.conf.timezone = "UTC"
celery_app.conf.enable_utc = True

celery_app.conf.task_routes = {
    "reap_expired": {"queue": "maintenance"},
}
celery_app.conf.task_default_queue = "default"

# Expiry is enforced lazily at read time; the reaper only bounds storage
celery_app.conf.beat_schedule = {
    "reap-expired": {
        "task": "reap_expired",
        "schedule": float(settings.reaper_interval_s),
    },
}

celery_app.conf.task_always_eager = False
