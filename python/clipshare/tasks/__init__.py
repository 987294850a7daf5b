"""Celery tasks for Clipshare.

Tasks are explicitly imported here to register them with Celery.
No autodiscovery - all tasks must be imported in this module.
"""

from clipshare.tasks.reap_expired import reap_expired

__all__ = ["reap_expired"]
