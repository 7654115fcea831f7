"""
Celery application configuration.

Defines the Celery app with Redis broker, task autodiscovery,
and the periodic beat schedule for the matching sweep.
"""

from celery import Celery

from p2p_queue.config import settings

celery_app = Celery(
    "p2p_queue",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
)

# Auto-discover tasks in the tasks package
celery_app.autodiscover_tasks(["p2p_queue.tasks"])

# Beat schedule: periodic tasks
celery_app.conf.beat_schedule = {
    "run-matching-sweep": {
        "task": "p2p_queue.tasks.matching_tasks.run_matching_sweep",
        "schedule": settings.MATCH_SWEEP_INTERVAL_SECONDS,
    },
}
