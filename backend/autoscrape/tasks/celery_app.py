"""Celery application configuration and beat schedule."""

from celery import Celery
from celery.schedules import crontab

from autoscrape.config import get_settings

settings = get_settings()

celery_app = Celery(
    "autoscrape",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "autoscrape.tasks.automation_tasks",
        "autoscrape.tasks.maintenance_tasks",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    task_track_started=True,
    # A session is bounded by its step timeouts; anything longer is stuck
    task_time_limit=600,
    task_soft_time_limit=540,
    # Browser runs go to their own queue so a single-process worker can own the page:
    #   celery -A autoscrape.tasks.celery_app worker -Q automation -c 1
    task_routes={
        "autoscrape.tasks.automation_tasks.run_scene_automation": {"queue": "automation"},
    },
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    result_expires=86400,
)

celery_app.conf.beat_schedule = {
    "dispatch-due-rescrapes": {
        "task": "autoscrape.tasks.automation_tasks.dispatch_due_rescrapes",
        "schedule": crontab(minute="*/5"),
    },
    "prune-history": {
        "task": "autoscrape.tasks.maintenance_tasks.prune_history",
        "schedule": crontab(minute=0, hour=4),
    },
}
