"""Celery application configuration."""

from datetime import timedelta

from celery import Celery

from src.config import get_settings
from src.logging_conf import setup_logging

settings = get_settings()
setup_logging()

celery_app = Celery(
    "leadqueue",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "src.workers.score_tasks",
        "src.workers.queue_tasks",
    ],
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=3600,  # 1 hour max per task
    worker_prefetch_multiplier=1,
    worker_concurrency=4,
)

# Beat schedule for periodic tasks
celery_app.conf.beat_schedule = {
    # Expiry and stale-entry sweep across all tenant queues
    "sweep-queues": {
        "task": "src.workers.queue_tasks.sweep_queues",
        "schedule": timedelta(minutes=settings.queue_sweep_interval_minutes),
    },
}
