"""Celery application configuration and beat schedule."""

from celery import Celery

from storesync.config import get_settings

settings = get_settings()

celery_app = Celery(
    "storesync",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "storesync.tasks.crawl_tasks",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    task_track_started=True,
    # Hard limit sits just above the runner's own job timeout
    task_time_limit=settings.job_timeout_seconds + 60,
    task_soft_time_limit=settings.job_timeout_seconds,
    worker_concurrency=settings.max_concurrent_jobs,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
)

celery_app.conf.beat_schedule = {
    "crawl-tick": {
        "task": "storesync.tasks.crawl_tasks.crawl_tick",
        "schedule": float(settings.tick_interval_seconds),
    },
}
