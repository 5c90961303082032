"""Crawl orchestration tasks."""

import asyncio
import logging
from uuid import UUID

import redis

from storesync.config import Settings, get_settings
from storesync.context import build_context
from storesync.exceptions import SourceNotFoundError
from storesync.services.job_runner import JobOptions
from storesync.services.queue import CrawlJob, JobQueue
from storesync.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)

QUEUED_KEY = "storesync:queued:{source_id}"


class CeleryJobQueue(JobQueue):
    """Hands jobs to the crawl_source task; worker concurrency enforces the cap.

    A short-lived redis marker per source keeps a backlogged broker from
    collecting duplicate jobs for the same source.
    """

    def __init__(self, redis_client: redis.Redis, marker_ttl_seconds: int):
        self.redis = redis_client
        self.marker_ttl_seconds = marker_ttl_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> "CeleryJobQueue":
        return cls(redis.from_url(settings.redis_url, socket_timeout=5), settings.job_timeout_seconds * 2)

    def enqueue(self, job: CrawlJob) -> bool:
        key = QUEUED_KEY.format(source_id=job.source_id)
        if not self.redis.set(key, "1", nx=True, ex=self.marker_ttl_seconds):
            return False
        crawl_source.delay(str(job.source_id), full_rescrape=job.full_rescrape, dry_run=job.dry_run)
        return True

    def tick(self) -> list[CrawlJob]:
        return []

    def complete(self, job: CrawlJob) -> None:
        self.redis.delete(QUEUED_KEY.format(source_id=job.source_id))

    def is_active(self, source_id: UUID) -> bool:
        return bool(self.redis.exists(QUEUED_KEY.format(source_id=source_id)))


@celery_app.task(name="storesync.tasks.crawl_tasks.crawl_tick")
def crawl_tick():
    """Find sources due for a crawl and dispatch individual crawl tasks."""
    queued = asyncio.run(_tick())
    logger.info(f"Dispatched {len(queued)} crawl tasks")
    return {"dispatched": len(queued)}


@celery_app.task(name="storesync.tasks.crawl_tasks.crawl_source")
def crawl_source(source_id: str, full_rescrape: bool = False, dry_run: bool = False):
    """Crawl and sync a single source."""
    return asyncio.run(_crawl(source_id, full_rescrape, dry_run))


async def _tick() -> list[UUID]:
    ctx = build_context()
    try:
        scheduler = ctx.scheduler(queue=CeleryJobQueue.from_settings(ctx.settings))
        return await scheduler.tick()
    finally:
        await ctx.aclose()


async def _crawl(source_id: str, full_rescrape: bool, dry_run: bool) -> dict:
    settings = get_settings()
    ctx = build_context(settings)
    queue = CeleryJobQueue.from_settings(settings)
    job = CrawlJob(source_id=UUID(source_id), full_rescrape=full_rescrape, dry_run=dry_run)
    try:
        outcome = await ctx.runner().run(job.source_id, JobOptions(full_rescrape=full_rescrape, dry_run=dry_run))
    except SourceNotFoundError:
        logger.error(f"Source {source_id} not found")
        return {"status": "not_found"}
    finally:
        queue.complete(job)
        await ctx.aclose()

    return {
        "status": outcome.status.value,
        "skipped": outcome.skipped,
        "job_run_id": str(outcome.job_run_id) if outcome.job_run_id else None,
    }
