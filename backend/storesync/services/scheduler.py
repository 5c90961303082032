"""Crawl scheduler: finds due sources each tick and dispatches jobs through a JobQueue."""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable
from uuid import UUID

from storesync.config import Settings
from storesync.exceptions import SourceInactiveError, SourceNotFoundError
from storesync.schemas.source import JobStatusResponse
from storesync.scrapers.types import utcnow
from storesync.services.job_runner import JobOptions, JobRunner
from storesync.services.queue import CrawlJob, JobQueue
from storesync.store.base import CatalogStore

logger = logging.getLogger(__name__)


class CrawlScheduler:
    """Decides what to crawl and hands it to the queue.

    Jobs the queue releases through tick() are run here as asyncio tasks.
    Queues backed by an external worker release nothing and run the job
    themselves.
    """

    def __init__(
        self,
        store: CatalogStore,
        queue: JobQueue,
        settings: Settings,
        runner: JobRunner | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.queue = queue
        self.settings = settings
        self.runner = runner
        self.clock = clock
        self._tasks: set[asyncio.Task] = set()

    async def tick(self) -> list[UUID]:
        """Enqueue every due source and start whatever the queue releases. Returns newly queued ids."""
        due = await self.store.find_sources_due(self.clock())
        queued = [source.id for source in due if self.queue.enqueue(CrawlJob(source_id=source.id))]
        if due:
            logger.info(f"Tick: {len(due)} sources due, {len(queued)} newly queued")
        self._dispatch()
        return queued

    async def trigger_crawl(self, source_id: UUID, full_rescrape: bool = False, dry_run: bool = False) -> bool:
        source = await self.store.get_source(source_id)
        if source is None:
            raise SourceNotFoundError(source_id)
        if not source.is_active and not full_rescrape:
            raise SourceInactiveError(source_id)

        queued = self.queue.enqueue(CrawlJob(source_id=source_id, full_rescrape=full_rescrape, dry_run=dry_run))
        if not queued:
            logger.info(f"[{source.platform.value}/{source.name}] Crawl already queued or running")
        self._dispatch()
        return queued

    async def trigger_crawl_all(self, tenant_id: UUID) -> list[UUID]:
        sources = await self.store.list_sources(tenant_id=tenant_id, active_only=True)
        queued = [s.id for s in sources if self.queue.enqueue(CrawlJob(source_id=s.id))]
        logger.info(f"Tenant {tenant_id}: queued {len(queued)} of {len(sources)} active sources")
        self._dispatch()
        return queued

    async def get_job_status(self, source_id: UUID) -> JobStatusResponse:
        if await self.store.get_source(source_id) is None:
            raise SourceNotFoundError(source_id)
        stale_after = timedelta(seconds=self.settings.job_timeout_seconds)
        is_running = self.queue.is_active(source_id) or await self.store.has_running_job(source_id, stale_after)
        return JobStatusResponse(
            source_id=source_id,
            is_running=is_running,
            last_result=await self.store.get_latest_job_run(source_id),
        )

    async def drain(self) -> None:
        """Wait for every in-flight job, including ones started as earlier jobs finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def run_forever(self) -> None:
        """In-process timer loop for deployments without Celery beat."""
        while True:
            try:
                await self.tick()
            except Exception as e:
                logger.error(f"Scheduler tick failed: {e}", exc_info=True)
            await asyncio.sleep(self.settings.tick_interval_seconds)

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def _dispatch(self) -> None:
        for job in self.queue.tick():
            if self.runner is None:
                raise RuntimeError("Queue released a job but the scheduler has no runner")
            task = asyncio.create_task(self._run(job))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _run(self, job: CrawlJob) -> None:
        try:
            await self.runner.run(job.source_id, JobOptions(full_rescrape=job.full_rescrape, dry_run=job.dry_run))
        except Exception as e:
            # One broken job must never take the scheduler down
            logger.error(f"Crawl job for source {job.source_id} failed: {e}", exc_info=True)
        finally:
            self.queue.complete(job)
            self._dispatch()
