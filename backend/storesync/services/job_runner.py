"""Job runner: one crawl-and-sync job for one source, with its JobRun audit record."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Awaitable, Callable
from uuid import UUID

from storesync.config import Settings
from storesync.crawler.driver import CrawlDriver, CrawlOptions
from storesync.exceptions import SourceInactiveError, SourceNotFoundError
from storesync.fetchers import build_fetcher
from storesync.fetchers.base import PageFetcher
from storesync.models.enums import JobStatus
from storesync.schemas.source import SourceRead
from storesync.scrapers.types import CrawlErrorType, ScrapeResult, utcnow
from storesync.store.base import CatalogStore
from storesync.sync.engine import SyncEngine, SyncErrorType, SyncOptions, SyncResult

logger = logging.getLogger(__name__)

FetcherFactory = Callable[[SourceRead], PageFetcher]


@dataclass
class JobOptions:
    full_rescrape: bool = False
    dry_run: bool = False
    max_pages: int | None = None


@dataclass
class JobOutcome:
    source_id: UUID
    status: JobStatus
    job_run_id: UUID | None = None
    skipped: bool = False
    scrape: ScrapeResult | None = None
    sync: SyncResult | None = None


class JobRunner:
    """Runs crawl → sync for one source and records the outcome.

    The JobRun is written RUNNING at start and frozen COMPLETED or FAILED
    at the end. The source's crawl state is updated whatever the outcome,
    so a failing source waits a full interval before its next attempt.
    """

    def __init__(
        self,
        store: CatalogStore,
        settings: Settings,
        fetcher_factory: FetcherFactory | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.settings = settings
        self.fetcher_factory = fetcher_factory or (lambda source: build_fetcher(source.config, settings))
        self.sleep = sleep
        self.clock = clock

    async def run(self, source_id: UUID, options: JobOptions | None = None) -> JobOutcome:
        options = options or JobOptions()
        source = await self.store.get_source(source_id)
        if source is None:
            raise SourceNotFoundError(source_id)
        tag = f"[{source.platform.value}/{source.name}]"

        if not source.is_active and not options.full_rescrape:
            return await self._reject_inactive(source, tag)

        stale_after = timedelta(seconds=self.settings.job_timeout_seconds)
        if await self.store.has_running_job(source.id, stale_after=stale_after):
            logger.info(f"{tag} Already running, skipping")
            return JobOutcome(source_id=source.id, status=JobStatus.RUNNING, skipped=True)

        started_at = self.clock()
        run_id = await self.store.create_job_run(source.id, JobStatus.RUNNING, started_at)
        logger.info(f"{tag} Job {run_id} started{' (dry run)' if options.dry_run else ''}")

        scrape: ScrapeResult | None = None
        sync: SyncResult | None = None
        status = JobStatus.FAILED
        errors: list[dict] = []
        try:
            scrape, sync = await asyncio.wait_for(
                self._execute(source, run_id, options, tag),
                timeout=self.settings.job_timeout_seconds,
            )
            errors = [e.to_dict() for e in scrape.errors] + [e.to_dict() for e in sync.errors]
            status = scrape.status
            if any(e.type == SyncErrorType.LOOKUP for e in sync.errors):
                status = JobStatus.FAILED
        except asyncio.TimeoutError:
            message = f"Job exceeded {self.settings.job_timeout_seconds}s timeout"
            errors = [{"type": CrawlErrorType.TIMEOUT.value, "message": message}]
            logger.error(f"{tag} {message}")
        except Exception as e:
            errors = [{"type": CrawlErrorType.UNKNOWN.value, "message": str(e) or type(e).__name__}]
            logger.error(f"{tag} Job {run_id} failed: {e}", exc_info=True)

        finished_at = self.clock()
        items_found = scrape.items_found if scrape else 0
        await self.store.update_job_run(run_id, {
            "status": status,
            "items_found": items_found,
            "items_new": sync.items_new if sync else 0,
            "items_updated": sync.items_updated if sync else 0,
            "items_removed": sync.items_removed if sync else 0,
            "errors": errors,
            "duration_seconds": round((finished_at - started_at).total_seconds(), 3),
            "finished_at": finished_at,
        })

        # A dry run must not push back the next scheduled crawl
        if not options.dry_run:
            await self.store.update_source(
                source.id,
                last_crawled_at=finished_at,
                last_item_count=items_found,
                last_error=errors[0]["message"][:2000] if errors else None,
            )

        log = logger.info if status == JobStatus.COMPLETED else logger.warning
        log(
            f"{tag} Job {run_id} {status.value}: found={items_found} "
            f"new={sync.items_new if sync else 0} updated={sync.items_updated if sync else 0} "
            f"removed={sync.items_removed if sync else 0} errors={len(errors)}"
        )
        return JobOutcome(source_id=source.id, status=status, job_run_id=run_id, scrape=scrape, sync=sync)

    async def _execute(
        self,
        source: SourceRead,
        run_id: UUID,
        options: JobOptions,
        tag: str,
    ) -> tuple[ScrapeResult, SyncResult]:
        fetcher = self.fetcher_factory(source)
        try:
            driver = CrawlDriver(fetcher, self.settings, sleep=self.sleep)
            scrape = await driver.crawl(source, CrawlOptions(max_pages=options.max_pages, dry_run=options.dry_run))
        finally:
            await fetcher.aclose()

        await self.store.update_job_run(run_id, {"items_found": scrape.items_found})

        mark_missing = True
        if scrape.is_partial and self.settings.skip_removal_on_partial_crawl:
            mark_missing = False
            reason = "truncated at max pages" if scrape.truncated else "crawl failed"
            logger.warning(f"{tag} Partial crawl ({reason}); not marking missing entries as sold")

        sync = await SyncEngine(self.store).sync(
            scrape.items,
            source.tenant_id,
            SyncOptions(dry_run=options.dry_run, mark_missing_sold=mark_missing),
        )
        return scrape, sync

    async def _reject_inactive(self, source: SourceRead, tag: str) -> JobOutcome:
        error = SourceInactiveError(source.id)
        now = self.clock()
        run_id = await self.store.create_job_run(source.id, JobStatus.FAILED, now)
        await self.store.update_job_run(run_id, {
            "errors": [{"type": CrawlErrorType.UNKNOWN.value, "message": str(error)}],
            "finished_at": now,
            "duration_seconds": 0.0,
        })
        logger.warning(f"{tag} {error}")
        return JobOutcome(source_id=source.id, status=JobStatus.FAILED, job_run_id=run_id)
