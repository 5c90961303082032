import asyncio
import uuid
from datetime import timedelta

import pytest
from conftest import StubFetcher
from sqlalchemy import func, select

from storesync.exceptions import SourceNotFoundError
from storesync.models import CatalogEntry, JobRun, Source
from storesync.models.enums import CatalogStatus, JobStatus
from storesync.scrapers.types import utcnow
from storesync.services.job_runner import JobOptions, JobRunner

SHOP = "https://shop.example/catalog"

LIST_PAGE = """
<div class="product-card"><a href="/p/widget"><h3>Vintage Widget</h3></a><span class="price">$10.00</span>
  <img src="/img/w.jpg"></div>
<div class="product-card"><a href="/p/lamp"><h3>Brass Lamp</h3></a><span class="price">$45.00</span>
  <img src="/img/l.jpg"></div>
"""

DETAIL_PAGE = '<h1>{title}</h1><div class="description">Described.</div>'


def _fetcher(**extra) -> StubFetcher:
    pages = {
        SHOP: LIST_PAGE,
        "https://shop.example/p/widget": DETAIL_PAGE.format(title="Vintage Widget"),
        "https://shop.example/p/lamp": DETAIL_PAGE.format(title="Brass Lamp"),
    }
    pages.update(extra)
    return StubFetcher(pages)


def _runner(store, settings, sleep, fetcher) -> JobRunner:
    return JobRunner(store, settings, fetcher_factory=lambda source: fetcher, sleep=sleep)


async def test_successful_job_records_run_and_source(store, seed, settings, sleep):
    tenant = await seed.tenant()
    source = await seed.source(tenant)
    fetcher = _fetcher()

    outcome = await _runner(store, settings, sleep, fetcher).run(source.id)

    assert outcome.status == JobStatus.COMPLETED
    assert fetcher.closed
    run = await store.get_job_run(outcome.job_run_id)
    assert run.status == JobStatus.COMPLETED
    assert (run.items_found, run.items_new, run.items_updated, run.items_removed) == (2, 2, 0, 0)
    assert run.errors == []
    assert run.finished_at is not None
    assert run.duration_seconds is not None

    refreshed = await seed.get(Source, source.id)
    assert refreshed.last_crawled_at is not None
    assert refreshed.last_item_count == 2
    assert refreshed.last_error is None


async def test_rerun_is_idempotent(store, seed, settings, sleep):
    tenant = await seed.tenant()
    source = await seed.source(tenant)
    runner = _runner(store, settings, sleep, _fetcher())

    await runner.run(source.id)
    second = await runner.run(source.id)

    assert second.sync.mutations == 0


async def test_partial_crawl_does_not_mark_entries_sold(store, seed, settings, sleep):
    tenant = await seed.tenant()
    source = await seed.source(tenant)
    listed_elsewhere = await seed.entry(tenant, sku="X", source_url="https://shop.example/p/on-page-2")
    fetcher = _fetcher(**{SHOP: LIST_PAGE + '<a rel="next" href="/catalog?page=2">Next</a>'})
    fetcher.pages[f"{SHOP}?page=2"] = 500

    outcome = await _runner(store, settings, sleep, fetcher).run(source.id)

    assert outcome.status == JobStatus.FAILED
    assert outcome.scrape.is_partial
    assert outcome.sync.items_new == 2
    assert outcome.sync.items_removed == 0
    assert (await seed.get(CatalogEntry, listed_elsewhere.id)).status == CatalogStatus.ACTIVE.value
    refreshed = await seed.get(Source, source.id)
    assert refreshed.last_error == "Failed to load page: HTTP 500"


async def test_complete_crawl_marks_missing_entries_sold(store, seed, settings, sleep):
    tenant = await seed.tenant()
    source = await seed.source(tenant)
    delisted = await seed.entry(tenant, sku="X", source_url="https://shop.example/p/delisted")

    outcome = await _runner(store, settings, sleep, _fetcher()).run(source.id)

    assert outcome.sync.items_removed == 1
    assert (await seed.get(CatalogEntry, delisted.id)).status == CatalogStatus.SOLD.value


async def test_unknown_source_raises(store, settings, sleep):
    with pytest.raises(SourceNotFoundError):
        await _runner(store, settings, sleep, _fetcher()).run(uuid.uuid4())


async def test_inactive_source_gets_failed_run(store, seed, settings, sleep):
    tenant = await seed.tenant()
    source = await seed.source(tenant, is_active=False)
    fetcher = _fetcher()

    outcome = await _runner(store, settings, sleep, fetcher).run(source.id)

    assert outcome.status == JobStatus.FAILED
    assert fetcher.requested == []
    run = await store.get_job_run(outcome.job_run_id)
    assert run.status == JobStatus.FAILED
    assert "inactive" in run.errors[0]["message"]


async def test_full_rescrape_overrides_inactive(store, seed, settings, sleep):
    tenant = await seed.tenant()
    source = await seed.source(tenant, is_active=False)

    outcome = await _runner(store, settings, sleep, _fetcher()).run(source.id, JobOptions(full_rescrape=True))

    assert outcome.status == JobStatus.COMPLETED


async def test_running_job_is_not_duplicated(store, seed, settings, sleep):
    tenant = await seed.tenant()
    source = await seed.source(tenant)
    await store.create_job_run(source.id, JobStatus.RUNNING, utcnow())
    fetcher = _fetcher()

    outcome = await _runner(store, settings, sleep, fetcher).run(source.id)

    assert outcome.skipped
    assert fetcher.requested == []


async def test_stale_running_job_does_not_block(store, seed, settings, sleep):
    tenant = await seed.tenant()
    source = await seed.source(tenant)
    long_ago = utcnow() - timedelta(seconds=settings.job_timeout_seconds * 2)
    await store.create_job_run(source.id, JobStatus.RUNNING, long_ago)

    outcome = await _runner(store, settings, sleep, _fetcher()).run(source.id)

    assert not outcome.skipped
    assert outcome.status == JobStatus.COMPLETED


async def test_unexpected_exception_is_recorded_as_failed(store, seed, settings, sleep):
    tenant = await seed.tenant()
    source = await seed.source(tenant)

    def exploding_factory(source):
        raise RuntimeError("browser binary missing")

    outcome = await JobRunner(store, settings, fetcher_factory=exploding_factory, sleep=sleep).run(source.id)

    assert outcome.status == JobStatus.FAILED
    run = await store.get_job_run(outcome.job_run_id)
    assert run.errors == [{"type": "unknown", "message": "browser binary missing"}]
    refreshed = await seed.get(Source, source.id)
    assert refreshed.last_error == "browser binary missing"
    assert refreshed.last_crawled_at is not None


async def test_job_timeout(store, seed, settings, sleep):
    settings.job_timeout_seconds = 0.05
    tenant = await seed.tenant()
    source = await seed.source(tenant)

    class HangingFetcher(StubFetcher):
        async def fetch(self, url, options=None):
            await asyncio.sleep(5)

    fetcher = HangingFetcher()
    outcome = await JobRunner(store, settings, fetcher_factory=lambda s: fetcher, sleep=sleep).run(source.id)

    assert outcome.status == JobStatus.FAILED
    assert fetcher.closed
    run = await store.get_job_run(outcome.job_run_id)
    assert run.errors[0]["type"] == "timeout"


async def test_dry_run_leaves_catalog_and_schedule_alone(store, seed, settings, sleep, session_factory):
    tenant = await seed.tenant()
    source = await seed.source(tenant)

    outcome = await _runner(store, settings, sleep, _fetcher()).run(source.id, JobOptions(dry_run=True))

    assert outcome.sync.items_new == 2
    async with session_factory() as session:
        assert await session.scalar(select(func.count()).select_from(CatalogEntry)) == 0
        assert await session.scalar(select(func.count()).select_from(JobRun)) == 1
    assert (await seed.get(Source, source.id)).last_crawled_at is None
