import uuid
from datetime import timedelta
from decimal import Decimal

from sqlalchemy import select

from storesync.models import CatalogEntry, PriceHistory, Source, Tenant
from storesync.models.enums import CatalogStatus, JobStatus
from storesync.scrapers.types import ScrapedItem, utcnow


async def test_list_sources_filters_and_orders(store, seed):
    tenant = await seed.tenant()
    other = await seed.tenant(name="Other", slug="other")
    await seed.source(tenant, name="b-shop")
    await seed.source(tenant, name="a-shop")
    await seed.source(tenant, name="c-shop", is_active=False)
    await seed.source(other, name="d-shop", platform="ebay_store")

    assert [s.name for s in await store.list_sources(tenant_id=tenant.id)] == ["a-shop", "b-shop", "c-shop"]
    assert [s.name for s in await store.list_sources(tenant_id=tenant.id, active_only=True)] == ["a-shop", "b-shop"]
    assert [s.name for s in await store.list_sources(platform="ebay_store")] == ["d-shop"]


async def test_source_config_round_trips_camel_case(store, seed):
    tenant = await seed.tenant()
    source = await seed.source(
        tenant,
        config={"maxPages": 3, "delayMs": 0, "auth": {"authUrl": "https://shop.example/login"}},
        selectors={"productList": ".grid", "nextPage": "a.more"},
    )

    loaded = await store.get_source(source.id)

    assert loaded.config.max_pages == 3
    assert loaded.config.delay_ms == 0
    assert loaded.config.auth.auth_url == "https://shop.example/login"
    assert loaded.selectors.product_list == ".grid"


async def test_find_sources_due(store, seed):
    tenant = await seed.tenant()
    now = utcnow()
    stale = await seed.source(tenant, name="stale", last_crawled_at=now - timedelta(minutes=90))
    await seed.source(tenant, name="fresh", last_crawled_at=now - timedelta(minutes=5))
    await seed.source(tenant, name="off", is_active=False)

    assert [s.id for s in await store.find_sources_due(now)] == [stale.id]


async def test_update_source_records_crawl_state(store, seed):
    tenant = await seed.tenant()
    source = await seed.source(tenant)
    crawled_at = utcnow()

    await store.update_source(source.id, last_crawled_at=crawled_at, last_item_count=7, last_error="boom")

    row = await seed.get(Source, source.id)
    assert row.last_item_count == 7
    assert row.last_error == "boom"
    assert row.last_crawled_at is not None


async def test_eligible_entries_exclude_manual_and_other_tenants(store, seed):
    tenant = await seed.tenant()
    other = await seed.tenant(name="Other", slug="other")
    scraped = await seed.entry(tenant)
    await seed.entry(tenant, source_url=None)
    await seed.entry(other)

    entries = await store.get_eligible_catalog_entries(tenant.id)

    assert [e.id for e in entries] == [scraped.id]


async def test_create_entry_is_draft_and_counts_towards_tenant(store, seed):
    tenant = await seed.tenant()
    item = ScrapedItem(
        source_url="https://shop.example/p/chair",
        title="Oak Chair",
        price=120.0,
        images=["https://shop.example/chair.jpg"],
        attributes={"material": "oak"},
    )

    entry_id = await store.create_catalog_entry(item, tenant.id, "ACME-CHAIR")

    entry = await seed.get(CatalogEntry, entry_id)
    assert entry.status == CatalogStatus.DRAFT.value
    assert entry.price == Decimal("120.00")
    assert entry.images == ["https://shop.example/chair.jpg"]
    assert entry.attributes == {"material": "oak"}
    assert (await seed.get(Tenant, tenant.id)).total_items == 1


async def test_find_existing_skus_spans_tenants(store, seed):
    tenant = await seed.tenant()
    other = await seed.tenant(name="Other", slug="other")
    await seed.entry(tenant, sku="ACME-1")
    await seed.entry(other, sku="OTHE-2")

    assert await store.find_existing_skus(["ACME-1", "OTHE-2", "ACME-3"]) == {"ACME-1", "OTHE-2"}
    assert await store.find_existing_skus([]) == set()


async def test_mark_entries_sold_and_price_history(store, seed, session_factory):
    tenant = await seed.tenant()
    first = await seed.entry(tenant, source_url="https://shop.example/p/1")
    second = await seed.entry(tenant, source_url="https://shop.example/p/2")

    assert await store.mark_entries_sold([first.id, second.id]) == 2
    assert await store.mark_entries_sold([]) == 0
    await store.record_price_history(first.id, Decimal("9.50"), "scrape_update")

    assert (await seed.get(CatalogEntry, second.id)).status == CatalogStatus.SOLD.value
    async with session_factory() as session:
        history = (await session.execute(select(PriceHistory))).scalars().all()
    assert [(h.entry_id, h.price, h.reason) for h in history] == [(first.id, Decimal("9.50"), "scrape_update")]


async def test_transaction_rolls_back_on_error(store, seed):
    tenant = await seed.tenant()
    entry = await seed.entry(tenant)

    try:
        async with store.transaction() as tx:
            await tx.update_catalog_entry(entry.id, {"title": "Renamed"})
            raise RuntimeError("abort")
    except RuntimeError:
        pass

    assert (await seed.get(CatalogEntry, entry.id)).title == "Vintage Widget"


async def test_job_run_lifecycle(store, seed):
    tenant = await seed.tenant()
    source = await seed.source(tenant)
    started = utcnow() - timedelta(minutes=1)

    first = await store.create_job_run(source.id, JobStatus.COMPLETED, started)
    second = await store.create_job_run(source.id, JobStatus.RUNNING)
    await store.update_job_run(second, {
        "status": JobStatus.FAILED,
        "items_found": 4,
        "errors": [{"type": "network", "message": "refused"}],
    })

    run = await store.get_job_run(second)
    assert run.status == JobStatus.FAILED
    assert run.items_found == 4
    assert run.errors == [{"type": "network", "message": "refused"}]

    assert [r.id for r in await store.list_job_runs(source_id=source.id)] == [second, first]
    assert [r.id for r in await store.list_job_runs(status=JobStatus.COMPLETED)] == [first]
    assert (await store.get_latest_job_run(source.id)).id == second


async def test_get_sources_by_id(store, seed):
    tenant = await seed.tenant()
    a = await seed.source(tenant, name="a-shop")
    b = await seed.source(tenant, name="b-shop")
    await seed.source(tenant, name="c-shop")

    found = await store.get_sources([a.id, b.id, a.id, uuid.uuid4()])

    assert {k: v.name for k, v in found.items()} == {a.id: "a-shop", b.id: "b-shop"}
    assert await store.get_sources([]) == {}


async def test_has_running_job_ignores_stale_runs(store, seed):
    tenant = await seed.tenant()
    source = await seed.source(tenant)
    await store.create_job_run(source.id, JobStatus.RUNNING, utcnow() - timedelta(hours=2))

    assert await store.has_running_job(source.id)
    assert not await store.has_running_job(source.id, stale_after=timedelta(hours=1))

    await store.create_job_run(source.id, JobStatus.RUNNING)
    assert await store.has_running_job(source.id, stale_after=timedelta(hours=1))
