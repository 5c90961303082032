"""SQLAlchemy implementation of the catalog store (async sessions)."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, AsyncIterator
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storesync.models import CatalogEntry, JobRun, PriceHistory, Source, Tenant
from storesync.models.enums import CatalogStatus, JobStatus
from storesync.schemas.catalog import CatalogEntryRead, TenantRead
from storesync.schemas.job_run import JobRunRead
from storesync.schemas.source import SourceRead
from storesync.scrapers.normalize import to_decimal
from storesync.scrapers.types import ScrapedItem, utcnow
from storesync.store.base import CatalogStore

logger = logging.getLogger(__name__)


def _plain(fields: dict[str, Any]) -> dict[str, Any]:
    return {k: v.value if isinstance(v, Enum) else v for k, v in fields.items()}


class SqlAlchemyCatalogStore(CatalogStore):
    """Catalog store on SQLAlchemy async sessions.

    Unbound, each call opens and commits its own session. The store handed
    out by ``transaction()`` is bound to one session and commits on exit.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], session: AsyncSession | None = None):
        self._session_factory = session_factory
        self._session = session

    @asynccontextmanager
    async def _use(self) -> AsyncIterator[AsyncSession]:
        if self._session is not None:
            yield self._session
            return
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["SqlAlchemyCatalogStore"]:
        if self._session is not None:
            yield self
            return
        async with self._session_factory() as session:
            try:
                yield SqlAlchemyCatalogStore(self._session_factory, session=session)
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        if self._session is None:
            yield
            return
        async with self._session.begin_nested():
            yield

    # -- sources --

    async def get_source(self, source_id: UUID) -> SourceRead | None:
        async with self._use() as session:
            source = await session.get(Source, source_id)
            return SourceRead.model_validate(source) if source else None

    async def get_sources(self, source_ids: list[UUID]) -> dict[UUID, SourceRead]:
        if not source_ids:
            return {}
        async with self._use() as session:
            result = await session.execute(select(Source).where(Source.id.in_(set(source_ids))))
            return {s.id: SourceRead.model_validate(s) for s in result.scalars().all()}

    async def list_sources(
        self,
        tenant_id: UUID | None = None,
        platform: str | None = None,
        active_only: bool = False,
    ) -> list[SourceRead]:
        query = select(Source)
        if tenant_id:
            query = query.where(Source.tenant_id == tenant_id)
        if platform:
            query = query.where(Source.platform == platform)
        if active_only:
            query = query.where(Source.is_active == True)  # noqa: E712
        query = query.order_by(Source.name)

        async with self._use() as session:
            result = await session.execute(query)
            return [SourceRead.model_validate(s) for s in result.scalars().all()]

    async def find_sources_due(self, now: datetime, tenant_id: UUID | None = None) -> list[SourceRead]:
        sources = await self.list_sources(tenant_id=tenant_id, active_only=True)
        return [s for s in sources if s.is_due(now)]

    async def update_source(
        self,
        source_id: UUID,
        *,
        last_crawled_at: datetime,
        last_item_count: int,
        last_error: str | None,
    ) -> None:
        async with self._use() as session:
            await session.execute(
                update(Source)
                .where(Source.id == source_id)
                .values(last_crawled_at=last_crawled_at, last_item_count=last_item_count, last_error=last_error)
            )

    async def get_tenant(self, tenant_id: UUID) -> TenantRead | None:
        async with self._use() as session:
            tenant = await session.get(Tenant, tenant_id)
            return TenantRead.model_validate(tenant) if tenant else None

    # -- catalog --

    async def get_eligible_catalog_entries(self, tenant_id: UUID) -> list[CatalogEntryRead]:
        query = select(CatalogEntry).where(
            CatalogEntry.tenant_id == tenant_id,
            CatalogEntry.source_url.isnot(None),
        )
        async with self._use() as session:
            result = await session.execute(query)
            return [CatalogEntryRead.model_validate(e) for e in result.scalars().all()]

    async def create_catalog_entry(self, item: ScrapedItem, tenant_id: UUID, sku: str) -> UUID:
        async with self._use() as session:
            entry = CatalogEntry(
                tenant_id=tenant_id,
                sku=sku,
                title=item.title,
                description=item.description,
                price=to_decimal(item.price),
                quantity=item.quantity,
                condition=item.condition,
                category=item.category,
                status=CatalogStatus.DRAFT.value,
                source_url=item.source_url,
                external_id=item.external_id,
                images=list(item.images),
                attributes=dict(item.attributes),
            )
            session.add(entry)
            await session.execute(
                update(Tenant).where(Tenant.id == tenant_id).values(total_items=Tenant.total_items + 1)
            )
            await session.flush()
            return entry.id

    async def find_existing_skus(self, skus: list[str]) -> set[str]:
        if not skus:
            return set()
        async with self._use() as session:
            result = await session.execute(select(CatalogEntry.sku).where(CatalogEntry.sku.in_(skus)))
            return set(result.scalars().all())

    async def update_catalog_entry(self, entry_id: UUID, fields: dict[str, Any]) -> None:
        if not fields:
            return
        values = _plain(fields)
        if "price" in values:
            values["price"] = to_decimal(values["price"])
        async with self._use() as session:
            await session.execute(update(CatalogEntry).where(CatalogEntry.id == entry_id).values(**values))
            await session.flush()

    async def mark_entries_sold(self, entry_ids: list[UUID]) -> int:
        if not entry_ids:
            return 0
        async with self._use() as session:
            result = await session.execute(
                update(CatalogEntry)
                .where(CatalogEntry.id.in_(entry_ids))
                .values(status=CatalogStatus.SOLD.value)
            )
            return result.rowcount

    async def record_price_history(self, entry_id: UUID, price: Decimal, reason: str) -> None:
        async with self._use() as session:
            session.add(PriceHistory(entry_id=entry_id, price=to_decimal(price), reason=reason))
            await session.flush()

    # -- job runs --

    async def create_job_run(
        self,
        source_id: UUID,
        status: JobStatus = JobStatus.RUNNING,
        started_at: datetime | None = None,
    ) -> UUID:
        started_at = started_at or utcnow()
        async with self._use() as session:
            run = JobRun(
                source_id=source_id,
                status=status.value,
                started_at=started_at,
                created_at=started_at,
                errors=[],
            )
            session.add(run)
            await session.flush()
            return run.id

    async def update_job_run(self, job_run_id: UUID, fields: dict[str, Any]) -> None:
        async with self._use() as session:
            await session.execute(update(JobRun).where(JobRun.id == job_run_id).values(**_plain(fields)))

    async def get_job_run(self, job_run_id: UUID) -> JobRunRead | None:
        async with self._use() as session:
            run = await session.get(JobRun, job_run_id)
            return JobRunRead.model_validate(run) if run else None

    async def get_latest_job_run(self, source_id: UUID) -> JobRunRead | None:
        runs = await self.list_job_runs(source_id=source_id, limit=1)
        return runs[0] if runs else None

    async def list_job_runs(
        self,
        source_id: UUID | None = None,
        status: JobStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[JobRunRead]:
        query = select(JobRun)
        if source_id:
            query = query.where(JobRun.source_id == source_id)
        if status:
            query = query.where(JobRun.status == JobStatus(status).value)
        query = query.order_by(JobRun.created_at.desc()).offset(offset).limit(limit)

        async with self._use() as session:
            result = await session.execute(query)
            return [JobRunRead.model_validate(r) for r in result.scalars().all()]

    async def has_running_job(self, source_id: UUID, stale_after: timedelta | None = None) -> bool:
        query = select(JobRun.id).where(
            JobRun.source_id == source_id,
            JobRun.status == JobStatus.RUNNING.value,
        )
        if stale_after is not None:
            query = query.where(JobRun.started_at >= utcnow() - stale_after)

        async with self._use() as session:
            result = await session.execute(query.limit(1))
            return result.first() is not None
