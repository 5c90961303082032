"""Catalog store interface consumed by the sync engine, job runner and scheduler."""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID

from storesync.models.enums import JobStatus
from storesync.schemas.catalog import CatalogEntryRead, TenantRead
from storesync.schemas.job_run import JobRunRead
from storesync.schemas.source import SourceRead
from storesync.scrapers.types import ScrapedItem


class CatalogStore(ABC):
    """Persistence for sources, catalog entries and job history.

    The store is the only state shared between concurrent jobs. Every
    method commits on its own unless called on the store yielded by
    ``transaction()``, which commits once when the block exits.
    """

    # -- sources --

    @abstractmethod
    async def get_source(self, source_id: UUID) -> SourceRead | None:
        ...

    @abstractmethod
    async def get_sources(self, source_ids: list[UUID]) -> dict[UUID, SourceRead]:
        """Sources by id; unknown ids are left out."""
        ...

    @abstractmethod
    async def list_sources(
        self,
        tenant_id: UUID | None = None,
        platform: str | None = None,
        active_only: bool = False,
    ) -> list[SourceRead]:
        ...

    @abstractmethod
    async def find_sources_due(self, now: datetime, tenant_id: UUID | None = None) -> list[SourceRead]:
        """Active sources whose crawl frequency has elapsed (or that were never crawled)."""
        ...

    @abstractmethod
    async def update_source(
        self,
        source_id: UUID,
        *,
        last_crawled_at: datetime,
        last_item_count: int,
        last_error: str | None,
    ) -> None:
        ...

    @abstractmethod
    async def get_tenant(self, tenant_id: UUID) -> TenantRead | None:
        ...

    # -- catalog --

    @abstractmethod
    async def get_eligible_catalog_entries(self, tenant_id: UUID) -> list[CatalogEntryRead]:
        """Entries with a non-null source_url; manually curated entries are never returned."""
        ...

    @abstractmethod
    async def create_catalog_entry(self, item: ScrapedItem, tenant_id: UUID, sku: str) -> UUID:
        """Insert a draft entry and bump the tenant's item counter."""
        ...

    @abstractmethod
    async def find_existing_skus(self, skus: list[str]) -> set[str]:
        """Which of the given SKUs are already taken, across all tenants."""
        ...

    @abstractmethod
    async def update_catalog_entry(self, entry_id: UUID, fields: dict[str, Any]) -> None:
        ...

    @abstractmethod
    async def mark_entries_sold(self, entry_ids: list[UUID]) -> int:
        ...

    @abstractmethod
    async def record_price_history(self, entry_id: UUID, price: Decimal, reason: str) -> None:
        ...

    # -- job runs --

    @abstractmethod
    async def create_job_run(
        self,
        source_id: UUID,
        status: JobStatus = JobStatus.RUNNING,
        started_at: datetime | None = None,
    ) -> UUID:
        ...

    @abstractmethod
    async def update_job_run(self, job_run_id: UUID, fields: dict[str, Any]) -> None:
        ...

    @abstractmethod
    async def get_job_run(self, job_run_id: UUID) -> JobRunRead | None:
        ...

    @abstractmethod
    async def get_latest_job_run(self, source_id: UUID) -> JobRunRead | None:
        ...

    @abstractmethod
    async def list_job_runs(
        self,
        source_id: UUID | None = None,
        status: JobStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[JobRunRead]:
        ...

    @abstractmethod
    async def has_running_job(self, source_id: UUID, stale_after: timedelta | None = None) -> bool:
        """True if the source has a RUNNING job; runs older than ``stale_after`` are ignored."""
        ...

    # -- transactions --

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager["CatalogStore"]:
        """Yield a store whose writes commit together when the block exits."""
        ...

    @abstractmethod
    def savepoint(self) -> AbstractAsyncContextManager[None]:
        """Isolate one operation inside a transaction; a failure rolls back only that operation."""
        ...
