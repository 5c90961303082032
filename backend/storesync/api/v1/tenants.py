"""Tenant API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException

from storesync.api.deps import get_scheduler
from storesync.schemas.source import TenantCrawlResponse
from storesync.services.scheduler import CrawlScheduler

router = APIRouter(prefix="/tenants", tags=["tenants"])


@router.post("/{tenant_id}/crawl", response_model=TenantCrawlResponse)
async def trigger_tenant_crawl(
    tenant_id: UUID,
    scheduler: CrawlScheduler = Depends(get_scheduler),
):
    """Queue a crawl of every active source belonging to the tenant."""
    if await scheduler.store.get_tenant(tenant_id) is None:
        raise HTTPException(status_code=404, detail="Tenant not found")

    source_ids = await scheduler.trigger_crawl_all(tenant_id)
    return TenantCrawlResponse(tenant_id=tenant_id, queued=len(source_ids), source_ids=source_ids)
