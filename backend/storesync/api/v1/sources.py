"""Source API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storesync.api.deps import get_db, get_scheduler
from storesync.exceptions import SourceInactiveError, SourceNotFoundError
from storesync.models.job_run import JobRun
from storesync.models.source import Source
from storesync.schemas.job_run import JobRunSummary
from storesync.schemas.source import (
    JobStatusResponse,
    ManualCrawlRequest,
    ManualCrawlResponse,
    SourceRead,
    SourceWithRuns,
)
from storesync.services.scheduler import CrawlScheduler

router = APIRouter(prefix="/sources", tags=["sources"])


@router.get("", response_model=list[SourceRead])
async def list_sources(
    db: AsyncSession = Depends(get_db),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    tenant_id: UUID | None = Query(None, description="Filter by tenant"),
    platform: str | None = Query(None, description="Filter by platform"),
    is_active: bool | None = Query(None, description="Filter by active status"),
):
    """List sources, most recently crawled first."""
    query = select(Source)

    if tenant_id:
        query = query.where(Source.tenant_id == tenant_id)
    if platform:
        query = query.where(Source.platform == platform)
    if is_active is not None:
        query = query.where(Source.is_active == is_active)

    query = query.order_by(Source.last_crawled_at.desc().nullslast(), Source.name).offset(skip).limit(limit)
    result = await db.execute(query)
    return [SourceRead.model_validate(source) for source in result.scalars().all()]


@router.get("/{source_id}", response_model=SourceWithRuns)
async def get_source(
    source_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    """Get a single source with recent job runs."""
    source = await db.get(Source, source_id)

    if not source:
        raise HTTPException(status_code=404, detail="Source not found")

    runs_query = (
        select(JobRun)
        .where(JobRun.source_id == source_id)
        .order_by(JobRun.created_at.desc())
        .limit(10)
    )
    runs_result = await db.execute(runs_query)
    runs = runs_result.scalars().all()

    return SourceWithRuns(
        **SourceRead.model_validate(source).model_dump(),
        recent_runs=[JobRunSummary.model_validate(run) for run in runs],
    )


@router.post("/{source_id}/crawl", response_model=ManualCrawlResponse)
async def trigger_crawl(
    source_id: UUID,
    request: ManualCrawlRequest | None = None,
    scheduler: CrawlScheduler = Depends(get_scheduler),
):
    """Queue a manual crawl for a source."""
    request = request or ManualCrawlRequest()
    try:
        queued = await scheduler.trigger_crawl(
            source_id, full_rescrape=request.full_rescrape, dry_run=request.dry_run
        )
    except SourceNotFoundError:
        raise HTTPException(status_code=404, detail="Source not found")
    except SourceInactiveError:
        raise HTTPException(status_code=400, detail="Source is not active")

    return ManualCrawlResponse(
        message="Crawl queued" if queued else "Crawl already queued or running",
        source_id=source_id,
        queued=queued,
    )


@router.get("/{source_id}/status", response_model=JobStatusResponse)
async def get_status(
    source_id: UUID,
    scheduler: CrawlScheduler = Depends(get_scheduler),
):
    """Whether a crawl is running for the source, plus its latest result."""
    try:
        return await scheduler.get_job_status(source_id)
    except SourceNotFoundError:
        raise HTTPException(status_code=404, detail="Source not found")
