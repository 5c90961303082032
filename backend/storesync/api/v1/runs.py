"""Job run API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query

from storesync.api.deps import get_store
from storesync.models.enums import JobStatus
from storesync.schemas.job_run import JobRunRead, JobRunWithSource
from storesync.schemas.source import SourceSummary
from storesync.store.base import CatalogStore

router = APIRouter(prefix="/runs", tags=["runs"])


async def _attach_sources(store: CatalogStore, runs: list[JobRunRead]) -> list[JobRunWithSource]:
    sources = await store.get_sources([run.source_id for run in runs])
    attached = []
    for run in runs:
        source = sources.get(run.source_id)
        summary = SourceSummary.model_validate(source.model_dump(mode="json")) if source else None
        attached.append(JobRunWithSource(**run.model_dump(), source=summary))
    return attached


@router.get("", response_model=list[JobRunWithSource])
async def list_runs(
    store: CatalogStore = Depends(get_store),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    source_id: UUID | None = Query(None, description="Filter by source"),
    status: JobStatus | None = Query(None, description="Filter by status"),
):
    """List recent job runs, newest first."""
    runs = await store.list_job_runs(source_id=source_id, status=status, limit=limit, offset=skip)
    return await _attach_sources(store, runs)


@router.get("/{run_id}", response_model=JobRunWithSource)
async def get_run(run_id: UUID, store: CatalogStore = Depends(get_store)):
    run = await store.get_job_run(run_id)
    if run is None:
        raise HTTPException(status_code=404, detail="Run not found")
    return (await _attach_sources(store, [run]))[0]
