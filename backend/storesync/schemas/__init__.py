"""Pydantic schemas package."""

from storesync.schemas.catalog import CatalogEntryRead, TenantRead
from storesync.schemas.job_run import JobRunRead, JobRunSummary, JobRunWithSource
from storesync.schemas.source import (
    AuthConfig,
    JobStatusResponse,
    ManualCrawlRequest,
    ManualCrawlResponse,
    SourceBase,
    SourceConfig,
    SourceCreate,
    SourceRead,
    SourceSelectors,
    SourceSummary,
    SourceWithRuns,
    TenantCrawlResponse,
)

# Rebuild models to resolve forward references
JobRunWithSource.model_rebuild()
SourceWithRuns.model_rebuild()
JobStatusResponse.model_rebuild()

__all__ = [
    # Catalog
    "CatalogEntryRead",
    "TenantRead",
    # JobRun
    "JobRunRead",
    "JobRunSummary",
    "JobRunWithSource",
    # Source
    "AuthConfig",
    "JobStatusResponse",
    "ManualCrawlRequest",
    "ManualCrawlResponse",
    "SourceBase",
    "SourceConfig",
    "SourceCreate",
    "SourceRead",
    "SourceSelectors",
    "SourceSummary",
    "SourceWithRuns",
    "TenantCrawlResponse",
]
