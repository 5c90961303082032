"""Pydantic schemas for JobRun model."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator

from storesync.models.enums import JobStatus

if TYPE_CHECKING:
    from storesync.schemas.source import SourceSummary


class JobRunRead(BaseModel):
    """Full job run output."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    source_id: UUID
    status: JobStatus
    items_found: int = 0
    items_new: int = 0
    items_updated: int = 0
    items_removed: int = 0
    errors: list[dict[str, Any]] = []
    duration_seconds: float | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @field_validator("errors", mode="before")
    @classmethod
    def _null_errors(cls, value):
        return value or []


class JobRunSummary(BaseModel):
    """Minimal run info for list views."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    source_id: UUID
    status: JobStatus
    started_at: datetime | None = None
    finished_at: datetime | None = None
    items_found: int = 0
    items_new: int = 0


class JobRunWithSource(JobRunRead):
    """Run with embedded source info."""

    source: "SourceSummary | None" = None
