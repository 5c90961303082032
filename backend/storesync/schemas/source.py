"""Pydantic schemas for Source model and its per-source crawl options."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING
from uuid import UUID

import soupsieve
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from storesync.models.enums import PlatformKind

if TYPE_CHECKING:
    from storesync.schemas.job_run import JobRunRead, JobRunSummary


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything we persist is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_due(last_crawled_at: datetime | None, frequency_minutes: int, now: datetime) -> bool:
    """A never-crawled source is always due; otherwise due once the frequency has elapsed."""
    if last_crawled_at is None:
        return True
    return as_utc(now) - as_utc(last_crawled_at) >= timedelta(minutes=frequency_minutes)


class _CamelModel(BaseModel):
    """Accepts both camelCase (tenant-facing JSON) and snake_case keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class SourceSelectors(_CamelModel):
    """CSS selectors for the generic parser. Unset fields fall back to defaults."""

    product_list: str | None = None
    product_link: str | None = None
    title: str | None = None
    price: str | None = None
    description: str | None = None
    images: str | None = None
    sku: str | None = None
    condition: str | None = None
    quantity: str | None = None
    category: str | None = None
    next_page: str | None = None

    @field_validator("*")
    @classmethod
    def _compiles(cls, value: str | None) -> str | None:
        if value is None:
            return value
        try:
            soupsieve.compile(value)
        except soupsieve.SelectorSyntaxError as e:
            raise ValueError(f"Invalid CSS selector {value!r}: {str(e).splitlines()[0]}") from e
        return value


class AuthConfig(_CamelModel):
    auth_url: str | None = None
    username: str | None = None
    password: str | None = None

    @property
    def is_complete(self) -> bool:
        return bool(self.auth_url and self.username and self.password)


class SourceConfig(_CamelModel):
    """Recognized per-source crawl options stored in Source.config."""

    requires_auth: bool = False
    auth: AuthConfig | None = None

    max_pages: int | None = Field(default=None, ge=1)
    delay_ms: int | None = Field(default=None, ge=0)
    max_concurrent: int = Field(default=1, ge=1)

    include_out_of_stock: bool = False
    min_price: float | None = None
    max_price: float | None = None

    use_browser: bool = False
    headless: bool | None = None
    user_agent: str | None = None

    @property
    def wants_auth(self) -> bool:
        return self.auth is not None and (self.requires_auth or self.auth.is_complete)


class SourceBase(BaseModel):
    """Base fields for a source."""

    name: str
    platform: PlatformKind
    url: str
    is_active: bool = True
    crawl_frequency_minutes: int = Field(default=60, ge=1)
    selectors: SourceSelectors | None = None
    config: SourceConfig = Field(default_factory=SourceConfig)

    @field_validator("config", mode="before")
    @classmethod
    def _empty_config(cls, value):
        return value or {}


class SourceCreate(SourceBase):
    """Fields for registering a source."""

    tenant_id: UUID


class SourceRead(SourceBase):
    """Full source output."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tenant_id: UUID
    last_crawled_at: datetime | None = None
    last_item_count: int = 0
    last_error: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def is_due(self, now: datetime) -> bool:
        return is_due(self.last_crawled_at, self.crawl_frequency_minutes, now)


class SourceSummary(BaseModel):
    """Minimal source info for nested responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    platform: str
    url: str
    is_active: bool
    last_item_count: int = 0


class SourceWithRuns(SourceRead):
    """Source with recent job runs."""

    recent_runs: list["JobRunSummary"] = []


class ManualCrawlRequest(BaseModel):
    full_rescrape: bool = False
    dry_run: bool = False


class ManualCrawlResponse(BaseModel):
    """Response from triggering a manual crawl."""

    message: str
    source_id: UUID
    queued: bool


class TenantCrawlResponse(BaseModel):
    tenant_id: UUID
    queued: int
    source_ids: list[UUID] = []


class JobStatusResponse(BaseModel):
    source_id: UUID
    is_running: bool
    last_result: "JobRunRead | None" = None
