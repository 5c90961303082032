"""Value types passed between parsers, the crawl driver and the sync engine."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from storesync.models.enums import JobStatus


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CrawlErrorType(str, Enum):
    NAVIGATION = "navigation"
    TIMEOUT = "timeout"
    AUTH = "auth"
    PARSE = "parse"
    NETWORK = "network"
    UNKNOWN = "unknown"


class ScrapedItem(BaseModel):
    """One normalized listing. Immutable; enrichment builds a new copy."""

    model_config = ConfigDict(frozen=True)

    source_url: str
    external_id: str | None = None
    title: str
    price: float | None = None
    description: str | None = None
    images: tuple[str, ...] = ()
    sku: str | None = None
    condition: str | None = None
    quantity: int = Field(default=1, ge=0)
    category: str | None = None
    attributes: dict[str, str] = Field(default_factory=dict)
    scraped_at: datetime = Field(default_factory=utcnow)


@dataclass
class PageResult:
    """Outcome of parsing one list page or feed page."""

    items: list[ScrapedItem] = field(default_factory=list)
    has_next_page: bool = False
    next_page_url: str | None = None
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ScrapeError:
    type: CrawlErrorType
    message: str
    url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": self.type.value, "message": self.message}
        if self.url:
            payload["url"] = self.url
        return payload


@dataclass
class ScrapeResult:
    """Everything one crawl of one source produced."""

    source_id: UUID
    status: JobStatus
    items: list[ScrapedItem]
    errors: list[ScrapeError]
    started_at: datetime
    completed_at: datetime
    pages_crawled: int = 0
    truncated: bool = False

    @property
    def items_found(self) -> int:
        return len(self.items)

    @property
    def duration_seconds(self) -> float:
        return round((self.completed_at - self.started_at).total_seconds(), 3)

    @property
    def is_partial(self) -> bool:
        """True when the crawl may not have seen the whole storefront."""
        return self.status == JobStatus.FAILED or self.truncated
