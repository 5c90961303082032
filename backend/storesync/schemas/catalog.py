"""Pydantic schemas for catalog entries as the sync engine sees them."""

from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from storesync.models.enums import CatalogStatus


class CatalogEntryRead(BaseModel):
    """Snapshot of a sync-eligible catalog entry."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tenant_id: UUID
    sku: str
    title: str
    price: Decimal | None = None
    quantity: int = 0
    status: CatalogStatus
    source_url: str | None = None
    external_id: str | None = None


class TenantRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    slug: str
    total_items: int = 0
