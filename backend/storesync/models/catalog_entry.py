"""Catalog entry model: the operator's canonical product record."""

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, Uuid, func
from sqlalchemy.orm import relationship

from storesync.models.base import Base, JSONType, TimestampMixin, UUIDMixin


class CatalogEntry(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "catalog_entries"

    tenant_id = Column(Uuid(as_uuid=True), ForeignKey("tenants.id"), nullable=False, index=True)

    sku = Column(String(255), unique=True, nullable=False, index=True)
    title = Column(Text, nullable=False)
    description = Column(Text)
    price = Column(Numeric(12, 2))
    quantity = Column(Integer, default=1, nullable=False)
    condition = Column(String(255))
    category = Column(String(255))
    status = Column(String(20), default="draft", nullable=False, index=True)

    # Null source_url means manually curated; the sync pipeline never touches those
    source_url = Column(Text, index=True)
    external_id = Column(String(255))
    images = Column(JSONType, default=list)
    attributes = Column(JSONType, default=dict)

    # Relationships
    tenant = relationship("Tenant", back_populates="catalog_entries")
    price_history = relationship("PriceHistory", back_populates="entry")

    __table_args__ = (
        Index("idx_entry_tenant_source_url", "tenant_id", "source_url"),
    )


class PriceHistory(UUIDMixin, Base):
    __tablename__ = "price_history"

    entry_id = Column(Uuid(as_uuid=True), ForeignKey("catalog_entries.id"), nullable=False, index=True)
    price = Column(Numeric(12, 2), nullable=False)
    reason = Column(String(50), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    entry = relationship("CatalogEntry", back_populates="price_history")
