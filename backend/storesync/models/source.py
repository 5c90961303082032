"""Source model: per-tenant storefront config and crawl state."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import relationship

from storesync.models.base import Base, JSONType, TimestampMixin, UUIDMixin


class Source(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "sources"

    tenant_id = Column(Uuid(as_uuid=True), ForeignKey("tenants.id"), nullable=False, index=True)

    # Platform info
    name = Column(String(255), nullable=False)
    platform = Column(String(50), nullable=False, index=True)
    url = Column(String(1000), nullable=False)

    # Crawl config
    is_active = Column(Boolean, default=True, nullable=False)
    crawl_frequency_minutes = Column(Integer, default=60, nullable=False)
    selectors = Column(JSONType, nullable=True)
    config = Column(JSONType, nullable=True)

    # Crawl state
    last_crawled_at = Column(DateTime(timezone=True))
    last_item_count = Column(Integer, default=0, nullable=False)
    last_error = Column(Text)

    # Relationships
    tenant = relationship("Tenant", back_populates="sources")
    job_runs = relationship("JobRun", back_populates="source")

    __table_args__ = (
        Index("idx_source_active_platform", "is_active", "platform"),
        Index("idx_source_due", "is_active", "last_crawled_at", "crawl_frequency_minutes"),
    )
