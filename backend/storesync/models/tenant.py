"""Tenant model: an operator whose catalog mirrors external storefronts."""

from sqlalchemy import Column, Integer, String
from sqlalchemy.orm import relationship

from storesync.models.base import Base, TimestampMixin, UUIDMixin


class Tenant(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "tenants"

    name = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, nullable=False, index=True)

    # Catalog stats
    total_items = Column(Integer, default=0, nullable=False)

    # Relationships
    sources = relationship("Source", back_populates="tenant")
    catalog_entries = relationship("CatalogEntry", back_populates="tenant")
