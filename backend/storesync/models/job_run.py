"""Job run model: audit log per crawl execution."""

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, Uuid, func
from sqlalchemy.orm import relationship

from storesync.models.base import Base, JSONType, UUIDMixin


class JobRun(UUIDMixin, Base):
    __tablename__ = "job_runs"

    source_id = Column(Uuid(as_uuid=True), ForeignKey("sources.id"), nullable=False, index=True)

    status = Column(String(20), nullable=False, default="pending")  # pending, running, completed, failed
    items_found = Column(Integer, default=0, nullable=False)
    items_new = Column(Integer, default=0, nullable=False)
    items_updated = Column(Integer, default=0, nullable=False)
    items_removed = Column(Integer, default=0, nullable=False)
    errors = Column(JSONType, default=list)
    duration_seconds = Column(Float)

    started_at = Column(DateTime(timezone=True))
    finished_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    # Relationships
    source = relationship("Source", back_populates="job_runs")
