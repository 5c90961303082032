"""ORM models: import all so relationship() strings resolve."""

from storesync.models.base import Base
from storesync.models.catalog_entry import CatalogEntry, PriceHistory
from storesync.models.job_run import JobRun
from storesync.models.source import Source
from storesync.models.tenant import Tenant

__all__ = ["Base", "CatalogEntry", "JobRun", "PriceHistory", "Source", "Tenant"]
