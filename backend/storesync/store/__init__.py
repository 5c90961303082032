"""Catalog store: the only shared mutable state between crawl jobs."""

from storesync.store.base import CatalogStore
from storesync.store.sql import SqlAlchemyCatalogStore

__all__ = ["CatalogStore", "SqlAlchemyCatalogStore"]
