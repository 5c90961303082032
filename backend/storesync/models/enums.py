"""Persisted enumerations shared by models, schemas and services."""

from enum import Enum


class PlatformKind(str, Enum):
    WEBSITE = "website"
    WOOCOMMERCE = "woocommerce"
    SQUARESPACE = "squarespace"
    EBAY_STORE = "ebay_store"
    ETSY_SHOP = "etsy_shop"
    SHOPIFY = "shopify"


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class CatalogStatus(str, Enum):
    DRAFT = "draft"
    PENDING_REVIEW = "pending_review"
    ACTIVE = "active"
    SOLD = "sold"
    RESERVED = "reserved"
    ARCHIVED = "archived"


# Entries in these states disappear from the storefront when the source delists them
LIVE_STATUSES = (CatalogStatus.DRAFT, CatalogStatus.PENDING_REVIEW, CatalogStatus.ACTIVE)
