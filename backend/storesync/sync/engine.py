"""Reconcile a crawl's items against a tenant's catalog.

Items join to catalog entries by source URL, then by SKU. Only price and
title are compared. Entries the crawl no longer lists are marked sold.
Re-running a sync against an unchanged crawl writes nothing.
"""

import hashlib
import logging
import time
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from storesync.models.enums import LIVE_STATUSES
from storesync.schemas.catalog import CatalogEntryRead, TenantRead
from storesync.scrapers.normalize import to_decimal
from storesync.scrapers.types import ScrapedItem
from storesync.store.base import CatalogStore

logger = logging.getLogger(__name__)

PRICE_UPDATE_REASON = "scrape_update"


class SyncErrorType(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    REMOVE = "remove"
    LOOKUP = "lookup"


class SyncAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    NONE = "none"


@dataclass(frozen=True)
class SyncError:
    type: SyncErrorType
    message: str
    item_url: str | None = None
    entry_id: UUID | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": self.type.value, "message": self.message}
        if self.item_url:
            payload["url"] = self.item_url
        if self.entry_id:
            payload["entry_id"] = str(self.entry_id)
        return payload


@dataclass(frozen=True)
class FieldChange:
    field: str
    old_value: Any
    new_value: Any


@dataclass
class ItemComparison:
    item: ScrapedItem
    existing: CatalogEntryRead | None
    action: SyncAction
    changes: list[FieldChange] = field(default_factory=list)


@dataclass
class SyncOptions:
    dry_run: bool = False
    mark_missing_sold: bool = True
    update_prices: bool = True
    create_new: bool = True


@dataclass
class SyncResult:
    items_found: int = 0
    items_new: int = 0
    items_updated: int = 0
    items_removed: int = 0
    errors: list[SyncError] = field(default_factory=list)
    duration_seconds: float = 0.0
    dry_run: bool = False

    @property
    def mutations(self) -> int:
        return self.items_new + self.items_updated + self.items_removed


@dataclass
class SyncPreview:
    to_create: int
    to_update: int
    to_mark_sold: int
    comparisons: list[ItemComparison]


def price_changed(old: Decimal | float | None, new: float | None) -> bool:
    """Numeric comparison at stored precision; null vs non-null is a change."""
    if old is None or new is None:
        return (old is None) != (new is None)
    return to_decimal(old) != to_decimal(new)


def title_changed(old: str, new: str) -> bool:
    """Cosmetic rewording (one title containing the other) is not a change."""
    old_norm = old.strip().lower()
    new_norm = new.strip().lower()
    return old_norm not in new_norm and new_norm not in old_norm


def detect_changes(item: ScrapedItem, entry: CatalogEntryRead) -> list[FieldChange]:
    changes = []
    if price_changed(entry.price, item.price):
        changes.append(FieldChange("price", entry.price, to_decimal(item.price)))
    if title_changed(entry.title, item.title):
        changes.append(FieldChange("title", entry.title, item.title))
    return changes


def sku_prefix(tenant: TenantRead | None, tenant_id: UUID) -> str:
    return (tenant.slug if tenant else str(tenant_id))[:4].upper()


def generate_sku(prefix: str, item: ScrapedItem) -> str:
    """Deterministic SKU: the platform id when there is one, else title and URL hashes."""
    if item.external_id:
        return f"{prefix}-{item.external_id}"
    title_hash = hashlib.sha256(item.title.encode()).hexdigest()[:8].upper()
    url_hash = hashlib.sha256(item.source_url.encode()).hexdigest()[:6].upper()
    return f"{prefix}-{title_hash}-{url_hash}"


class SyncEngine:
    """Diffs crawl output against the catalog and applies the minimal mutations."""

    def __init__(self, store: CatalogStore):
        self.store = store

    async def compare_items(self, items: list[ScrapedItem], tenant_id: UUID) -> list[ItemComparison]:
        entries = await self.store.get_eligible_catalog_entries(tenant_id)
        tenant = await self.store.get_tenant(tenant_id)
        comparisons, _ = self._compare(items, entries, sku_prefix(tenant, tenant_id))
        return comparisons

    async def preview(self, items: list[ScrapedItem], tenant_id: UUID) -> SyncPreview:
        entries = await self.store.get_eligible_catalog_entries(tenant_id)
        tenant = await self.store.get_tenant(tenant_id)
        comparisons, matched = self._compare(items, entries, sku_prefix(tenant, tenant_id))
        missing = self._find_missing(items, entries, matched)
        return SyncPreview(
            to_create=sum(1 for c in comparisons if c.action == SyncAction.CREATE),
            to_update=sum(1 for c in comparisons if c.action == SyncAction.UPDATE),
            to_mark_sold=len(missing),
            comparisons=comparisons,
        )

    async def sync(
        self,
        items: list[ScrapedItem],
        tenant_id: UUID,
        options: SyncOptions | None = None,
    ) -> SyncResult:
        options = options or SyncOptions()
        started = time.monotonic()
        result = SyncResult(items_found=len(items), dry_run=options.dry_run)

        try:
            entries = await self.store.get_eligible_catalog_entries(tenant_id)
            tenant = await self.store.get_tenant(tenant_id)
        except Exception as e:
            logger.error(f"Failed to load catalog for tenant {tenant_id}: {e}")
            result.errors.append(SyncError(SyncErrorType.LOOKUP, f"Failed to load catalog: {e}"))
            result.duration_seconds = round(time.monotonic() - started, 3)
            return result

        prefix = sku_prefix(tenant, tenant_id)
        comparisons, matched = self._compare(items, entries, prefix)
        creates = [c for c in comparisons if c.action == SyncAction.CREATE] if options.create_new else []
        updates = [c for c in comparisons if c.action == SyncAction.UPDATE] if options.update_prices else []
        missing = self._find_missing(items, entries, matched) if options.mark_missing_sold else []

        if options.dry_run:
            result.items_new = len(creates)
            result.items_updated = len(updates)
            result.items_removed = len(missing)
        else:
            result.items_new = await self._apply_creates(creates, tenant_id, prefix, result.errors)
            result.items_updated = await self._apply_updates(updates, result.errors)
            result.items_removed = await self._apply_removals(missing, result.errors)

        result.duration_seconds = round(time.monotonic() - started, 3)
        logger.info(
            f"Sync for tenant {tenant_id}{' (dry run)' if options.dry_run else ''}: "
            f"{result.items_new} new, {result.items_updated} updated, {result.items_removed} sold, "
            f"{len(result.errors)} errors"
        )
        return result

    @staticmethod
    def _compare(
        items: list[ScrapedItem],
        entries: list[CatalogEntryRead],
        prefix: str,
    ) -> tuple[list[ItemComparison], set[UUID]]:
        by_url: dict[str, CatalogEntryRead] = {}
        by_sku: dict[str, CatalogEntryRead] = {}
        for entry in entries:
            by_url.setdefault(entry.source_url, entry)
            by_sku.setdefault(entry.sku, entry)

        comparisons = []
        matched: set[UUID] = set()
        for item in items:
            existing = by_url.get(item.source_url)
            if existing is None:
                for key in (item.sku, generate_sku(prefix, item) if item.external_id else None):
                    if key and key in by_sku:
                        existing = by_sku[key]
                        break

            if existing is None:
                comparisons.append(ItemComparison(item=item, existing=None, action=SyncAction.CREATE))
                continue

            matched.add(existing.id)
            changes = detect_changes(item, existing)
            action = SyncAction.UPDATE if changes else SyncAction.NONE
            comparisons.append(ItemComparison(item=item, existing=existing, action=action, changes=changes))
        return comparisons, matched

    @staticmethod
    def _find_missing(
        items: list[ScrapedItem],
        entries: list[CatalogEntryRead],
        matched: set[UUID],
    ) -> list[CatalogEntryRead]:
        """Live entries whose URL the crawl never produced and that no item joined to."""
        seen_urls = {item.source_url for item in items}
        return [
            e for e in entries
            if e.status in LIVE_STATUSES and e.source_url not in seen_urls and e.id not in matched
        ]

    async def _apply_creates(
        self,
        creates: list[ItemComparison],
        tenant_id: UUID,
        prefix: str,
        errors: list[SyncError],
    ) -> int:
        if not creates:
            return 0
        created = 0
        try:
            async with self.store.transaction() as tx:
                taken_skus = await tx.find_existing_skus([generate_sku(prefix, c.item) for c in creates])
                for comparison in creates:
                    item = comparison.item
                    sku = generate_sku(prefix, item)
                    if sku in taken_skus:
                        sku = f"{sku}-{hashlib.sha256(item.source_url.encode()).hexdigest()[:6].upper()}"
                    try:
                        async with tx.savepoint():
                            await tx.create_catalog_entry(item, tenant_id, sku)
                    except Exception as e:
                        logger.warning(f"Failed to create entry for {item.source_url}: {e}")
                        errors.append(SyncError(SyncErrorType.CREATE, str(e), item_url=item.source_url))
                        continue
                    taken_skus.add(sku)
                    created += 1
        except Exception as e:
            logger.error(f"Create phase for tenant {tenant_id} rolled back: {e}")
            errors.append(SyncError(SyncErrorType.CREATE, f"Create phase failed: {e}"))
            return 0
        return created

    async def _apply_updates(self, updates: list[ItemComparison], errors: list[SyncError]) -> int:
        if not updates:
            return 0
        updated = 0
        try:
            async with self.store.transaction() as tx:
                for comparison in updates:
                    entry = comparison.existing
                    fields = {change.field: change.new_value for change in comparison.changes}
                    try:
                        async with tx.savepoint():
                            await tx.update_catalog_entry(entry.id, fields)
                            if fields.get("price") is not None:
                                await tx.record_price_history(entry.id, fields["price"], PRICE_UPDATE_REASON)
                    except Exception as e:
                        logger.warning(f"Failed to update entry {entry.id} ({comparison.item.source_url}): {e}")
                        errors.append(SyncError(
                            SyncErrorType.UPDATE, str(e), item_url=comparison.item.source_url, entry_id=entry.id,
                        ))
                        continue
                    updated += 1
        except Exception as e:
            logger.error(f"Update phase rolled back: {e}")
            errors.append(SyncError(SyncErrorType.UPDATE, f"Update phase failed: {e}"))
            return 0
        return updated

    async def _apply_removals(self, missing: list[CatalogEntryRead], errors: list[SyncError]) -> int:
        if not missing:
            return 0
        try:
            async with self.store.transaction() as tx:
                removed = await tx.mark_entries_sold([e.id for e in missing])
        except Exception as e:
            logger.error(f"Failed to mark {len(missing)} missing entries as sold: {e}")
            errors.append(SyncError(SyncErrorType.REMOVE, f"Failed to mark {len(missing)} entries as sold: {e}"))
            return 0
        logger.info(f"Marked {removed} missing entries as sold")
        return removed
