"""Catalog reconciliation."""

from storesync.sync.engine import (
    FieldChange,
    ItemComparison,
    SyncAction,
    SyncEngine,
    SyncError,
    SyncErrorType,
    SyncOptions,
    SyncPreview,
    SyncResult,
    detect_changes,
    generate_sku,
)

__all__ = [
    "FieldChange",
    "ItemComparison",
    "SyncAction",
    "SyncEngine",
    "SyncError",
    "SyncErrorType",
    "SyncOptions",
    "SyncPreview",
    "SyncResult",
    "detect_changes",
    "generate_sku",
]
