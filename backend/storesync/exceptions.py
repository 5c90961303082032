"""Exceptions raised across the crawl and sync pipeline."""

from uuid import UUID


class StoreSyncError(Exception):
    """Base class for pipeline errors."""


class SourceNotFoundError(StoreSyncError):
    def __init__(self, source_id: UUID | str):
        super().__init__(f"Source not found: {source_id}")
        self.source_id = source_id


class SourceInactiveError(StoreSyncError):
    def __init__(self, source_id: UUID | str):
        super().__init__(f"Source {source_id} is inactive; use full_rescrape to override")
        self.source_id = source_id


class FetchError(StoreSyncError):
    """A page could not be fetched at all (no HTTP status to report)."""

    def __init__(self, message: str, url: str | None = None):
        super().__init__(message)
        self.url = url


class FetchTimeoutError(FetchError):
    pass


class FetchNetworkError(FetchError):
    pass
