"""Page fetchers: HTTP by default, stealth browser when a source asks for one."""

from storesync.config import Settings
from storesync.fetchers.base import FetchOptions, FetchResult, PageFetcher
from storesync.fetchers.browser import BrowserPageFetcher
from storesync.fetchers.http import HttpPageFetcher
from storesync.schemas.source import SourceConfig


def build_fetcher(config: SourceConfig, settings: Settings) -> PageFetcher:
    """Build a fresh fetcher for one job."""
    user_agent = config.user_agent or settings.user_agent
    if config.use_browser:
        headless = settings.browser_headless if config.headless is None else config.headless
        return BrowserPageFetcher(user_agent=user_agent, headless=headless)
    return HttpPageFetcher(user_agent=user_agent, timeout_seconds=settings.page_timeout_seconds)


__all__ = [
    "BrowserPageFetcher",
    "FetchOptions",
    "FetchResult",
    "HttpPageFetcher",
    "PageFetcher",
    "build_fetcher",
]
