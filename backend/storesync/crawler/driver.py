"""Crawl driver: runs one crawl of one source and returns a ScrapeResult.

Pages are fetched strictly in pagination order through the injected
PageFetcher. Page-level failures end the crawl early but keep everything
collected so far; item-level failures only add to the error list.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from soupsieve import SelectorSyntaxError

from storesync.config import Settings
from storesync.exceptions import FetchError, FetchTimeoutError
from storesync.fetchers.base import FetchOptions, PageFetcher
from storesync.models.enums import JobStatus
from storesync.schemas.source import SourceConfig, SourceRead
from storesync.scrapers.base import BaseParser
from storesync.scrapers.registry import get_parser
from storesync.scrapers.types import CrawlErrorType, ScrapedItem, ScrapeError, ScrapeResult, utcnow

logger = logging.getLogger(__name__)

# Parser bugs on one page are recorded instead of failing the job
_PARSER_FAILURES = (AttributeError, KeyError, TypeError, ValueError, SelectorSyntaxError)


@dataclass
class CrawlOptions:
    max_pages: int | None = None
    dry_run: bool = False


@dataclass
class _CrawlState:
    items: list[ScrapedItem]
    errors: list[ScrapeError]
    pages_crawled: int = 0
    truncated: bool = False


class CrawlDriver:
    """Drives pagination, enrichment and filtering for one source.

    ``sleep`` is injectable so tests can record the courtesy delays
    instead of waiting them out.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        settings: Settings,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.fetcher = fetcher
        self.settings = settings
        self.sleep = sleep

    async def crawl(
        self,
        source: SourceRead,
        options: CrawlOptions | None = None,
        parser: BaseParser | None = None,
    ) -> ScrapeResult:
        options = options or CrawlOptions()
        parser = parser or get_parser(source.platform, source.selectors)
        config = source.config
        max_pages = options.max_pages or config.max_pages or self.settings.default_max_pages
        delay_ms = config.delay_ms if config.delay_ms is not None else self.settings.default_delay_ms
        tag = f"[{source.platform.value}/{source.name}]"

        started_at = utcnow()
        state = _CrawlState(items=[], errors=[])

        if config.requires_auth or config.wants_auth:
            await self._authenticate(config, state, tag)

        if parser.supports_feed:
            await self._crawl_feed(parser, source, max_pages, delay_ms, state, tag)
            if not state.items:
                logger.info(f"{tag} Product feed empty or unavailable, falling back to page scraping")
                state.pages_crawled, state.truncated = 0, False

        if not state.items:
            await self._crawl_pages(parser, source, max_pages, delay_ms, state, tag)

        state.items = _dedupe_by_url(state.items)

        if not options.dry_run and state.items:
            await self._enrich(parser, config, delay_ms, state, tag)

        state.items = self._apply_filters(state.items, config)

        status = JobStatus.COMPLETED
        if any(e.type != CrawlErrorType.PARSE for e in state.errors):
            status = JobStatus.FAILED

        result = ScrapeResult(
            source_id=source.id,
            status=status,
            items=state.items,
            errors=state.errors,
            started_at=started_at,
            completed_at=utcnow(),
            pages_crawled=state.pages_crawled,
            truncated=state.truncated,
        )
        logger.info(
            f"{tag} Crawl {status.value}: {result.items_found} items from "
            f"{result.pages_crawled} pages, {len(result.errors)} errors in {result.duration_seconds}s"
        )
        return result

    async def _authenticate(self, config: SourceConfig, state: _CrawlState, tag: str) -> None:
        auth = config.auth
        if auth is None or not auth.is_complete:
            state.errors.append(ScrapeError(CrawlErrorType.AUTH, "Authentication required but credentials are incomplete"))
            return

        try:
            ok = await self.fetcher.authenticate(auth, FetchOptions(timeout_seconds=self.settings.page_timeout_seconds))
        except Exception as e:
            ok = False
            logger.warning(f"{tag} Login request failed: {e}")
        if not ok:
            # Keep going; public pages may still be visible
            state.errors.append(ScrapeError(CrawlErrorType.AUTH, "Login failed", url=auth.auth_url))
            logger.warning(f"{tag} Login failed at {auth.auth_url}, continuing unauthenticated")

    async def _crawl_feed(
        self,
        parser: BaseParser,
        source: SourceRead,
        max_pages: int,
        delay_ms: int,
        state: _CrawlState,
        tag: str,
    ) -> None:
        """Walk the structured feed. Any failure here is silent; the caller falls back to markup."""
        options = FetchOptions(timeout_seconds=self.settings.page_timeout_seconds, wait_for_content=False)
        page = 1
        while True:
            if page > 1:
                await self._delay(delay_ms)
            url = parser.get_feed_url(source.url, page)
            try:
                fetched = await self.fetcher.fetch(url, options)
            except Exception as e:
                logger.debug(f"{tag} Feed fetch failed on page {page}: {e}")
                state.truncated = page > 1
                return
            if not fetched.ok:
                logger.debug(f"{tag} Feed returned HTTP {fetched.status} on page {page}")
                state.truncated = page > 1
                return

            try:
                parsed = parser.parse_feed(fetched.html, source.url)
            except _PARSER_FAILURES as e:
                logger.debug(f"{tag} Feed unreadable on page {page}: {e}")
                state.truncated = page > 1
                return
            if not parsed.items:
                return
            state.items.extend(parsed.items)
            state.errors.extend(ScrapeError(CrawlErrorType.PARSE, msg, url=url) for msg in parsed.errors)
            state.pages_crawled = page
            logger.debug(f"{tag} Feed page {page}: {len(parsed.items)} items")

            if not parsed.has_next_page:
                return
            if page >= max_pages:
                state.truncated = True
                return
            page += 1

    async def _crawl_pages(
        self,
        parser: BaseParser,
        source: SourceRead,
        max_pages: int,
        delay_ms: int,
        state: _CrawlState,
        tag: str,
    ) -> None:
        options = FetchOptions(timeout_seconds=self.settings.page_timeout_seconds)
        page = 1
        url = parser.get_list_url(source.url, page)
        while url:
            if page > 1:
                await self._delay(delay_ms)

            try:
                fetched = await self.fetcher.fetch(url, options)
            except FetchTimeoutError as e:
                state.errors.append(ScrapeError(CrawlErrorType.TIMEOUT, str(e), url=url))
                logger.warning(f"{tag} Timed out on page {page}: {url}")
                return
            except FetchError as e:
                state.errors.append(ScrapeError(CrawlErrorType.NETWORK, str(e), url=url))
                logger.warning(f"{tag} Network error on page {page}: {e}")
                return
            except Exception as e:
                # Fetcher broke its contract; keep what was collected
                state.errors.append(ScrapeError(CrawlErrorType.NETWORK, f"Unexpected fetch failure: {e}", url=url))
                logger.exception(f"{tag} Unexpected fetch failure on page {page}: {url}")
                return

            if not fetched.ok:
                state.errors.append(
                    ScrapeError(CrawlErrorType.NAVIGATION, f"Failed to load page: HTTP {fetched.status}", url=url)
                )
                logger.warning(f"{tag} HTTP {fetched.status} on page {page}: {url}")
                return

            try:
                parsed = parser.parse_list_page(fetched.html, fetched.url)
            except _PARSER_FAILURES as e:
                state.errors.append(ScrapeError(CrawlErrorType.PARSE, f"Failed to parse page: {e}", url=url))
                logger.warning(f"{tag} Parser failed on page {page}: {e}")
                return

            state.items.extend(parsed.items)
            state.errors.extend(ScrapeError(CrawlErrorType.PARSE, msg, url=url) for msg in parsed.errors)
            state.pages_crawled = page
            logger.debug(f"{tag} Page {page}: {len(parsed.items)} items, has_next={parsed.has_next_page}")

            if not parsed.has_next_page:
                return
            if page >= max_pages:
                state.truncated = True
                logger.info(f"{tag} Stopped at max pages ({max_pages}) with more pages remaining")
                return

            page += 1
            next_url = parsed.next_page_url
            url = next_url if next_url and next_url != url else parser.get_list_url(source.url, page)

    async def _enrich(
        self,
        parser: BaseParser,
        config: SourceConfig,
        delay_ms: int,
        state: _CrawlState,
        tag: str,
    ) -> None:
        """Fill missing description/images from detail pages, up to the enrichment cap."""
        wanted = [
            index for index, item in enumerate(state.items)
            if not item.description or not item.images
        ][: self.settings.max_enrich_items]
        if not wanted:
            return

        semaphore = asyncio.Semaphore(config.max_concurrent)
        options = FetchOptions(timeout_seconds=self.settings.detail_timeout_seconds)

        async def enrich_one(index: int) -> None:
            item = state.items[index]
            async with semaphore:
                await self._delay(delay_ms)
                try:
                    fetched = await self.fetcher.fetch(item.source_url, options)
                    if not fetched.ok:
                        raise FetchError(f"Detail page returned HTTP {fetched.status}", url=item.source_url)
                    detailed = parser.parse_detail_page(fetched.html, item.source_url)
                except Exception as e:
                    state.errors.append(
                        ScrapeError(CrawlErrorType.PARSE, f"Failed to enrich item: {e}", url=item.source_url)
                    )
                    logger.warning(f"{tag} Enrichment failed for {item.source_url}: {e}")
                    return
            if detailed is not None:
                state.items[index] = merge_missing(item, detailed)

        await asyncio.gather(*(enrich_one(index) for index in wanted))
        logger.debug(f"{tag} Enriched {len(wanted)} items from detail pages")

    async def _delay(self, delay_ms: int) -> None:
        if delay_ms > 0:
            await self.sleep(delay_ms / 1000)

    @staticmethod
    def _apply_filters(items: list[ScrapedItem], config: SourceConfig) -> list[ScrapedItem]:
        kept = []
        for item in items:
            if item.quantity == 0 and not config.include_out_of_stock:
                continue
            if item.price is not None:
                if config.min_price is not None and item.price < config.min_price:
                    continue
                if config.max_price is not None and item.price > config.max_price:
                    continue
            kept.append(item)
        return kept


def merge_missing(item: ScrapedItem, detailed: ScrapedItem) -> ScrapedItem:
    """Copy fields the listing lacked from the detail page; never overwrite populated ones."""
    update = {}
    if not item.description and detailed.description:
        update["description"] = detailed.description
    if not item.images and detailed.images:
        update["images"] = detailed.images
    for field in ("sku", "condition", "category", "external_id"):
        if not getattr(item, field) and getattr(detailed, field):
            update[field] = getattr(detailed, field)
    if item.price is None and detailed.price is not None:
        update["price"] = detailed.price
    if detailed.attributes:
        update["attributes"] = {**detailed.attributes, **item.attributes}
    return item.model_copy(update=update) if update else item


def _dedupe_by_url(items: list[ScrapedItem]) -> list[ScrapedItem]:
    seen = set()
    unique = []
    for item in items:
        if item.source_url not in seen:
            seen.add(item.source_url)
            unique.append(item)
    return unique
