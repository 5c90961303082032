"""Crawl driver package."""

from storesync.crawler.driver import CrawlDriver, CrawlOptions, merge_missing

__all__ = ["CrawlDriver", "CrawlOptions", "merge_missing"]
