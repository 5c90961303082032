"""Base parser abstract class."""

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Iterable, Sequence

from bs4 import BeautifulSoup, Tag
from pydantic import ValidationError

from storesync.models.enums import PlatformKind
from storesync.schemas.source import SourceSelectors
from storesync.scrapers.normalize import (
    clean_text,
    dedupe,
    is_placeholder_title,
    parse_price,
    resolve_url,
)
from storesync.scrapers.types import PageResult, ScrapedItem

logger = logging.getLogger(__name__)


class BaseParser(ABC):
    """Abstract base class for all platform parsers.

    Subclasses must implement:
        can_handle(url) -> bool
        get_list_url(base_url, page) -> str
        parse_list_page(html, base_url) -> PageResult
        parse_detail_page(html, url) -> ScrapedItem | None

    Parsers for platforms with a structured product feed also set
    ``supports_feed`` and implement get_feed_url() / parse_feed().
    Parsers are pure: no network access, no state carried between pages.
    """

    platform: PlatformKind
    supports_feed: bool = False

    def __init__(self, selectors: SourceSelectors | None = None):
        self.selectors = selectors

    @abstractmethod
    def can_handle(self, url: str) -> bool:
        ...

    @abstractmethod
    def get_list_url(self, base_url: str, page: int = 1) -> str:
        ...

    @abstractmethod
    def parse_list_page(self, html: str, base_url: str) -> PageResult:
        ...

    @abstractmethod
    def parse_detail_page(self, html: str, url: str) -> ScrapedItem | None:
        """Parse a detail page. None means "skip", not failure."""
        ...

    def get_feed_url(self, base_url: str, page: int = 1) -> str:
        raise NotImplementedError(f"{type(self).__name__} has no product feed")

    def parse_feed(self, payload: Any, base_url: str) -> PageResult:
        raise NotImplementedError(f"{type(self).__name__} has no product feed")

    # -- helpers shared by the markup parsers --

    @staticmethod
    def soup(html: str) -> BeautifulSoup:
        return BeautifulSoup(html or "", "lxml")

    @staticmethod
    def first_match(root: Tag, strategies: Sequence[str]) -> list[Tag]:
        """Try selector strategies in order; return the first non-empty match set."""
        for selector in strategies:
            found = root.select(selector)
            if found:
                return found
        return []

    @staticmethod
    def first_text(root: Tag, strategies: Sequence[str]) -> str:
        """Text of the first element, across strategies, whose text is non-empty."""
        for selector in strategies:
            for el in root.select(selector):
                text = clean_text(el.get_text(" "))
                if text:
                    return text
        return ""

    @staticmethod
    def first_attr(root: Tag, strategies: Sequence[str], attrs: Iterable[str]) -> str:
        attrs = tuple(attrs)
        for selector in strategies:
            for el in root.select(selector):
                for attr in attrs:
                    value = el.get(attr)
                    if value:
                        return value.strip()
        return ""

    @staticmethod
    def image_src(img: Tag) -> str:
        """Prefer lazy-load attributes over placeholder src values."""
        for attr in ("data-src", "data-srcset", "src", "href"):
            value = img.get(attr)
            if value and not value.startswith("data:"):
                # srcset: take the first candidate URL
                return value.split(",")[0].split(" ")[0].strip()
        return ""

    @staticmethod
    def make_item(**fields: Any) -> ScrapedItem | None:
        """Build an item, dropping placeholder titles and invalid rows."""
        title = clean_text(fields.get("title"))
        if is_placeholder_title(title):
            return None
        fields["title"] = title
        fields["images"] = tuple(dedupe(fields.get("images") or ()))
        fields["attributes"] = {k: v for k, v in (fields.get("attributes") or {}).items() if v}
        try:
            return ScrapedItem(**{k: v for k, v in fields.items() if v is not None})
        except ValidationError as e:
            logger.debug(f"Dropping invalid item {fields.get('source_url')}: {e}")
            return None

    @staticmethod
    def find_next_page(soup: BeautifulSoup, strategies: Sequence[str], current_url: str) -> tuple[bool, str | None]:
        """Locate an enabled "next page" control and its absolute URL."""
        for selector in strategies:
            for el in soup.select(selector):
                classes = el.get("class") or []
                if "disabled" in classes or el.get("aria-disabled") == "true":
                    continue
                href = el.get("href")
                if not href and el.name != "a":
                    link = el.find("a", href=True)
                    href = link.get("href") if link else None
                return True, resolve_url(href, current_url) if href else None
        return False, None

    def parse_json_ld_product(self, soup: BeautifulSoup, url: str) -> ScrapedItem | None:
        """Build an item from a schema.org Product JSON-LD block, if the page has one."""
        product = _find_json_ld_product(soup)
        if not product:
            return None

        offers = product.get("offers") or {}
        if isinstance(offers, list):
            offers = offers[0] if offers else {}
        price = offers.get("price", offers.get("lowPrice"))
        availability = str(offers.get("availability") or "")

        images = product.get("image") or []
        if isinstance(images, (str, dict)):
            images = [images]
        image_urls = [img.get("url") if isinstance(img, dict) else img for img in images]

        brand = product.get("brand")
        if isinstance(brand, dict):
            brand = brand.get("name")

        return self.make_item(
            source_url=url,
            external_id=str(product["sku"]) if product.get("sku") else None,
            title=product.get("name"),
            price=parse_price(str(price)) if price is not None else None,
            description=clean_text(product.get("description")) or None,
            images=[resolve_url(u, url) for u in image_urls if u],
            sku=str(product["sku"]) if product.get("sku") else None,
            quantity=0 if availability and "InStock" not in availability else 1,
            category=product.get("category") if isinstance(product.get("category"), str) else None,
            attributes={"brand": brand} if isinstance(brand, str) else None,
        )


def _find_json_ld_product(soup: BeautifulSoup) -> dict | None:
    for script in soup.find_all("script", type="application/ld+json"):
        try:
            data = json.loads(script.string or script.get_text() or "")
        except ValueError:
            continue
        candidates = data if isinstance(data, list) else [data]
        for candidate in list(candidates):
            if isinstance(candidate, dict) and isinstance(candidate.get("@graph"), list):
                candidates.extend(candidate["@graph"])
        for candidate in candidates:
            if not isinstance(candidate, dict):
                continue
            kind = candidate.get("@type")
            if kind == "Product" or (isinstance(kind, list) and "Product" in kind):
                return candidate
    return None


def extract_json_text(body: str) -> str:
    """Browsers wrap raw JSON responses in <pre>; unwrap before json.loads()."""
    match = re.search(r"<pre[^>]*>([\s\S]*?)</pre>", body)
    if match:
        return BeautifulSoup(match.group(1), "lxml").get_text()
    return body
