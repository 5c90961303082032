"""Generic storefront parser for sites without a dedicated platform parser.

Driven by the per-source selector map. When the configured (or default)
product list selector finds nothing, repeating "product card" containers
are detected automatically.
"""

import logging
import re
from urllib.parse import urlsplit, urlunsplit

from bs4 import BeautifulSoup, Tag

from storesync.models.enums import PlatformKind
from storesync.schemas.source import SourceSelectors
from storesync.scrapers.base import BaseParser
from storesync.scrapers.normalize import (
    clean_text,
    has_query_param,
    parse_price,
    parse_quantity,
    resolve_url,
    with_query_param,
)
from storesync.scrapers.registry import register_parser
from storesync.scrapers.types import PageResult, ScrapedItem

logger = logging.getLogger(__name__)

DEFAULT_SELECTORS = SourceSelectors(
    product_list=".products, .product-list, .items, [data-products]",
    product_link='a[href*="/product"], a[href*="/item"], .product a, .item a',
    title="h1, .product-title, .item-title, [data-title]",
    price=".price, .product-price, [data-price], .amount",
    description=".description, .product-description, [data-description]",
    images=".product-images img, .gallery img, [data-image]",
    next_page='a[rel="next"], .pagination .next a',
)

# Tried in order; the first with at least two matches is taken as the card pattern
CARD_CANDIDATES = [
    # e-commerce
    ".product",
    ".product-item",
    ".product-card",
    "[data-product]",
    "[data-product-id]",
    ".item",
    # grids
    ".grid-item",
    ".col-product",
    # lists
    ".listing-item",
    ".search-result",
    # WooCommerce
    ".woocommerce-loop-product__link",
    "li.product",
    # auctions
    ".lot",
    ".auction-item",
    ".lot-item",
]
MIN_CARDS = 2

NEXT_PAGE_PATTERNS = [
    'a[rel="next"]',
    ".pagination .next:not(.disabled)",
    ".next-page:not(.disabled)",
    'a:-soup-contains("Next")',
    'a:-soup-contains("›")',
    '[aria-label="Next page"]',
]

CARD_TITLE = 'h1, h2, h3, h4, a[href*="/product"], a[href*="/item"]'
CARD_PRICE = '[class*="price"], .amount, .cost'
ITEM_TITLE_FALLBACK = "h1, h2, h3, h4, .title, .name"

_PAGE_PATH = re.compile(r"/page/\d+")


@register_parser(PlatformKind.WEBSITE, PlatformKind.WOOCOMMERCE, PlatformKind.SQUARESPACE)
class GenericParser(BaseParser):

    def __init__(self, selectors: SourceSelectors | None = None):
        super().__init__(selectors)
        overrides = selectors.model_dump(exclude_none=True) if selectors else {}
        self.selectors = DEFAULT_SELECTORS.model_copy(update=overrides)

    def can_handle(self, url: str) -> bool:
        return True

    def get_list_url(self, base_url: str, page: int = 1) -> str:
        if page <= 1:
            return base_url
        if has_query_param(base_url, "page"):
            return with_query_param(base_url, "page", page)
        if has_query_param(base_url, "p"):
            return with_query_param(base_url, "p", page)
        parts = urlsplit(base_url)
        if _PAGE_PATH.search(parts.path):
            return urlunsplit(parts._replace(path=_PAGE_PATH.sub(f"/page/{page}", parts.path)))
        return with_query_param(base_url, "page", page)

    def parse_list_page(self, html: str, base_url: str) -> PageResult:
        soup = self.soup(html)
        containers = soup.select(self.selectors.product_list) if self.selectors.product_list else []

        if containers:
            elements = [el for container in containers for el in container.select(self.selectors.product_link)]
            parse_one = self._parse_list_item
        else:
            elements = self._auto_detect(soup)
            if not elements:
                return PageResult(errors=[f"No products found with selector: {self.selectors.product_list}"])
            logger.debug(f"Auto-detected {len(elements)} product cards on {base_url}")
            parse_one = self._parse_card

        items: list[ScrapedItem] = []
        errors: list[str] = []
        seen: set[str] = set()
        for element in elements:
            try:
                item = parse_one(element, base_url)
            except (AttributeError, TypeError, ValueError) as e:
                errors.append(f"Failed to parse product: {e}")
                continue
            if item and item.source_url not in seen:
                seen.add(item.source_url)
                items.append(item)

        has_next, next_url = self.find_next_page(soup, self._next_page_strategies(), base_url)
        return PageResult(items=items, has_next_page=has_next, next_page_url=next_url, errors=errors)

    def parse_detail_page(self, html: str, url: str) -> ScrapedItem | None:
        soup = self.soup(html)
        sel = self.selectors

        title = self.first_text(soup, [sel.title]) if sel.title else ""
        if not title:
            return None

        images = []
        if sel.images:
            images = [resolve_url(src, url) for src in (self.image_src(img) for img in soup.select(sel.images)) if src]

        return self.make_item(
            source_url=url,
            title=title,
            price=parse_price(self.first_text(soup, [sel.price])) if sel.price else None,
            description=self._text(soup, sel.description),
            images=images,
            sku=self._text(soup, sel.sku),
            condition=self._text(soup, sel.condition),
            quantity=parse_quantity(self._text(soup, sel.quantity)),
            category=self._text(soup, sel.category),
        )

    def _auto_detect(self, soup: BeautifulSoup) -> list[Tag]:
        for selector in CARD_CANDIDATES:
            found = soup.select(selector)
            if len(found) >= MIN_CARDS:
                return found
        return []

    def _parse_card(self, card: Tag, base_url: str) -> ScrapedItem | None:
        title_el = card.select_one(CARD_TITLE)
        if title_el is None:
            return None

        if title_el.name == "a":
            link = title_el
        elif card.name == "a":
            link = card
        else:
            link = card.find("a", href=True)
        href = link.get("href") if link else None
        if not href:
            return None

        return self.make_item(
            source_url=resolve_url(href, base_url),
            title=title_el.get_text(" "),
            price=parse_price(self._text(card, CARD_PRICE)),
            images=self._first_image(card, base_url),
        )

    def _parse_list_item(self, element: Tag, base_url: str) -> ScrapedItem | None:
        link = element if element.name == "a" else element.find("a", href=True)
        href = link.get("href") if link else None
        if not href:
            return None

        title = clean_text(link.get("title") or link.get_text(" "))
        if len(title) < 3:
            title = self._text(element, ITEM_TITLE_FALLBACK) or ""

        return self.make_item(
            source_url=resolve_url(href, base_url),
            title=title,
            price=parse_price(self._text(element, CARD_PRICE)),
            images=self._first_image(element, base_url),
        )

    def _first_image(self, root: Tag, base_url: str) -> list[str]:
        img = root.find("img")
        src = self.image_src(img) if img else ""
        return [resolve_url(src, base_url)] if src else []

    def _text(self, root: Tag, selector: str | None) -> str | None:
        if not selector:
            return None
        return self.first_text(root, [selector]) or None

    def _next_page_strategies(self) -> list[str]:
        if self.selectors.next_page:
            return [self.selectors.next_page, *NEXT_PAGE_PATTERNS]
        return NEXT_PAGE_PATTERNS
