"""Shopify storefront parser.

Shopify stores expose their whole catalog at /products.json (250 per page),
which is preferred over the theme markup. The markup path covers stores
that disable the feed.
"""

import json
import logging
import re
from typing import Any
from urllib.parse import urlsplit, urlunsplit

from storesync.models.enums import PlatformKind
from storesync.scrapers.base import BaseParser, extract_json_text
from storesync.scrapers.normalize import parse_price, resolve_url, strip_html, with_query_param
from storesync.scrapers.registry import register_parser
from storesync.scrapers.types import PageResult, ScrapedItem

logger = logging.getLogger(__name__)

FEED_PAGE_SIZE = 250

CARD_STRATEGIES = [
    ".product-card",
    ".product-item",
    ".grid__item .card",
    ".collection-product-card",
    "[data-product-card]",
    ".product-grid-item",
    ".ProductItem",
]
CARD_TITLE = "a.product-card__title, .product-item__title, h3 a, .card__heading a"
CARD_PRICE = ".price, .product-price, .money, [data-product-price]"
NEXT_PAGE_STRATEGIES = ['a[rel="next"]', ".pagination__next:not(.disabled)", '[aria-label="Next page"]']

DETAIL_TITLE = ["h1.product__title", ".product-single__title", "h1[data-product-title]"]
DETAIL_PRICE = [".product__price", ".product-single__price", "[data-product-price]"]
DETAIL_DESCRIPTION = [".product__description", ".product-single__description", "[data-product-description]"]
DETAIL_IMAGES = ".product__media img, .product-single__photo img, [data-product-image]"
SOLD_OUT = ".sold-out, [data-sold-out]"

_HANDLE = re.compile(r"/products/([^/?#]+)")
# product_600x600.jpg, product_600x.jpg
_SIZE_SUFFIX = re.compile(r"_\d+x\d*(?=\.[a-zA-Z]{3,4}(?:\?|$))")
_PRICE_WORDS = re.compile(r"from|starting at|sale price|regular price|sale", re.IGNORECASE)


def full_size_image_url(url: str, base_url: str) -> str:
    """Drop the CDN size suffix to get the original upload."""
    return _SIZE_SUFFIX.sub("", resolve_url(url, base_url))


def handle_from_url(url: str) -> str | None:
    match = _HANDLE.search(url)
    return match.group(1) if match else None


@register_parser(PlatformKind.SHOPIFY)
class ShopifyParser(BaseParser):
    supports_feed = True

    def can_handle(self, url: str) -> bool:
        host = urlsplit(url).netloc.lower()
        return host.endswith(".myshopify.com") or "/products" in url or "/collections" in url

    def get_list_url(self, base_url: str, page: int = 1) -> str:
        parts = urlsplit(base_url)
        if "/collections" not in parts.path and "/products" not in parts.path:
            parts = parts._replace(path="/collections/all", query="")
        url = urlunsplit(parts)
        return with_query_param(url, "page", page) if page > 1 else url

    def get_feed_url(self, base_url: str, page: int = 1) -> str:
        parts = urlsplit(base_url)
        url = urlunsplit((parts.scheme or "https", parts.netloc, "/products.json", f"limit={FEED_PAGE_SIZE}", ""))
        return with_query_param(url, "page", page) if page > 1 else url

    def parse_feed(self, payload: Any, base_url: str) -> PageResult:
        if isinstance(payload, (str, bytes)):
            try:
                payload = json.loads(extract_json_text(payload if isinstance(payload, str) else payload.decode()))
            except ValueError:
                return PageResult(errors=["Invalid Shopify JSON response"])

        products = payload.get("products") if isinstance(payload, dict) else None
        if not isinstance(products, list):
            return PageResult(errors=["Invalid Shopify JSON response"])

        items: list[ScrapedItem] = []
        errors: list[str] = []
        for product in products:
            try:
                item = self._parse_feed_product(product, base_url)
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                errors.append(f"Failed to parse product {product.get('id') if isinstance(product, dict) else '?'}: {e}")
                continue
            if item:
                items.append(item)

        # A short page is the last page
        return PageResult(items=items, has_next_page=len(products) >= FEED_PAGE_SIZE, errors=errors)

    def parse_list_page(self, html: str, base_url: str) -> PageResult:
        soup = self.soup(html)
        cards = self.first_match(soup, CARD_STRATEGIES)
        if not cards:
            return PageResult()

        items: list[ScrapedItem] = []
        for card in cards:
            title_el = card.select_one(CARD_TITLE)
            link = title_el if title_el is not None and title_el.get("href") else card.find("a", href=True)
            if title_el is None or link is None:
                continue

            url = resolve_url(link["href"], base_url)
            img = card.find("img")
            src = self.image_src(img) if img else ""
            item = self.make_item(
                source_url=url,
                external_id=handle_from_url(url),
                title=title_el.get_text(" "),
                price=self._price(self.first_text(card, [CARD_PRICE])),
                images=[full_size_image_url(src, base_url)] if src else [],
            )
            if item:
                items.append(item)

        has_next, next_url = self.find_next_page(soup, NEXT_PAGE_STRATEGIES, base_url)
        return PageResult(items=items, has_next_page=has_next, next_page_url=next_url)

    def parse_detail_page(self, html: str, url: str) -> ScrapedItem | None:
        soup = self.soup(html)

        structured = self.parse_json_ld_product(soup, url)
        if structured:
            images = tuple(full_size_image_url(src, url) for src in structured.images)
            return structured.model_copy(update={
                "external_id": handle_from_url(url) or structured.external_id,
                "images": images,
            })

        title = self.first_text(soup, DETAIL_TITLE)
        if not title:
            return None

        images = [full_size_image_url(src, url) for src in (self.image_src(img) for img in soup.select(DETAIL_IMAGES)) if src]
        return self.make_item(
            source_url=url,
            external_id=handle_from_url(url),
            title=title,
            price=self._price(self.first_text(soup, DETAIL_PRICE)),
            description=self.first_text(soup, DETAIL_DESCRIPTION) or None,
            images=images,
            sku=self.first_text(soup, ["[data-sku]", ".product-single__sku"]) or None,
            quantity=0 if soup.select_one(SOLD_OUT) else 1,
        )

    def _parse_feed_product(self, product: dict, base_url: str) -> ScrapedItem | None:
        variants = product.get("variants") or []
        first = variants[0] if variants else {}

        available = [v for v in variants if v.get("available")]
        # untracked or oversold inventory reports 0 or less; count it as one unit
        quantity = sum(max(v.get("inventory_quantity") or 0, 0) or 1 for v in available)

        tags = product.get("tags") or []
        if isinstance(tags, str):
            tags = [t.strip() for t in tags.split(",") if t.strip()]

        return self.make_item(
            source_url=resolve_url(f"/products/{product['handle']}", base_url),
            external_id=str(product["id"]) if product.get("id") is not None else None,
            title=product.get("title"),
            price=float(first["price"]) if first.get("price") not in (None, "") else None,
            description=strip_html(product.get("body_html")) or None,
            images=[full_size_image_url(img["src"], base_url) for img in product.get("images") or [] if img.get("src")],
            sku=first.get("sku") or None,
            quantity=quantity if variants else 1,
            category=product.get("product_type") or None,
            attributes={"vendor": product.get("vendor") or "", "tags": ", ".join(tags)},
        )

    @staticmethod
    def _price(text: str) -> float | None:
        return parse_price(_PRICE_WORDS.sub("", text)) if text else None
