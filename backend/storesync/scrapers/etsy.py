"""Etsy shop parser.

Shop pages live at https://www.etsy.com/shop/<name> and paginate with
?page=N. Listing cards carry data-listing-id; listing pages embed a
schema.org Product block.
"""

import logging
import re
from urllib.parse import urlsplit

from bs4 import Tag

from storesync.models.enums import PlatformKind
from storesync.scrapers.base import BaseParser
from storesync.scrapers.normalize import clean_text, parse_price, with_query_param
from storesync.scrapers.registry import register_parser
from storesync.scrapers.types import PageResult, ScrapedItem

logger = logging.getLogger(__name__)

CARD_STRATEGIES = ["[data-listing-id]", ".v2-listing-card", ".listing-link"]
NEXT_PAGE_STRATEGIES = [
    'a[rel="next"]',
    '.wt-action-group__item-container a[aria-label*="Next"]',
    '[data-page-type="next"] a',
]

_SHOP_PATH = re.compile(r"/shop/([^/?#]+)")
_LISTING_ID = re.compile(r"/listing/(\d+)")
# il_340x270.123.jpg, il_570xN.123.jpg
_IMAGE_SIZE = re.compile(r"il_\d+x[\dN]+")


def upgrade_image_url(url: str) -> str:
    return _IMAGE_SIZE.sub("il_fullxfull", url.split("?")[0], count=1)


def listing_id_from_url(url: str) -> str | None:
    match = _LISTING_ID.search(url)
    return match.group(1) if match else None


def canonical_listing_url(url: str) -> str:
    """Listing slugs and ref= parameters change; the numeric id does not."""
    listing_id = listing_id_from_url(url)
    return f"https://www.etsy.com/listing/{listing_id}" if listing_id else url


@register_parser(PlatformKind.ETSY_SHOP)
class EtsyParser(BaseParser):

    def can_handle(self, url: str) -> bool:
        host = urlsplit(url).netloc.lower()
        return host == "etsy.com" or host.endswith(".etsy.com")

    def get_list_url(self, base_url: str, page: int = 1) -> str:
        match = _SHOP_PATH.search(base_url)
        url = f"https://www.etsy.com/shop/{match.group(1)}" if match else base_url
        return with_query_param(url, "page", page) if page > 1 else url

    def parse_list_page(self, html: str, base_url: str) -> PageResult:
        soup = self.soup(html)
        items: list[ScrapedItem] = []
        seen: set[str] = set()
        for card in self.first_match(soup, CARD_STRATEGIES):
            item = self._parse_card(card, base_url)
            if item and item.source_url not in seen:
                seen.add(item.source_url)
                items.append(item)

        has_next, next_url = self.find_next_page(soup, NEXT_PAGE_STRATEGIES, base_url)
        return PageResult(items=items, has_next_page=has_next, next_page_url=next_url)

    def parse_detail_page(self, html: str, url: str) -> ScrapedItem | None:
        soup = self.soup(html)
        structured = self.parse_json_ld_product(soup, url)
        if structured is None:
            title = self.first_text(soup, ['h1[data-buy-box-listing-title]', "h1"])
            if not title:
                return None
            structured = self.make_item(
                source_url=url,
                title=title,
                price=parse_price(self.first_text(soup, ['[data-buy-box-region="price"] p', ".wt-text-title-larger"])),
                description=self.first_text(soup, ["[data-product-details-description-text-content]"]) or None,
            )
            if structured is None:
                return None

        images = [upgrade_image_url(src) for src in structured.images]
        images += [upgrade_image_url(src) for src in (self.image_src(img) for img in soup.select('[data-carousel-pane] img')) if src]
        return structured.model_copy(update={
            "source_url": canonical_listing_url(url),
            "external_id": listing_id_from_url(url) or structured.external_id,
            "images": tuple(dict.fromkeys(images)),
        })

    def _parse_card(self, card: Tag, base_url: str) -> ScrapedItem | None:
        link = card if card.name == "a" and card.get("href") else card.select_one('a[href*="/listing/"]')
        href = link.get("href") if link else None
        if not href or not listing_id_from_url(href):
            return None

        title = link.get("title") or self.first_text(card, ["h3", ".v2-listing-card__title", "h2"])
        img = card.find("img")
        src = self.image_src(img) if img else ""

        return self.make_item(
            source_url=canonical_listing_url(href),
            external_id=card.get("data-listing-id") or listing_id_from_url(href),
            title=clean_text(title),
            price=parse_price(self.first_text(card, [".currency-value", ".lc-price", ".n-listing-card__price"])),
            images=[upgrade_image_url(src)] if src else [],
        )
