"""eBay seller store parser.

Store URLs look like https://www.ebay.com/str/<store> or
https://www.ebay.com/sch/<store>/m.html. Listing pages are the seller's
search results (240 per page, _pgn pagination); item pages live at /itm/<id>.
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

EBAY_HOSTS = ("ebay.com", "ebay.co.uk", "ebay.ca", "ebay.com.au", "ebay.de")
ITEMS_PER_PAGE = 240

LISTING_STRATEGIES = [
    ".srp-results .s-item",
    ".srp-river-results .s-item",
    "#ListViewInner li",
    ".b-list__items_nofooter .s-item",
]
NEXT_PAGE_STRATEGIES = ["a.pagination__next", ".pagn-next a", 'a[rel="next"]']

_STORE_PATH = re.compile(r"/str/([^/?#]+)")
_SEARCH_PATH = re.compile(r"/sch/([^/?#]+)/m\.html")
_ITEM_ID = re.compile(r"/itm/(?:[^/?#]+/)?(\d+)")
_IMAGE_SIZE = re.compile(r"s-l\d+")
_AVAILABLE = re.compile(r"(\d+)\s*available", re.IGNORECASE)
_LISTING_PREFIX = re.compile(r"^new listing\s*", re.IGNORECASE)


def upgrade_image_url(url: str) -> str:
    """eBay serves s-l64 ... s-l1600; always ask for the largest."""
    url = _IMAGE_SIZE.sub("s-l1600", url, count=1)
    url = url.replace("/thumbs/images/", "/images/").replace("/thumbs/", "/images/")
    return url.split("?")[0]


def item_id_from_url(url: str) -> str | None:
    match = _ITEM_ID.search(url)
    return match.group(1) if match else None


def canonical_item_url(url: str) -> str:
    """Tracking parameters vary per page view; the item id is the identity."""
    item_id = item_id_from_url(url)
    if not item_id:
        return url
    host = urlsplit(url).netloc or "www.ebay.com"
    return f"https://{host}/itm/{item_id}"


@register_parser(PlatformKind.EBAY_STORE)
class EbayParser(BaseParser):

    def can_handle(self, url: str) -> bool:
        host = urlsplit(url).netloc.lower()
        return any(host == h or host.endswith("." + h) for h in EBAY_HOSTS)

    def get_list_url(self, base_url: str, page: int = 1) -> str:
        store = self._store_name(base_url)
        if store:
            host = urlsplit(base_url).netloc or "www.ebay.com"
            url = f"https://{host}/sch/{store}/m.html?_ipg={ITEMS_PER_PAGE}&rt=nc"
            return with_query_param(url, "_pgn", page) if page > 1 else url
        return with_query_param(base_url, "_pgn", page)

    def parse_list_page(self, html: str, base_url: str) -> PageResult:
        soup = self.soup(html)
        listings = self.first_match(soup, LISTING_STRATEGIES)
        if not listings:
            return PageResult()

        items: list[ScrapedItem] = []
        errors: list[str] = []
        for listing in listings:
            try:
                item = self._parse_listing(listing)
            except (AttributeError, TypeError, ValueError) as e:
                errors.append(f"Failed to parse listing: {e}")
                continue
            if item:
                items.append(item)

        has_next, next_url = self.find_next_page(soup, NEXT_PAGE_STRATEGIES, base_url)
        return PageResult(items=items, has_next_page=has_next, next_page_url=next_url, errors=errors)

    def parse_detail_page(self, html: str, url: str) -> ScrapedItem | None:
        soup = self.soup(html)

        title = self.first_text(soup, ["#itemTitle", ".x-item-title__mainTitle span"])
        title = re.sub(r"^Details about\s*", "", title, flags=re.IGNORECASE)
        if not title:
            return None

        # Description behind an iframe needs a separate fetch; leave it empty
        description = None
        if not soup.select_one("#desc_ifr[src]"):
            description = self.first_text(soup, ["#viTabs_0_is", ".d-item-description"]) or None

        images = [
            upgrade_image_url(src)
            for src in (self.image_src(img) for img in soup.select('#icImg, .ux-image-carousel-item img, img[id^="icThumbs"]'))
            if src
        ]

        quantity = 1
        match = _AVAILABLE.search(self.first_text(soup, ["#qtySubTxt", ".d-quantity__availability span"]))
        if match:
            quantity = int(match.group(1))

        crumbs = [clean_text(a.get_text()) for a in soup.select("#vi-VR-brumb-lnkLst li a, .seo-breadcrumb-text a")]
        crumbs = [c for c in crumbs if c]

        return self.make_item(
            source_url=canonical_item_url(url),
            external_id=item_id_from_url(url),
            title=title,
            price=parse_price(self.first_text(soup, ["#prcIsum", ".x-price-primary span"])),
            description=description,
            images=images,
            sku=self.first_text(soup, ["#descItemNumber"]) or None,
            condition=self.first_text(soup, ["#vi-itm-cond", ".x-item-condition-text span"]) or None,
            quantity=quantity,
            category=" > ".join(crumbs) or None,
            attributes=self._item_specifics(soup),
        )

    def _parse_listing(self, listing: Tag) -> ScrapedItem | None:
        title = _LISTING_PREFIX.sub("", self.first_text(listing, [".s-item__title", ".lvtitle", ".vip"]))

        link = listing.select_one(".s-item__link, a.vip")
        href = link.get("href", "") if link else ""
        if not item_id_from_url(href):
            # promo tiles and "see more" links
            return None

        img = listing.select_one(".s-item__image-img, img")
        src = self.image_src(img) if img else ""
        shipping = self.first_text(listing, [".s-item__shipping", ".ship"])

        return self.make_item(
            source_url=canonical_item_url(href),
            external_id=item_id_from_url(href),
            title=title,
            price=parse_price(self.first_text(listing, [".s-item__price", ".prc", ".bold"])),
            images=[upgrade_image_url(src)] if src else [],
            condition=self.first_text(listing, [".SECONDARY_INFO", ".cndtn"]) or None,
            attributes={"shipping": shipping},
        )

    @staticmethod
    def _item_specifics(soup) -> dict[str, str]:
        attributes = {}
        for label in soup.select(".ux-labels-values__labels, .itemAttr th"):
            value = label.find_next_sibling(class_="ux-labels-values__values") or label.find_next_sibling("td")
            key = clean_text(label.get_text(" ")).rstrip(":").strip()
            text = clean_text(value.get_text(" ")) if value else ""
            if key and text:
                attributes[key] = text
        return attributes

    @staticmethod
    def _store_name(url: str) -> str | None:
        match = _STORE_PATH.search(url) or _SEARCH_PATH.search(url)
        return match.group(1) if match else None
