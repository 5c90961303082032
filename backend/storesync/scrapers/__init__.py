"""Parser package: import all parsers to trigger @register_parser decorators."""

from storesync.scrapers.generic import GenericParser  # noqa: F401
from storesync.scrapers.ebay import EbayParser  # noqa: F401
from storesync.scrapers.etsy import EtsyParser  # noqa: F401
from storesync.scrapers.shopify import ShopifyParser  # noqa: F401
from storesync.scrapers.registry import get_parser, get_parser_for_url, list_platforms  # noqa: F401
