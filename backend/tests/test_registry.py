from storesync.models.enums import PlatformKind
from storesync.schemas.source import SourceSelectors
from storesync.scrapers import get_parser, get_parser_for_url, list_platforms
from storesync.scrapers.ebay import EbayParser
from storesync.scrapers.etsy import EtsyParser
from storesync.scrapers.generic import GenericParser
from storesync.scrapers.shopify import ShopifyParser


def test_every_platform_kind_has_a_parser():
    assert set(list_platforms()) == set(PlatformKind)


def test_get_parser_by_kind():
    assert isinstance(get_parser(PlatformKind.EBAY_STORE), EbayParser)
    assert isinstance(get_parser("etsy_shop"), EtsyParser)
    assert isinstance(get_parser(PlatformKind.SHOPIFY), ShopifyParser)
    assert isinstance(get_parser(PlatformKind.WOOCOMMERCE), GenericParser)


def test_unknown_kind_falls_back_to_generic():
    assert isinstance(get_parser("bigcartel"), GenericParser)


def test_each_job_gets_a_fresh_parser():
    selectors = SourceSelectors(product_list=".grid")
    first = get_parser(PlatformKind.WEBSITE, selectors)
    second = get_parser(PlatformKind.WEBSITE)

    assert first is not second
    assert first.selectors.product_list == ".grid"
    assert second.selectors.product_list != ".grid"


def test_get_parser_for_url():
    assert isinstance(get_parser_for_url("https://www.ebay.com/str/acme"), EbayParser)
    assert isinstance(get_parser_for_url("https://www.etsy.com/shop/acme"), EtsyParser)
    assert isinstance(get_parser_for_url("https://acme.myshopify.com"), ShopifyParser)
    assert isinstance(get_parser_for_url("https://acme.example/shop"), GenericParser)
