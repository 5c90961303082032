import json
from html import escape

from storesync.schemas.source import SourceSelectors
from storesync.scrapers.ebay import EbayParser, canonical_item_url, upgrade_image_url
from storesync.scrapers.etsy import EtsyParser
from storesync.scrapers.generic import GenericParser
from storesync.scrapers.shopify import FEED_PAGE_SIZE, ShopifyParser, full_size_image_url

BASE = "https://shop.example/catalog"


def _cards(count: int) -> str:
    cards = "".join(
        f"""
        <div class="product-card">
          <a href="/p/{i}"><img data-src="/img/{i}.jpg" src="data:image/gif;base64,R0"></a>
          <h3>Blue Vase {i}</h3>
          <span class="price">$1{i}.00</span>
        </div>
        """
        for i in range(count)
    )
    return f"<html><body><main>{cards}</main></body></html>"


# -- generic --


def test_generic_auto_detects_repeating_cards():
    result = GenericParser().parse_list_page(_cards(3), BASE)

    assert result.errors == []
    assert [item.title for item in result.items] == ["Blue Vase 0", "Blue Vase 1", "Blue Vase 2"]
    first = result.items[0]
    assert first.source_url == "https://shop.example/p/0"
    assert first.price == 10.0
    assert first.images == ("https://shop.example/img/0.jpg",)


def test_generic_single_card_is_not_a_pattern():
    result = GenericParser().parse_list_page(_cards(1), BASE)

    assert result.items == []
    assert len(result.errors) == 1
    assert result.errors[0].startswith("No products found with selector:")


def test_generic_empty_page_reports_diagnostic_not_crash():
    result = GenericParser().parse_list_page("", BASE)

    assert result.items == []
    assert result.has_next_page is False
    assert result.errors


def test_generic_uses_configured_selectors():
    html = """
    <ul class="catalog">
      <li class="row"><a class="go" href="/item/a" title="Oak Chair">view</a><em class="price">$40</em></li>
      <li class="row"><a class="go" href="/item/b" title="Pine Table">view</a><em class="price">$90</em></li>
    </ul>
    <a class="older" href="/catalog?page=2">Older</a>
    """
    selectors = SourceSelectors(product_list="ul.catalog", product_link="li.row", next_page="a.older")
    result = GenericParser(selectors).parse_list_page(html, BASE)

    assert [(i.title, i.price) for i in result.items] == [("Oak Chair", 40.0), ("Pine Table", 90.0)]
    assert result.has_next_page is True
    assert result.next_page_url == "https://shop.example/catalog?page=2"


def test_generic_camel_case_selectors_are_accepted():
    selectors = SourceSelectors.model_validate({"productList": ".grid", "nextPage": ".more"})
    assert selectors.product_list == ".grid"
    assert selectors.next_page == ".more"


def test_generic_disabled_next_link_ends_pagination():
    html = _cards(2) + '<a rel="next" class="disabled" href="/catalog?page=9">Next</a>'
    result = GenericParser().parse_list_page(html, BASE)
    assert result.has_next_page is False


def test_generic_list_urls():
    parser = GenericParser()
    assert parser.get_list_url(BASE, 1) == BASE
    assert parser.get_list_url(BASE, 3) == "https://shop.example/catalog?page=3"
    assert parser.get_list_url("https://shop.example/c?p=1&s=2", 2) == "https://shop.example/c?p=2&s=2"
    assert parser.get_list_url("https://shop.example/shop/page/1/", 4) == "https://shop.example/shop/page/4/"


def test_generic_detail_page():
    html = """
    <h1>Oak Chair</h1><span class="price">$1,040.00</span>
    <div class="description">Solid   oak.</div>
    <div class="gallery"><img src="/a.jpg"><img src="/a.jpg"><img src="//cdn.example/b.jpg"></div>
    """
    item = GenericParser().parse_detail_page(html, "https://shop.example/item/a")

    assert item.title == "Oak Chair"
    assert item.price == 1040.0
    assert item.description == "Solid oak."
    assert item.images == ("https://shop.example/a.jpg", "https://cdn.example/b.jpg")


def test_generic_detail_without_title_is_skipped():
    assert GenericParser().parse_detail_page("<p>nothing here</p>", BASE) is None


# -- eBay --

EBAY_LIST = """
<ul class="srp-results">
  <li class="s-item">
    <div class="s-item__title">Shop on eBay</div>
    <a class="s-item__link" href="https://www.ebay.com/itm/123456"></a>
  </li>
  <li class="s-item">
    <div class="s-item__title"><span>New Listing</span>Brass Lamp 1960s</div>
    <a class="s-item__link" href="https://www.ebay.com/itm/brass-lamp/223344556677?hash=item3&amp;_trkparms=x"></a>
    <img class="s-item__image-img" src="https://i.ebayimg.com/thumbs/images/g/abc/s-l225.jpg">
    <span class="s-item__price">$1,234.56</span>
    <span class="SECONDARY_INFO">Pre-Owned</span>
    <span class="s-item__shipping">+$25.00 shipping</span>
  </li>
  <li class="s-item">
    <div class="s-item__title">See more like this</div>
    <a class="s-item__link" href="https://www.ebay.com/sch/i.html?_nkw=lamp"></a>
  </li>
</ul>
<a class="pagination__next" href="https://www.ebay.com/sch/acme/m.html?_pgn=2">Next</a>
"""


def test_ebay_list_page():
    result = EbayParser().parse_list_page(EBAY_LIST, "https://www.ebay.com/sch/acme/m.html")

    assert len(result.items) == 1
    item = result.items[0]
    assert item.title == "Brass Lamp 1960s"
    assert item.source_url == "https://www.ebay.com/itm/223344556677"
    assert item.external_id == "223344556677"
    assert item.price == 1234.56
    assert item.condition == "Pre-Owned"
    assert item.images == ("https://i.ebayimg.com/images/g/abc/s-l1600.jpg",)
    assert item.attributes == {"shipping": "+$25.00 shipping"}
    assert result.has_next_page is True


def test_ebay_empty_results_is_not_an_error():
    result = EbayParser().parse_list_page("<div>No exact matches found</div>", "https://www.ebay.com/str/acme")
    assert result.items == []
    assert result.errors == []
    assert result.has_next_page is False


def test_ebay_list_urls():
    parser = EbayParser()
    assert parser.get_list_url("https://www.ebay.com/str/acmevintage") == (
        "https://www.ebay.com/sch/acmevintage/m.html?_ipg=240&rt=nc"
    )
    assert parser.get_list_url("https://www.ebay.com/str/acmevintage", 3) == (
        "https://www.ebay.com/sch/acmevintage/m.html?_ipg=240&rt=nc&_pgn=3"
    )


def test_ebay_detail_page():
    html = """
    <h1 id="itemTitle"><span>Details about</span> Brass Lamp 1960s</h1>
    <span id="prcIsum">US $120.00</span>
    <div id="vi-itm-cond">Used</div>
    <span id="qtySubTxt">3 available</span>
    <img id="icImg" src="https://i.ebayimg.com/images/g/abc/s-l500.jpg">
    <ul id="vi-VR-brumb-lnkLst"><li><a>Home</a></li><li><a>Lamps</a></li></ul>
    <div class="ux-labels-values__labels">Brand:</div><div class="ux-labels-values__values">Stiffel</div>
    <div id="desc_ifr" src="https://vi.vipr.ebaydesc.com/x"></div>
    """
    item = EbayParser().parse_detail_page(html, "https://www.ebay.com/itm/223344556677?var=1")

    assert item.title == "Brass Lamp 1960s"
    assert item.source_url == "https://www.ebay.com/itm/223344556677"
    assert item.price == 120.0
    assert item.quantity == 3
    assert item.condition == "Used"
    assert item.category == "Home > Lamps"
    assert item.images == ("https://i.ebayimg.com/images/g/abc/s-l1600.jpg",)
    assert item.attributes == {"Brand": "Stiffel"}
    assert item.description is None


def test_ebay_url_helpers():
    assert upgrade_image_url("https://i.ebayimg.com/thumbs/images/g/x/s-l64.jpg?set_id=1") == (
        "https://i.ebayimg.com/images/g/x/s-l1600.jpg"
    )
    assert canonical_item_url("https://www.ebay.co.uk/itm/Some-Title/998877?hash=1") == "https://www.ebay.co.uk/itm/998877"


# -- Etsy --


def test_etsy_list_page():
    html = """
    <div data-listing-id="1111">
      <a href="https://www.etsy.com/listing/1111/linen-apron?ref=shop_home" title="Linen Apron">
        <img src="https://i.etsystatic.com/1/r/il/abc/1/il_340x270.1.jpg">
      </a>
      <span class="currency-value">28.00</span>
    </div>
    <div data-listing-id="2222">
      <a href="https://www.etsy.com/listing/2222/tea-towel"><h3>Tea Towel</h3></a>
      <span class="currency-value">12.50</span>
    </div>
    <a rel="next" href="https://www.etsy.com/shop/acme?page=2">Next</a>
    """
    result = EtsyParser().parse_list_page(html, "https://www.etsy.com/shop/acme")

    assert [(i.external_id, i.title, i.price) for i in result.items] == [
        ("1111", "Linen Apron", 28.0),
        ("2222", "Tea Towel", 12.5),
    ]
    assert result.items[0].source_url == "https://www.etsy.com/listing/1111"
    assert result.items[0].images == ("https://i.etsystatic.com/1/r/il/abc/1/il_fullxfull.1.jpg",)
    assert result.has_next_page is True


def test_etsy_list_urls():
    parser = EtsyParser()
    assert parser.get_list_url("https://www.etsy.com/shop/acme?ref=profile", 1) == "https://www.etsy.com/shop/acme"
    assert parser.get_list_url("https://www.etsy.com/shop/acme", 2) == "https://www.etsy.com/shop/acme?page=2"


def test_etsy_detail_page_from_json_ld():
    product = {
        "@context": "https://schema.org",
        "@type": "Product",
        "name": "Linen Apron",
        "description": "Stonewashed linen.",
        "image": [{"url": "https://i.etsystatic.com/1/il_570xN.1.jpg"}],
        "offers": {"@type": "Offer", "price": "28.00", "availability": "https://schema.org/InStock"},
    }
    html = f'<script type="application/ld+json">{json.dumps(product)}</script>'
    item = EtsyParser().parse_detail_page(html, "https://www.etsy.com/listing/1111/linen-apron?ref=x")

    assert item.title == "Linen Apron"
    assert item.source_url == "https://www.etsy.com/listing/1111"
    assert item.external_id == "1111"
    assert item.price == 28.0
    assert item.description == "Stonewashed linen."
    assert item.images == ("https://i.etsystatic.com/1/il_fullxfull.1.jpg",)


# -- Shopify --


def _feed_product(handle: str, **overrides) -> dict:
    product = {
        "id": 7001,
        "title": "Canvas Tote",
        "handle": handle,
        "body_html": "<p>Heavy <strong>canvas</strong>.</p>",
        "vendor": "Acme",
        "product_type": "Bags",
        "tags": ["canvas", "tote"],
        "variants": [
            {"price": "24.00", "sku": "TOTE-1", "available": True, "inventory_quantity": 3},
            {"price": "26.00", "sku": "TOTE-2", "available": True, "inventory_quantity": 0},
            {"price": "26.00", "sku": "TOTE-3", "available": False, "inventory_quantity": 5},
        ],
        "images": [{"src": "https://cdn.shopify.com/s/files/tote_600x600.jpg?v=1"}],
    }
    product.update(overrides)
    return product


def test_shopify_feed_product():
    payload = {"products": [_feed_product("canvas-tote")]}
    result = ShopifyParser().parse_feed(json.dumps(payload), "https://acme.myshopify.com")

    assert result.errors == []
    assert result.has_next_page is False
    item = result.items[0]
    assert item.source_url == "https://acme.myshopify.com/products/canvas-tote"
    assert item.external_id == "7001"
    assert item.price == 24.0
    assert item.sku == "TOTE-1"
    # 3 tracked units plus one untracked available variant
    assert item.quantity == 4
    assert item.description == "Heavy canvas ."
    assert item.category == "Bags"
    assert item.images == ("https://cdn.shopify.com/s/files/tote.jpg?v=1",)
    assert item.attributes == {"vendor": "Acme", "tags": "canvas, tote"}


def test_shopify_feed_sold_out_product_has_zero_quantity():
    product = _feed_product("gone", variants=[{"price": "5.00", "available": False, "inventory_quantity": 0}])
    result = ShopifyParser().parse_feed({"products": [product]}, "https://acme.myshopify.com")
    assert result.items[0].quantity == 0


def test_shopify_full_feed_page_has_next():
    products = [_feed_product(f"p-{i}", id=i) for i in range(FEED_PAGE_SIZE)]
    result = ShopifyParser().parse_feed({"products": products}, "https://acme.myshopify.com")
    assert len(result.items) == FEED_PAGE_SIZE
    assert result.has_next_page is True


def test_shopify_feed_unwraps_browser_pre_and_rejects_garbage():
    parser = ShopifyParser()
    body = escape(json.dumps({"products": [_feed_product("x")]}), quote=False)
    wrapped = f"<html><body><pre>{body}</pre></body></html>"
    assert len(parser.parse_feed(wrapped, "https://acme.myshopify.com").items) == 1

    broken = parser.parse_feed("<html>Password required</html>", "https://acme.myshopify.com")
    assert broken.items == []
    assert broken.errors == ["Invalid Shopify JSON response"]


def test_shopify_feed_urls():
    parser = ShopifyParser()
    assert parser.get_feed_url("https://acme.myshopify.com/collections/all") == (
        "https://acme.myshopify.com/products.json?limit=250"
    )
    assert parser.get_feed_url("https://acme.myshopify.com", 2) == "https://acme.myshopify.com/products.json?limit=250&page=2"
    assert parser.get_list_url("https://acme.myshopify.com", 2) == "https://acme.myshopify.com/collections/all?page=2"


def test_shopify_detail_page_sold_out_markup():
    html = """
    <h1 class="product__title">Canvas Tote</h1>
    <span class="product__price">Sale price $24.00</span>
    <div class="product__description">Heavy canvas.</div>
    <div class="product__media"><img src="//cdn.shopify.com/tote_1024x1024.png"></div>
    <button class="sold-out" disabled>Sold out</button>
    """
    item = ShopifyParser().parse_detail_page(html, "https://acme.myshopify.com/products/canvas-tote")

    assert item.title == "Canvas Tote"
    assert item.price == 24.0
    assert item.quantity == 0
    assert item.external_id == "canvas-tote"
    assert item.images == ("https://cdn.shopify.com/tote.png",)


def test_full_size_image_url():
    assert full_size_image_url("/cdn/shop/a_200x.jpg", "https://acme.example/") == "https://acme.example/cdn/shop/a.jpg"
