# tests/test_search.py
import asyncio

import httpx

from shopassist.domain.adapters.allowed_merchants import AllowedMerchantAdapter
from shopassist.domain.adapters.base import CatalogAdapter
from shopassist.domain.adapters.marketplace import clean_price, extract_search_results
from shopassist.domain.adapters.storefront import StorefrontAdapter
from shopassist.domain.models.product import Product
from shopassist.domain.services import search_svc
from shopassist.domain.services.search_svc import SearchAggregator, merge_results


class StaticAdapter(CatalogAdapter):
    def __init__(self, source_id, products=(), *, exc=None, delay=0.0):
        super().__init__(http=None)
        self.source_id = source_id
        self.products = list(products)
        self.exc = exc
        self.delay = delay
        self.calls = []

    async def search(self, query, limit):
        self.calls.append((query, limit))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.exc:
            raise self.exc
        return self.products


def _p(source_id, name, url):
    return Product(source_id=source_id, name=name, url=url)


def test_merge_first_seen_wins_and_keeps_urlless_products():
    a = _p("storefront", "A", "https://x.com/p/1")
    b = _p("marketplace", "B", "https://x.com/p/1")
    c = _p("marketplace", "C", "")
    d = _p("allowed_merchant", "D", "")

    merged = merge_results([[a], [b, c], [d]])

    assert [p.name for p in merged] == ["A", "C", "D"]


def test_merge_is_idempotent():
    products = [_p("s", "A", "https://x.com/1"), _p("s", "B", "https://x.com/2"), _p("s", "C", "")]
    once = merge_results([products])
    assert merge_results([once]) == once


async def test_running_shoes_dedup_across_adapters():
    shared = "https://www.amazon.com/Brooks-Ghost/dp/B0ABC12345"
    storefront = StaticAdapter("storefront", [_p("storefront", "Ghost (store)", shared)])
    marketplace = StaticAdapter(
        "marketplace",
        [_p("marketplace", "Ghost (mkt)", shared), _p("marketplace", "Pegasus", "https://www.amazon.com/Pegasus/dp/B0XYZ98765")],
    )
    merchants = StaticAdapter(
        "allowed_merchant",
        [_p("allowed_merchant", "External product", "https://nike.com/search?q=running+shoes")],
    )

    res = await SearchAggregator([storefront, marketplace, merchants]).search("running shoes", 6)

    assert [p.name for p in res.products] == ["Ghost (store)", "Pegasus", "External product"]
    assert res.products[0].source_id == "storefront"
    assert res.message is None
    assert storefront.calls == [("running shoes", 6)]


async def test_failing_adapter_is_isolated():
    ok = StaticAdapter("marketplace", [_p("marketplace", "A", "https://x.com/a")])
    broken = StaticAdapter("storefront", exc=httpx.ConnectError("down"))

    res = await SearchAggregator([broken, ok]).search("socks")

    assert [p.name for p in res.products] == ["A"]


async def test_slow_adapter_times_out():
    slow = StaticAdapter("storefront", [_p("storefront", "late", "https://x.com/late")], delay=1.0)
    fast = StaticAdapter("marketplace", [_p("marketplace", "fast", "https://x.com/fast")])

    res = await SearchAggregator([slow, fast], adapter_timeout_s=0.05).search("socks")

    assert [p.name for p in res.products] == ["fast"]


async def test_results_truncated_to_limit():
    many = [_p("marketplace", f"P{i}", f"https://x.com/{i}") for i in range(10)]
    res = await SearchAggregator([StaticAdapter("marketplace", many)]).search("socks", limit=4)
    assert [p.name for p in res.products] == ["P0", "P1", "P2", "P3"]


async def test_empty_results_carry_message():
    res = await SearchAggregator([StaticAdapter("storefront", exc=RuntimeError("boom"))]).search("unicorn saddle")
    assert res.products == []
    assert res.message == 'No products found for "unicorn saddle"'


MARKETPLACE_HTML = """
<html><body>
<div data-component-type="s-search-result">
  <a href="/Brooks-Ghost-Running-Shoe/dp/B0ABC12345/ref=sr_1_1?keywords=running+shoes">
    <h2><span>Brooks Ghost 15 Running Shoe</span></h2>
  </a>
  <span class="a-price"><span class="a-price-whole">139.</span><span class="a-price-fraction">95</span></span>
  <img class="s-image" src="https://m.media-amazon.com/images/I/ghost._AC_UL320_.jpg">
  <span class="a-icon-alt">4.6 out of 5 stars</span>
</div>
<div data-component-type="s-search-result">
  <a href="/Cheap-Sock/dp/B0SOCK0001">
    <h2><span>Cheap Sock</span></h2>
  </a>
  <span data-a-color="price"><span class="a-offscreen">$9.99</span></span>
</div>
<div data-component-type="s-search-result">
  <span>sponsored card without title or link</span>
</div>
</body></html>
"""


def test_extract_search_results_parses_cards():
    products = extract_search_results(MARKETPLACE_HTML, 10)

    assert len(products) == 2
    ghost, sock = products
    assert ghost.name == "Brooks Ghost 15 Running Shoe"
    assert ghost.url == "https://www.amazon.com/Brooks-Ghost-Running-Shoe/dp/B0ABC12345"
    assert ghost.price == "$139.95"
    assert ghost.rating == "4.6 out of 5"
    assert ghost.image_url.endswith("_AC_UL320_.jpg")
    assert ghost.merchant_domain == "amazon.com"
    assert sock.price == "$9.99"
    assert sock.rating is None


def test_clean_price():
    assert clean_price("1,299.", "9") == "$1,299.90"
    assert clean_price("", "99") is None


async def test_storefront_adapter_maps_graphql_nodes(mock_http):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["token"] = request.headers.get("X-Shopify-Storefront-Access-Token")
        return httpx.Response(200, json={"data": {"products": {"edges": [
            {"node": {
                "title": "Trail Runner",
                "onlineStoreUrl": "https://shop.example.com/products/trail-runner?variant=1",
                "featuredImage": {"url": "https://cdn.shopify.com/trail.jpg"},
                "priceRange": {"minVariantPrice": {"amount": "120.0", "currencyCode": "USD"}},
            }},
            {"node": {"title": ""}},
        ]}}})

    adapter = StorefrontAdapter(mock_http(handler), endpoint="https://shop.example.com/api/graphql", token="tok")
    products = await adapter.search("trail", 5)

    assert seen["token"] == "tok"
    assert len(products) == 1
    assert products[0].url == "https://shop.example.com/products/trail-runner"
    assert products[0].price == "$120.00"
    assert products[0].merchant_domain == "shop.example.com"


async def test_storefront_adapter_without_credentials_returns_nothing(unreachable_http):
    adapter = StorefrontAdapter(unreachable_http, endpoint=None, token=None)
    assert await adapter.search("trail", 5) == []


async def test_allowed_merchants_one_search_url_per_domain():
    adapter = AllowedMerchantAdapter(None, domains=["nike.com", "rei.com", "whoop.com"])
    products = await adapter.search("running shoes", 2)
    assert [p.url for p in products] == [
        "https://nike.com/search?q=running+shoes",
        "https://rei.com/search?q=running+shoes",
    ]
    assert all(p.merchant_domain for p in products)


class FakeRedis:
    def __init__(self):
        self.store = {}

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self.store[key] = value


async def test_cached_search_only_hits_adapters_once(monkeypatch, settings):
    adapter = StaticAdapter("marketplace", [_p("marketplace", "A", "https://x.com/a")])
    monkeypatch.setattr(search_svc, "build_default_adapters", lambda http, s: [adapter])
    redis = FakeRedis()

    first = await search_svc.search_products_cached(None, redis, settings, query="Socks", limit=6)
    second = await search_svc.search_products_cached(None, redis, settings, query="socks ", limit=6)

    assert first == second
    assert len(adapter.calls) == 1


SPONSORED_HTML = """
<html><body>
<div data-component-type="s-search-result">
  <a href="/sspa/click?ie=UTF8&amp;spc=abc&amp;url=%2FTrail-Runner%2Fdp%2FB0TRAIL001%2Fref%3Dsr_1_1_sspa%3Fpsc%3D1">
    <h2><span>Trail Runner</span></h2>
  </a>
</div>
<div data-component-type="s-search-result">
  <a href="/sspa/click?ie=UTF8&amp;spc=def&amp;url=%2FRoad-Racer%2Fdp%2FB0ROAD0002%2Fref%3Dsr_1_2_sspa%3Fpsc%3D1">
    <h2><span>Road Racer</span></h2>
  </a>
</div>
<div data-component-type="s-search-result">
  <a href="/sspa/click?ie=UTF8&amp;spc=ghi&amp;qualifier=9">
    <h2><span>Mystery Pick</span></h2>
  </a>
</div>
</body></html>
"""


def test_sponsored_cards_resolve_to_distinct_product_pages():
    products = extract_search_results(SPONSORED_HTML, 10)

    assert [p.url for p in products] == [
        "https://www.amazon.com/Trail-Runner/dp/B0TRAIL001",
        "https://www.amazon.com/Road-Racer/dp/B0ROAD0002",
        "https://www.amazon.com/sspa/click?ie=UTF8&spc=ghi&qualifier=9",
    ]
    assert [p.name for p in merge_results([products])] == ["Trail Runner", "Road Racer", "Mystery Pick"]
