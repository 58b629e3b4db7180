# tests/test_urls.py
import pytest

from shopassist.utils.urls import (
    canonical_url,
    catalog_lookup_url,
    guess_title_from_url,
    is_http_url,
    merchant_domain,
    upgrade_image_url,
)


def test_canonical_url_drops_tracking():
    assert canonical_url("https://www.amazon.com/Ghost/dp/B0ABC12345/ref=sr_1_1?k=shoes#x") == (
        "https://www.amazon.com/Ghost/dp/B0ABC12345"
    )
    assert canonical_url("https://shop.example.com/products/a/ref=keep?variant=1") == (
        "https://shop.example.com/products/a/ref=keep"
    )
    assert canonical_url("not a url") == "not a url"


def test_catalog_lookup_url_only_touches_marketplace():
    assert catalog_lookup_url("https://www.amazon.com/dp/B0ABC12345/ref=abc?th=1") == "https://www.amazon.com/dp/B0ABC12345/"
    assert catalog_lookup_url("https://shop.example.com/products/a?variant=1") == "https://shop.example.com/products/a?variant=1"


@pytest.mark.parametrize(
    "url,title",
    [
        ("https://shop.example.com/products/trail-runner-2", "Trail Runner 2"),
        ("https://www.amazon.com/Brooks-Ghost-15/dp/B0ABC12345/ref=sr_1_1", "Brooks Ghost 15"),
        ("https://www.amazon.com/gp/product/B0ABC12345", "Product"),
        ("https://shop.example.com/", "Product"),
    ],
)
def test_guess_title_from_url(url, title):
    assert guess_title_from_url(url) == title


def test_upgrade_image_url():
    assert upgrade_image_url("https://m.media-amazon.com/images/I/x._AC_UL320_.jpg") == (
        "https://m.media-amazon.com/images/I/x._AC_UL800_.jpg"
    )
    assert upgrade_image_url("https://cdn.shopify.com/s/files/shoe.jpg?v=3").endswith("v=3&width=1200")
    assert upgrade_image_url("https://cdn.shopify.com/s/files/shoe.jpg?width=400").endswith("width=400")
    assert upgrade_image_url(None) is None


def test_url_helpers():
    assert is_http_url("https://x.com/a")
    assert not is_http_url("ftp://x.com/a")
    assert not is_http_url("")
    assert merchant_domain("https://www.nike.com/t/pegasus") == "nike.com"
