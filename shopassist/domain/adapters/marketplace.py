# shopassist/domain/adapters/marketplace.py
import logging
import re
import time
from typing import List, Optional
from urllib.parse import quote_plus

from bs4 import BeautifulSoup

from shopassist.domain.adapters.base import CatalogAdapter
from shopassist.domain.models.product import Product
from shopassist.domain.services.constants import SOURCE_MARKETPLACE
from shopassist.utils.urls import canonical_url

logger = logging.getLogger(__name__)

MARKETPLACE_BASE = "https://www.amazon.com"
MARKETPLACE_DOMAIN = "amazon.com"

BROWSER_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
}

_ALT_PRICE_RE = re.compile(r"\$([\d,]+)\.(\d{2})")
_RATING_RE = re.compile(r"(\d+\.?\d*)")


def _clean(text: Optional[str]) -> str:
    return re.sub(r"\s+", " ", text or "").strip()


def _text(node, selector: str) -> str:
    el = node.select_one(selector)
    return el.get_text() if el else ""


def clean_price(whole: Optional[str], fraction: Optional[str]) -> Optional[str]:
    """'1,299.' + '9' -> '$1,299.90'. None when there is no whole part."""
    w = re.sub(r"[^\d,]", "", _clean(whole))
    f = re.sub(r"[^\d]", "", _clean(fraction))
    if not w:
        return None
    cents = (f or "00").ljust(2, "0")[:2]
    return f"${w}.{cents}"


def extract_search_results(html: str, max_results: int) -> List[Product]:
    """Parse marketplace search-result cards. Cards without a name or link are dropped."""
    soup = BeautifulSoup(html, "lxml")
    products: List[Product] = []

    for card in soup.select('[data-component-type="s-search-result"]')[:max_results]:
        name_el = card.select_one("a h2 span") or card.select_one("h2 span")
        link_el = card.select_one("a[href]")
        if not name_el or not link_el:
            continue

        href = link_el.get("href") or ""
        url = f"{MARKETPLACE_BASE}{href}" if href.startswith("/") else href

        price = clean_price(_text(card, ".a-price-whole"), _text(card, ".a-price-fraction"))
        if price is None:
            alt = card.select_one('[data-a-color="price"] .a-offscreen')
            m = _ALT_PRICE_RE.search(alt.get_text()) if alt else None
            if m:
                price = f"${m.group(1)}.{m.group(2)}"

        img = card.select_one("img.s-image")
        rating_el = card.select_one(".a-icon-alt")
        rating_m = _RATING_RE.search(rating_el.get_text()) if rating_el else None

        products.append(
            Product(
                source_id=SOURCE_MARKETPLACE,
                name=_clean(name_el.get_text()),
                price=price or "Varies",
                currency="USD" if price else None,
                image_url=img.get("src") if img else None,
                url=canonical_url(url),
                merchant_domain=MARKETPLACE_DOMAIN,
                rating=f"{rating_m.group(1)} out of 5" if rating_m else None,
            )
        )
    return products


class MarketplaceAdapter(CatalogAdapter):
    """Marketplace search by scraping the public search-results page."""

    source_id = SOURCE_MARKETPLACE

    async def search(self, query: str, limit: int) -> List[Product]:
        search_url = f"{MARKETPLACE_BASE}/s?k={quote_plus(query)}"
        t0 = time.perf_counter()
        resp = await self.http.get(search_url, headers=BROWSER_HEADERS)
        resp.raise_for_status()
        products = extract_search_results(resp.text, limit)
        logger.info("marketplace search query=%r n=%s time=%.3fs", query, len(products), time.perf_counter() - t0)
        return products
