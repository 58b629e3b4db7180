# shopassist/domain/services/scrape_svc.py
"""
Product page scraping: reviews, highlight bullets and meta tags straight from the HTML.
Used as the second enrichment stage and by the details/summary endpoints.
"""
from __future__ import annotations

import json
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

import httpx
from bs4 import BeautifulSoup

from shopassist.domain.models.product import PRICE_VARIES, ProductDetails, Review
from shopassist.domain.services.constants import (
    APP_REVIEW_MIN_LEN,
    HIGHLIGHT_MAX_LEN,
    HIGHLIGHT_MIN_LEN,
    MAX_HIGHLIGHTS_SCRAPED,
    MAX_SCRAPED_REVIEWS,
)

logger = logging.getLogger(__name__)

PDP_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; ShopAssistBot/1.0)",
    "Accept": "text/html,application/xhtml+xml",
}

# storefront theme containers that usually wrap the bullet list
DESCRIPTION_CONTAINER_RE = re.compile(r"(product__description|product-description|rte|accordion)")
# review-app widgets (Loox, Yotpo, Judge.me, Shopify Product Reviews)
REVIEW_APP_CLASS_RE = re.compile(r"(loox-review|yotpo-review|jdgm-rev__body|spr-review-content)")
_PRICE_RE = re.compile(r"\$[\d,]+(?:\.\d{2})?")


@dataclass
class ScrapeResult:
    reviews: List[Review] = field(default_factory=list)
    highlights: List[str] = field(default_factory=list)
    meta_description: str = ""


def _clean(text: Optional[str]) -> str:
    return re.sub(r"\s+", " ", text or "").strip()


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "lxml")


def extract_json_ld_blocks(soup: BeautifulSoup) -> List[Any]:
    blocks = []
    for tag in soup.find_all("script", type=lambda t: t and "ld+json" in t):
        try:
            blocks.append(json.loads(tag.string or ""))
        except (json.JSONDecodeError, TypeError):
            continue
    return blocks


def _walk_review_nodes(node: Any, out: List[Dict[str, Any]]) -> None:
    if isinstance(node, list):
        for n in node:
            _walk_review_nodes(n, out)
        return
    if not isinstance(node, dict):
        return
    r = node.get("review")
    if isinstance(r, list):
        out.extend(x for x in r if isinstance(x, dict))
    elif isinstance(r, dict):
        out.append(r)
    for v in node.values():
        _walk_review_nodes(v, out)


def _as_rating(value: Any) -> Optional[float]:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def extract_reviews_from_json_ld(blocks: Iterable[Any]) -> List[Review]:
    raw: List[Dict[str, Any]] = []
    for b in blocks:
        _walk_review_nodes(b, raw)

    reviews = []
    for r in raw:
        rating_node = r.get("reviewRating") if isinstance(r.get("reviewRating"), dict) else {}
        text = _clean(r.get("reviewBody") or r.get("description") or r.get("text") or "")
        if not text:
            continue
        reviews.append(
            Review(
                rating=_as_rating(rating_node.get("ratingValue") or rating_node.get("value") or r.get("rating")),
                title=_clean(r.get("name") or r.get("headline") or ""),
                text=text,
            )
        )
    return reviews


def extract_app_reviews(soup: BeautifulSoup) -> List[str]:
    texts: List[str] = []
    for el in soup.select("[data-review-content]"):
        texts.append(_clean(el.get("data-review-content")))
    for el in soup.find_all(class_=REVIEW_APP_CLASS_RE):
        texts.append(_clean(el.get_text(" ")))
    return [t for t in texts if len(t) > APP_REVIEW_MIN_LEN][:MAX_SCRAPED_REVIEWS]


def _bullets(container) -> List[str]:
    out = []
    for li in container.find_all("li"):
        t = _clean(li.get_text(" "))
        if HIGHLIGHT_MIN_LEN < len(t) < HIGHLIGHT_MAX_LEN:
            out.append(t)
    return out


def extract_highlights(soup: BeautifulSoup) -> List[str]:
    bullets: List[str] = []
    feature = soup.find(id="feature-bullets")
    if feature:
        bullets.extend(_bullets(feature))
    for container in soup.find_all("div", class_=DESCRIPTION_CONTAINER_RE):
        bullets.extend(_bullets(container))

    seen = set()
    deduped = []
    for b in bullets:
        k = b.lower()
        if k in seen:
            continue
        seen.add(k)
        deduped.append(b)
    return deduped[:MAX_HIGHLIGHTS_SCRAPED]


def _meta(soup: BeautifulSoup, *, name: Optional[str] = None, prop: Optional[str] = None) -> str:
    tag = soup.find("meta", attrs={"name": name}) if name else soup.find("meta", attrs={"property": prop})
    return _clean(tag.get("content")) if tag and tag.get("content") else ""


def parse_pdp(html: str) -> ScrapeResult:
    soup = _soup(html)
    ld_reviews = extract_reviews_from_json_ld(extract_json_ld_blocks(soup))
    if ld_reviews:
        reviews = ld_reviews[:MAX_SCRAPED_REVIEWS]
    else:
        reviews = [Review(text=t) for t in extract_app_reviews(soup)]
    return ScrapeResult(
        reviews=reviews,
        highlights=extract_highlights(soup),
        meta_description=_meta(soup, name="description"),
    )


def page_text(html: str) -> str:
    """Visible text of a page, scripts and styles removed."""
    soup = _soup(html)
    for tag in soup(["script", "style"]):
        tag.decompose()
    return _clean(soup.get_text(" "))


async def fetch_html(http: httpx.AsyncClient, url: str) -> Optional[str]:
    """Page HTML, or None on network error, non-2xx or an empty body."""
    t0 = time.perf_counter()
    try:
        resp = await http.get(url, headers=PDP_HEADERS)
    except httpx.HTTPError as e:
        logger.warning("fetch_html failed url=%s err=%s", url, e)
        return None
    if resp.status_code >= 400 or not resp.text:
        logger.warning("fetch_html unusable url=%s status=%s bytes=%s", url, resp.status_code, len(resp.text or ""))
        return None
    logger.debug("fetch_html url=%s status=%s time=%.3fs", url, resp.status_code, time.perf_counter() - t0)
    return resp.text


async def scrape_pdp(http: httpx.AsyncClient, url: str) -> Optional[ScrapeResult]:
    html = await fetch_html(http, url)
    if html is None:
        return None
    try:
        result = parse_pdp(html)
    except Exception as e:
        logger.warning("scrape_pdp parse failed url=%s err=%s", url, e)
        return None
    logger.info(
        "scrape_pdp url=%s reviews=%s highlights=%s meta_desc=%s",
        url, len(result.reviews), len(result.highlights), bool(result.meta_description),
    )
    return result


async def scrape_details(http: httpx.AsyncClient, url: str) -> ProductDetails:
    """Lightweight card data from Open Graph / Twitter meta tags and a first price in the text."""
    html = await fetch_html(http, url)
    if html is None:
        return ProductDetails(url=url)

    soup = _soup(html)
    title = _meta(soup, prop="og:title") or _meta(soup, name="twitter:title")
    image = _meta(soup, prop="og:image") or _meta(soup, name="twitter:image")
    m = _PRICE_RE.search(page_text(html))
    return ProductDetails(
        url=url,
        title=title or "Product",
        image_url=image or None,
        price=m.group(0) if m else PRICE_VARIES,
    )
