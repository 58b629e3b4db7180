# shopassist/domain/services/summary_svc.py
import asyncio
import logging
import re
from typing import Dict, List, Optional

import httpx

from shopassist.domain.models.product import ProductSummary, SentimentPct
from shopassist.domain.services.constants import ALLOWED_REVIEW_DOMAINS, PDP_TEXT_CHARS
from shopassist.domain.services.llm_svc import Summarizer
from shopassist.domain.services.scrape_svc import fetch_html, page_text
from shopassist.utils.urls import merchant_domain

logger = logging.getLogger(__name__)


def pick_review_sources(name: Optional[str], url: str, sources: Dict[str, List[str]]) -> List[str]:
    """Review URLs of the first matching pattern, restricted to allowed review domains."""
    joined = f"{name or ''} {url}"
    for pattern, urls in sources.items():
        try:
            if re.search(pattern, joined, re.IGNORECASE):
                return [
                    u for u in urls
                    if any(merchant_domain(u) == d or merchant_domain(u).endswith("." + d) for d in ALLOWED_REVIEW_DOMAINS)
                ]
        except re.error as e:
            logger.warning("invalid review source pattern %r: %s", pattern, e)
    return []


async def _text_of(http: httpx.AsyncClient, url: str) -> str:
    html = await fetch_html(http, url)
    return page_text(html)[:PDP_TEXT_CHARS] if html else ""


def placeholder_summary(name: Optional[str], sources: List[str]) -> ProductSummary:
    return ProductSummary(
        title=name or "Product highlights",
        summary="We couldn't generate highlights for this item yet.",
        sentiment=SentimentPct(neutral=100),
        sources=sources,
    )


async def summarize_product(
    http: httpx.AsyncClient,
    summarizer: Summarizer,
    *,
    url: str,
    name: Optional[str],
    review_sources: Dict[str, List[str]],
) -> ProductSummary:
    """Buy-now summary from the PDP text plus known review pages; placeholder when the model fails."""
    review_urls = pick_review_sources(name, url, review_sources)
    pdp_text, *review_texts = await asyncio.gather(
        _text_of(http, url), *(_text_of(http, u) for u in review_urls)
    )
    logger.info("summarize url=%s pdp_chars=%s review_pages=%s", url, len(pdp_text), len(review_urls))

    res = await summarizer.summarize_product(
        url=url,
        name=name,
        pdp_text=pdp_text,
        reviews=[t for t in review_texts if t],
        sources=review_urls,
    )
    if res is None:
        return placeholder_summary(name, review_urls)
    return ProductSummary(**res.model_dump())
