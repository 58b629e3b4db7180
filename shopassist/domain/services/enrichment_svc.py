# shopassist/domain/services/enrichment_svc.py
"""
Enrichment waterfall for a single product URL.

Stages run strictly in order, each only for the gaps the previous ones left:
  1) structured catalog lookup   (always)
  2) page scrape                 (reviews < 3 or no highlights)
  3) generative fallbacks        (feature-gated: highlights if still empty, review summary)

All stages write through a PartialProduct: the first stage to give a field a non-empty
value owns it, later stages can only fill what is still empty.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from shopassist.core.config import Settings
from shopassist.domain.models.product import PRICE_VARIES, EnrichedProduct
from shopassist.domain.services.catalog_svc import CatalogClient
from shopassist.domain.services.constants import (
    MIN_REVIEWS,
    STAGE_CATALOG,
    STAGE_FALLBACK,
    STAGE_GENERATIVE,
    STAGE_SCRAPE,
)
from shopassist.domain.services.llm_svc import Summarizer
from shopassist.domain.services.scrape_svc import scrape_pdp
from shopassist.utils.cache import cache_get, cache_key, cache_set
from shopassist.utils.urls import canonical_url, guess_title_from_url

logger = logging.getLogger(__name__)

# Values that count as "not resolved yet"
_UNSET_DEFAULTS: Dict[str, Any] = {
    "price": PRICE_VARIES,
}


def _is_empty(field: str, value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    if isinstance(value, (list, dict, tuple)) and len(value) == 0:
        return True
    return field in _UNSET_DEFAULTS and value == _UNSET_DEFAULTS[field]


class PartialProduct:
    """
    Write-once accumulator for EnrichedProduct fields.

    `fill` stores a value only if the field is not resolved yet and the value is
    non-empty; the field is then marked resolved by that stage and never changes again.
    """

    FIELDS = tuple(EnrichedProduct.model_fields)

    def __init__(self):
        self._values: Dict[str, Any] = {}
        self._resolved_by: Dict[str, str] = {}

    def fill(self, field: str, value: Any, stage: str) -> bool:
        if field not in self.FIELDS:
            raise KeyError(f"Unknown EnrichedProduct field: {field}")
        if field in self._resolved_by or _is_empty(field, value):
            return False
        self._values[field] = value
        self._resolved_by[field] = stage
        return True

    def fill_many(self, values: Dict[str, Any], stage: str) -> List[str]:
        return [f for f, v in values.items() if f in self.FIELDS and self.fill(f, v, stage)]

    def get(self, field: str, default: Any = None) -> Any:
        return self._values.get(field, default)

    def is_resolved(self, field: str) -> bool:
        return field in self._resolved_by

    def resolved_by(self, field: str) -> Optional[str]:
        return self._resolved_by.get(field)

    @property
    def provenance(self) -> Dict[str, str]:
        return dict(self._resolved_by)

    def build(self) -> EnrichedProduct:
        return EnrichedProduct(**self._values)


class EnrichmentPipeline:
    """Runs the waterfall for one URL. Holds no per-call state between `enrich` calls."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        settings: Settings,
        *,
        catalog: Optional[CatalogClient] = None,
        summarizer: Optional[Summarizer] = None,
    ):
        self.http = http
        self.settings = settings
        self.catalog = catalog or CatalogClient(http, settings)
        self.summarizer = summarizer or Summarizer(settings)

    # --- stages -----------------------------------------------------------

    async def _stage_catalog(self, url: str, acc: PartialProduct) -> None:
        try:
            found = await self.catalog.lookup(url)
        except Exception as e:
            logger.warning("enrich catalog stage failed url=%s err=%s", url, e)
            return
        filled = acc.fill_many(found, STAGE_CATALOG)
        logger.debug("enrich catalog filled=%s", filled)

    @staticmethod
    def needs_scrape(acc: PartialProduct) -> bool:
        return len(acc.get("reviews") or []) < MIN_REVIEWS or not acc.get("highlights")

    async def _stage_scrape(self, url: str, acc: PartialProduct) -> None:
        scraped = await scrape_pdp(self.http, url)
        if scraped is None:
            return
        filled = acc.fill_many(
            {
                "reviews": scraped.reviews,
                "highlights": scraped.highlights,
                "description": scraped.meta_description,
            },
            STAGE_SCRAPE,
        )
        logger.debug("enrich scrape filled=%s", filled)

    async def _stage_generative(self, acc: PartialProduct) -> None:
        if self.settings.HIGHLIGHTS_ENABLED and not acc.is_resolved("highlights"):
            bullets = await self.summarizer.generate_highlights(
                title=acc.get("title", ""),
                description=acc.get("description", ""),
                reviews=acc.get("reviews") or [],
            )
            if bullets:
                acc.fill("highlights", bullets, STAGE_GENERATIVE)

        reviews = acc.get("reviews") or []
        if self.settings.REVIEWS_SUMMARY_ENABLED and reviews:
            summary = await self.summarizer.summarize_reviews(reviews)
            if summary is not None:
                acc.fill_many(
                    {
                        "review_summary": summary.review_summary,
                        "likes": summary.likes,
                        "dislikes": summary.dislikes,
                        "sentiment_pct": summary.sentiment_pct,
                    },
                    STAGE_GENERATIVE,
                )

    # --- public -----------------------------------------------------------

    async def enrich(self, url: str) -> EnrichedProduct:
        """Best-effort enrichment; always returns a well-formed product."""
        t0 = time.perf_counter()
        acc = PartialProduct()

        await self._stage_catalog(url, acc)

        if self.needs_scrape(acc):
            await self._stage_scrape(url, acc)

        await self._stage_generative(acc)

        # last resort: URL-derived title; price stays "Varies" unless a stage set it
        acc.fill("title", guess_title_from_url(url), STAGE_FALLBACK)

        product = acc.build()
        logger.info(
            "enrich done url=%s provenance=%s reviews=%s highlights=%s total_time=%.3fs",
            url, acc.provenance, len(product.reviews), len(product.highlights), time.perf_counter() - t0,
        )
        return product


async def enrich_product_cached(
    http: httpx.AsyncClient,
    redis,
    settings: Settings,
    *,
    url: str,
    pipeline: Optional[EnrichmentPipeline] = None,
) -> EnrichedProduct:
    """Enrichment cached for a day per canonical URL (Redis optional)."""
    key = cache_key("enrich", url=canonical_url(url))
    cached = await cache_get(redis, key)
    if cached is not None:
        try:
            product = EnrichedProduct.model_validate(cached)
            logger.info("enrich cache_hit key=%s", key)
            return product
        except Exception as e:
            logger.warning("enrich cache entry unreadable key=%s err=%s", key, e)

    pipeline = pipeline or EnrichmentPipeline(http, settings)
    product = await pipeline.enrich(url)
    await cache_set(redis, key, product.model_dump(mode="json"), ex=settings.enrich_cache_ttl)
    return product
