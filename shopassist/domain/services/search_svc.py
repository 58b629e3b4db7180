# shopassist/domain/services/search_svc.py
import asyncio
import logging
import time
from typing import List, Optional, Sequence

import httpx

from shopassist.core.config import Settings
from shopassist.domain.adapters.allowed_merchants import AllowedMerchantAdapter
from shopassist.domain.adapters.base import CatalogAdapter
from shopassist.domain.adapters.marketplace import MarketplaceAdapter
from shopassist.domain.adapters.storefront import StorefrontAdapter
from shopassist.domain.models.product import Product, SearchResult
from shopassist.domain.services.constants import DEFAULT_SEARCH_LIMIT
from shopassist.utils.cache import cache_get, cache_key, cache_set

logger = logging.getLogger(__name__)


def merge_results(results: Sequence[List[Product]]) -> List[Product]:
    """
    Concatenate adapter results in priority order, dropping repeated URLs.
    First seen wins; products without a URL are never treated as duplicates.
    """
    seen = set()
    merged: List[Product] = []
    for products in results:
        for p in products:
            if p.url:
                if p.url in seen:
                    continue
                seen.add(p.url)
            merged.append(p)
    return merged


class SearchAggregator:
    """
    Fans a query out to every catalog adapter concurrently and merges the answers.
    `adapters` order is the merge priority.
    """

    def __init__(self, adapters: Sequence[CatalogAdapter], *, adapter_timeout_s: Optional[float] = 2.5):
        self.adapters = list(adapters)
        self.adapter_timeout_s = adapter_timeout_s

    async def _run_adapter(self, adapter: CatalogAdapter, query: str, limit: int) -> List[Product]:
        t0 = time.perf_counter()
        try:
            if self.adapter_timeout_s:
                products = await asyncio.wait_for(adapter.search(query, limit), timeout=self.adapter_timeout_s)
            else:
                products = await adapter.search(query, limit)
        except asyncio.TimeoutError:
            logger.warning("search adapter=%s timed out after %.1fs", adapter.source_id, self.adapter_timeout_s)
            return []
        except Exception as e:
            logger.warning("search adapter=%s failed: %s", adapter.source_id, e)
            return []
        logger.debug("search adapter=%s n=%s time=%.3fs", adapter.source_id, len(products or []), time.perf_counter() - t0)
        return list(products or [])

    async def search(self, query: str, limit: int = DEFAULT_SEARCH_LIMIT) -> SearchResult:
        t0 = time.perf_counter()
        results = await asyncio.gather(*(self._run_adapter(a, query, limit) for a in self.adapters))
        products = merge_results(results)[:limit]

        logger.info(
            "search query=%r per_adapter=%s merged=%s total_time=%.3fs",
            query, {a.source_id: len(r) for a, r in zip(self.adapters, results)}, len(products), time.perf_counter() - t0,
        )
        if not products:
            return SearchResult(products=[], message=f'No products found for "{query}"')
        return SearchResult(products=products)


def build_default_adapters(http: httpx.AsyncClient, settings: Settings) -> List[CatalogAdapter]:
    # priority order: internal storefront, marketplace, other allowed merchants
    return [
        StorefrontAdapter(http, endpoint=settings.SHOPIFY_STOREFRONT_URL, token=settings.SHOPIFY_STOREFRONT_TOKEN),
        MarketplaceAdapter(http),
        AllowedMerchantAdapter(http, domains=settings.ALLOWED_MERCHANT_DOMAINS),
    ]


async def search_products_cached(
    http: httpx.AsyncClient,
    redis,
    settings: Settings,
    *,
    query: str,
    limit: int,
) -> SearchResult:
    """Aggregated search with a short-lived Redis cache keyed on (query, limit)."""
    key = cache_key("search", q=query.strip().lower(), limit=limit)
    cached = await cache_get(redis, key)
    if cached is not None:
        try:
            result = SearchResult.model_validate(cached)
            logger.info("search cache_hit key=%s items=%s", key, len(result.products))
            return result
        except Exception as e:
            logger.warning("search cache entry unreadable key=%s err=%s", key, e)

    aggregator = SearchAggregator(build_default_adapters(http, settings), adapter_timeout_s=settings.adapter_timeout_s)
    result = await aggregator.search(query, limit)
    if result.products:
        await cache_set(redis, key, result.model_dump(), ex=settings.search_cache_ttl)
    return result
