# shopassist/domain/adapters/storefront.py
import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from shopassist.domain.adapters.base import CatalogAdapter
from shopassist.domain.models.product import Product
from shopassist.domain.services.constants import SOURCE_STOREFRONT
from shopassist.utils.urls import canonical_url, merchant_domain

logger = logging.getLogger(__name__)

SEARCH_PRODUCTS_GQL = """
query SearchProducts($query: String!, $first: Int!) {
  products(first: $first, query: $query) {
    edges {
      node {
        title
        onlineStoreUrl
        featuredImage { url }
        priceRange {
          minVariantPrice { amount currencyCode }
        }
      }
    }
  }
}
"""


def _node_to_product(node: Dict[str, Any]) -> Optional[Product]:
    title = node.get("title")
    if not title:
        return None
    money = ((node.get("priceRange") or {}).get("minVariantPrice") or {})
    try:
        price = f"${float(money.get('amount')):.2f}"
    except (TypeError, ValueError):
        price = "Varies"
    url = node.get("onlineStoreUrl") or ""
    return Product(
        source_id=SOURCE_STOREFRONT,
        name=title,
        price=price,
        currency=money.get("currencyCode"),
        image_url=(node.get("featuredImage") or {}).get("url"),
        url=canonical_url(url) if url else "",
        merchant_domain=merchant_domain(url) if url else None,
    )


class StorefrontAdapter(CatalogAdapter):
    """Internal storefront via the Shopify Storefront GraphQL API."""

    source_id = SOURCE_STOREFRONT

    def __init__(self, http: httpx.AsyncClient, *, endpoint: Optional[str], token: Optional[str]):
        super().__init__(http)
        self.endpoint = endpoint
        self.token = token

    async def search(self, query: str, limit: int) -> List[Product]:
        if not self.endpoint or not self.token:
            logger.warning("storefront search skipped: missing SHOPIFY_STOREFRONT_URL or SHOPIFY_STOREFRONT_TOKEN")
            return []

        t0 = time.perf_counter()
        resp = await self.http.post(
            self.endpoint,
            json={"query": SEARCH_PRODUCTS_GQL, "variables": {"query": query, "first": limit}},
            headers={"X-Shopify-Storefront-Access-Token": self.token},
        )
        resp.raise_for_status()
        data = resp.json()

        edges = (((data or {}).get("data") or {}).get("products") or {}).get("edges") or []
        products = [p for p in (_node_to_product(e.get("node") or {}) for e in edges) if p]
        logger.info("storefront search query=%r n=%s time=%.3fs", query, len(products), time.perf_counter() - t0)
        return products
