# shopassist/domain/services/catalog_svc.py
"""
Structured catalog lookup (first enrichment stage).

URL -> catalog product id (requestProductByURL) -> full detail (productByID).
Any failure is logged and reported as "nothing found"; it never reaches the caller.
"""
from __future__ import annotations

import json
import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from shopassist.core.config import Settings
from shopassist.domain.errors import CatalogError
from shopassist.domain.models.product import PRICE_VARIES, Review
from shopassist.domain.services.constants import MARKETPLACE_AMAZON, MARKETPLACE_SHOPIFY
from shopassist.domain.services.variant_svc import normalize_variants
from shopassist.utils.urls import catalog_lookup_url, is_marketplace_url, upgrade_image_url

logger = logging.getLogger(__name__)

REQUEST_PRODUCT_BY_URL = """
mutation RequestProductByURL($input: RequestProductByURLInput!) {
  requestProductByURL(input: $input) {
    __typename
    product { __typename id title url }
  }
}
"""

PRODUCT_BY_ID = """
query ProductByID($id: ID!, $marketplace: Marketplace!) {
  productByID(id: $id, marketplace: $marketplace) {
    __typename
    id
    marketplace
    title
    description
    images { url }
    price { displayValue currency }
    vendor
    variants { __typename id title }
  }
}
"""


def _catalog_reviews(raw_reviews: Any) -> List[Review]:
    """Catalog reviews come as plain strings or as {rating, title, text|body} objects."""
    out: List[Review] = []
    for r in raw_reviews if isinstance(raw_reviews, list) else []:
        if isinstance(r, str):
            r = {"text": r}
        if not isinstance(r, dict):
            continue
        text = str(r.get("text") or r.get("body") or r.get("content") or "").strip()
        if not text:
            continue
        try:
            rating = float(r["rating"]) if r.get("rating") is not None else None
        except (TypeError, ValueError):
            rating = None
        out.append(Review(rating=rating, title=str(r.get("title") or ""), text=text))
    return out


def classify_marketplace(url: str) -> str:
    return MARKETPLACE_AMAZON if is_marketplace_url(url) else MARKETPLACE_SHOPIFY


def normalize_catalog_product(raw: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Map a productByID payload onto EnrichedProduct field names.
    Only fields the catalog actually provided are returned.
    """
    if not raw:
        return {}

    price_obj = raw.get("price")
    if isinstance(price_obj, dict):
        price = price_obj.get("displayValue") or PRICE_VARIES
        currency = price_obj.get("currency") or "USD"
    else:
        price = str(price_obj) if price_obj else PRICE_VARIES
        currency = "USD"

    images = []
    for img in raw.get("images") or []:
        src = img.get("url") if isinstance(img, dict) else img
        if src:
            images.append(upgrade_image_url(src))

    marketplace = raw.get("marketplace")
    source_kind = "marketplace" if marketplace == MARKETPLACE_AMAZON else "storefront"
    variants = normalize_variants(
        raw.get("variants") or [],
        source_kind=source_kind,
        default_price=price,
        default_currency=currency,
    )

    out: Dict[str, Any] = {
        "brand": raw.get("brand") or raw.get("vendor") or "",
        "title": raw.get("title") or "",
        "description": raw.get("description") or "",
        "images": images,
        "variants": variants,
        "marketplace": marketplace,
        "merchant_domain": raw.get("merchantDomain"),
        "reviews": _catalog_reviews(raw.get("reviews")),
        "sentiment": raw.get("sentiment") if isinstance(raw.get("sentiment"), dict) else None,
    }
    if price != PRICE_VARIES:
        out["price"] = price
        out["currency_code"] = currency
    if isinstance(raw.get("highlights"), list):
        out["highlights"] = [h for h in raw["highlights"] if isinstance(h, str) and h.strip()]
    return out


class CatalogClient:
    """Thin GraphQL client for the structured product catalog."""

    def __init__(self, http: httpx.AsyncClient, settings: Settings):
        self.http = http
        self.settings = settings

    def _headers(self) -> Dict[str, str]:
        key = self.settings.RYE_GRAPHQL_API_KEY
        if not key:
            raise CatalogError("Missing RYE_GRAPHQL_API_KEY")
        scheme = "Bearer" if self.settings.RYE_GRAPHQL_AUTH_MODE == "bearer" else "Basic"
        headers = {"Authorization": f"{scheme} {key}", "Content-Type": "application/json"}
        if self.settings.RYE_SHOPPER_IP:
            headers["Rye-Shopper-IP"] = self.settings.RYE_SHOPPER_IP
        return headers

    async def graphql(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        endpoint = self.settings.RYE_GRAPHQL_API_BASE.rstrip("/")
        t0 = time.perf_counter()
        resp = await self.http.post(endpoint, json={"query": query, "variables": variables}, headers=self._headers())
        try:
            body = resp.json()
        except json.JSONDecodeError as e:
            raise CatalogError(
                f"Non-JSON response ({resp.status_code})",
                {"preview": resp.text[:800]},
            ) from e
        if not isinstance(body, dict):
            raise CatalogError(f"Unexpected GraphQL payload ({resp.status_code})")

        if body.get("errors"):
            msg = " | ".join(str(e.get("message")) for e in body["errors"] if isinstance(e, dict))
            raise CatalogError(msg or "GraphQL error", {"errors": body["errors"]})
        if resp.status_code >= 400:
            raise CatalogError(body.get("error") or f"GraphQL error ({resp.status_code})")

        logger.debug("catalog graphql status=%s time=%.3fs", resp.status_code, time.perf_counter() - t0)
        return body.get("data") or {}

    async def product_by_id(self, product_id: str, marketplace: str) -> Optional[Dict[str, Any]]:
        data = await self.graphql(PRODUCT_BY_ID, {"id": product_id, "marketplace": marketplace})
        return data.get("productByID")

    async def lookup(self, url: str) -> Dict[str, Any]:
        """
        Full structured detail for a product URL, normalized to EnrichedProduct fields.
        Returns {} on any failure.
        """
        clean = catalog_lookup_url(url)
        marketplace = classify_marketplace(clean)
        try:
            data = await self.graphql(REQUEST_PRODUCT_BY_URL, {"input": {"url": clean, "marketplace": marketplace}})
            product_id = (((data.get("requestProductByURL") or {}).get("product")) or {}).get("id")
            if not product_id:
                logger.info("catalog lookup: no product id for url=%s marketplace=%s", clean, marketplace)
                return {}
            raw = await self.product_by_id(product_id, marketplace)
        except (CatalogError, httpx.HTTPError) as e:
            logger.warning("catalog lookup failed url=%s err=%s", clean, e)
            return {}

        normalized = normalize_catalog_product(raw)
        logger.info(
            "catalog lookup ok url=%s marketplace=%s title=%r variants=%s",
            clean, marketplace, normalized.get("title"), len(normalized.get("variants") or []),
        )
        return normalized
