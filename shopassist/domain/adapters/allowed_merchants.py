# shopassist/domain/adapters/allowed_merchants.py
import logging
from typing import List, Sequence
from urllib.parse import quote_plus

import httpx

from shopassist.domain.adapters.base import CatalogAdapter
from shopassist.domain.models.product import Product
from shopassist.domain.services.constants import SOURCE_ALLOWED_MERCHANT

logger = logging.getLogger(__name__)


class AllowedMerchantAdapter(CatalogAdapter):
    """
    Routes a query to the allowed merchant domains without fetching anything:
    one domain-scoped search URL per merchant, for the checkout provider to resolve later.
    """

    source_id = SOURCE_ALLOWED_MERCHANT

    def __init__(self, http: httpx.AsyncClient, *, domains: Sequence[str]):
        super().__init__(http)
        self.domains = [d.strip().lower() for d in domains if d and d.strip()]

    async def search(self, query: str, limit: int) -> List[Product]:
        q = quote_plus(query)
        products = [
            Product(
                source_id=self.source_id,
                name="External product",
                url=f"https://{domain}/search?q={q}",
                merchant_domain=domain,
                reason="Supported external merchant.",
            )
            for domain in self.domains[:limit]
        ]
        logger.debug("allowed merchants query=%r n=%s", query, len(products))
        return products
