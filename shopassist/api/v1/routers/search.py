# shopassist/api/v1/routers/search.py
import logging
import time

from fastapi import APIRouter, Depends

from shopassist.api.deps import http_dep, redis_dep, settings_dep
from shopassist.api.v1.schemas.shopping import SearchIn
from shopassist.domain.models.product import SearchResult
from shopassist.domain.services.constants import MAX_SEARCH_LIMIT
from shopassist.domain.services.search_svc import search_products_cached

logger = logging.getLogger(__name__)

router = APIRouter(tags=["search"])

EMPTY_QUERY_MESSAGE = "Tell me what you're shopping for"


@router.post("/search", response_model=SearchResult)
async def search_products(
    body: SearchIn,
    http=Depends(http_dep),
    redis=Depends(redis_dep),
    settings=Depends(settings_dep),
) -> SearchResult:
    """
    Search the internal storefront and allowed external merchants.
    Always 200: upstream failures show up as fewer (or zero) products plus a message.
    """
    query = body.query.strip()
    if not query:
        return SearchResult(products=[], message=EMPTY_QUERY_MESSAGE)
    limit = min(max(body.limit or settings.search_default_limit, 1), MAX_SEARCH_LIMIT)

    logger.info("Request: search query=%r limit=%s", query, limit)
    start_time = time.perf_counter()

    res = await search_products_cached(http, redis, settings, query=query, limit=limit)

    logger.info(
        "Response: search query=%r count=%s elapsed_time=%.4fs",
        query, len(res.products), time.perf_counter() - start_time,
    )
    return res
