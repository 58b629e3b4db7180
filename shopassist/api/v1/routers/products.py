# shopassist/api/v1/routers/products.py
import logging
import time

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from shopassist.api.deps import enrichment_dep, http_dep, redis_dep, settings_dep, summarizer_dep
from shopassist.api.v1.schemas.shopping import EnrichOut, SummarizeIn, UrlIn
from shopassist.domain.models.product import ProductDetails, ProductSummary
from shopassist.domain.services.enrichment_svc import enrich_product_cached
from shopassist.domain.services.scrape_svc import scrape_details
from shopassist.domain.services.summary_svc import summarize_product
from shopassist.domain.services.variant_svc import build_option_groups, initial_selection
from shopassist.utils.urls import is_http_url

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["products"])


def _bad_url(message: str = "Missing url") -> JSONResponse:
    return JSONResponse(status_code=400, content={"ok": False, "error": message})


@router.post("/enrich", response_model=EnrichOut)
async def enrich_product(
    body: UrlIn,
    http=Depends(http_dep),
    redis=Depends(redis_dep),
    settings=Depends(settings_dep),
    pipeline=Depends(enrichment_dep),
):
    """
    Full product detail for one URL: catalog lookup → page scrape → generative fallbacks.
    ok=false only when the URL itself is missing or invalid.
    """
    if not body.url:
        return _bad_url()
    if not is_http_url(body.url):
        return _bad_url("Invalid url")

    logger.info("Request: enrich url=%s", body.url)
    start_time = time.perf_counter()

    enriched = await enrich_product_cached(http, redis, settings, url=body.url, pipeline=pipeline)
    selected, selected_options = initial_selection(enriched.variants)

    logger.info(
        "Response: enrich url=%s variants=%s reviews=%s elapsed_time=%.4fs",
        body.url, len(enriched.variants), len(enriched.reviews), time.perf_counter() - start_time,
    )
    return EnrichOut(
        ok=True,
        enriched=enriched,
        option_groups=build_option_groups(enriched.variants),
        selected_variant=selected,
        selected_options=selected_options if selected and selected.selectable else {},
    )


@router.post("/details", response_model=ProductDetails)
async def product_details(body: UrlIn, http=Depends(http_dep)):
    """Quick card data scraped from the product page meta tags."""
    if not is_http_url(body.url):
        return _bad_url("Invalid url")
    return await scrape_details(http, body.url)


@router.post("/summarize", response_model=ProductSummary)
async def summarize(
    body: SummarizeIn,
    http=Depends(http_dep),
    settings=Depends(settings_dep),
    summarizer=Depends(summarizer_dep),
):
    """Buy-now summary (pros, cons, sentiment) from the product page and known review sources."""
    if not is_http_url(body.url):
        return _bad_url("Invalid url")
    return await summarize_product(
        http, summarizer, url=body.url, name=body.name, review_sources=settings.REVIEW_SOURCES
    )
