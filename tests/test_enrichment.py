# tests/test_enrichment.py
import json
from types import SimpleNamespace

import httpx
import pytest

from shopassist.domain.models.product import Review
from shopassist.domain.services.catalog_svc import normalize_catalog_product
from shopassist.domain.services.enrichment_svc import EnrichmentPipeline, PartialProduct
from shopassist.domain.services.llm_svc import HighlightsResponse, ReviewSummaryResponse, Summarizer, parse_and_validate
from shopassist.domain.services.scrape_svc import parse_pdp

PDP_URL = "https://shop.example.com/products/trail-runner-2"


def pdp_html(n_reviews=0, bullets=()):
    ld = {
        "@context": "https://schema.org",
        "@type": "Product",
        "name": "Trail Runner 2",
        "review": [
            {
                "@type": "Review",
                "name": f"Review {i}",
                "reviewRating": {"ratingValue": 5},
                "reviewBody": f"Great shoe number {i}, very comfortable on long runs.",
            }
            for i in range(n_reviews)
        ],
    }
    items = "".join(f"<li>{b}</li>" for b in bullets)
    return (
        "<html><head>"
        '<meta name="description" content="Scraped meta description">'
        f'<script type="application/ld+json">{json.dumps(ld)}</script>'
        "</head><body>"
        f'<div id="feature-bullets"><ul>{items}</ul></div>'
        "</body></html>"
    )


class FakeCatalog:
    def __init__(self, found=None):
        self.found = found or {}
        self.urls = []

    async def lookup(self, url):
        self.urls.append(url)
        return dict(self.found)


class FakeSummarizer:
    def __init__(self, highlights=None, summary=None):
        self.highlights = highlights
        self.summary = summary
        self.highlight_calls = 0
        self.summary_calls = 0

    async def generate_highlights(self, *, title, description, reviews):
        self.highlight_calls += 1
        return self.highlights

    async def summarize_reviews(self, reviews):
        self.summary_calls += 1
        return self.summary


def _html_http(mock_http, html, status=200):
    return mock_http(lambda request: httpx.Response(status, text=html))


# --- PartialProduct ---------------------------------------------------------

def test_partial_product_is_write_once():
    acc = PartialProduct()

    assert acc.fill("title", "From catalog", "catalog")
    assert not acc.fill("title", "From scrape", "scrape")
    assert not acc.fill("description", "   ", "catalog")
    assert not acc.fill("price", "Varies", "catalog")
    assert acc.fill("price", "$10.00", "scrape")
    assert not acc.fill("reviews", [], "catalog")

    assert acc.get("title") == "From catalog"
    assert acc.provenance == {"title": "catalog", "price": "scrape"}
    product = acc.build()
    assert product.title == "From catalog"
    assert product.price == "$10.00"


def test_partial_product_rejects_unknown_fields():
    with pytest.raises(KeyError):
        PartialProduct().fill("colour", "red", "catalog")


# --- pipeline -----------------------------------------------------------------

async def test_unreachable_host_degrades_to_url_title(unreachable_http, settings):
    pipeline = EnrichmentPipeline(unreachable_http, settings, summarizer=FakeSummarizer())

    product = await pipeline.enrich(PDP_URL)

    assert product.title == "Trail Runner 2"
    assert product.price == "Varies"
    assert product.reviews == []
    assert product.variants == []


async def test_scrape_fills_reviews_missing_from_catalog(mock_http, settings):
    catalog = FakeCatalog({"title": "Trail Runner", "price": "$120.00", "description": "Catalog description"})
    pipeline = EnrichmentPipeline(
        _html_http(mock_http, pdp_html(n_reviews=5)), settings, catalog=catalog, summarizer=FakeSummarizer()
    )

    product = await pipeline.enrich(PDP_URL)

    assert len(product.reviews) == 5
    assert product.reviews[0].rating == 5.0
    assert product.title == "Trail Runner"
    assert product.price == "$120.00"
    assert product.description == "Catalog description"


async def test_scrape_skipped_when_catalog_is_complete(settings):
    calls = []

    def handler(request):
        calls.append(request.url)
        return httpx.Response(200, text=pdp_html(n_reviews=5))

    reviews = [Review(text=f"review {i}") for i in range(3)]
    catalog = FakeCatalog({"title": "Trail Runner", "reviews": reviews, "highlights": ["Light"]})
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    product = await EnrichmentPipeline(http, settings, catalog=catalog, summarizer=FakeSummarizer()).enrich(PDP_URL)

    assert calls == []
    assert len(product.reviews) == 3


async def test_generative_highlights_are_feature_gated(mock_http, make_settings):
    http = _html_http(mock_http, pdp_html(n_reviews=1))

    off = FakeSummarizer(highlights=["a1", "b2", "c3"])
    product = await EnrichmentPipeline(http, make_settings(), catalog=FakeCatalog(), summarizer=off).enrich(PDP_URL)
    assert off.highlight_calls == 0
    assert product.highlights == []

    on = FakeSummarizer(highlights=["Breathable mesh", "Grippy outsole", "Light foam"])
    product = await EnrichmentPipeline(
        http, make_settings(HIGHLIGHTS_ENABLED=True), catalog=FakeCatalog(), summarizer=on
    ).enrich(PDP_URL)
    assert on.highlight_calls == 1
    assert product.highlights == ["Breathable mesh", "Grippy outsole", "Light foam"]


async def test_scraped_highlights_win_over_generative(mock_http, make_settings):
    bullets = ["Breathable engineered mesh upper", "Rock plate for technical trails"]
    summarizer = FakeSummarizer(highlights=["x1", "x2", "x3"])
    pipeline = EnrichmentPipeline(
        _html_http(mock_http, pdp_html(bullets=bullets)),
        make_settings(HIGHLIGHTS_ENABLED=True),
        catalog=FakeCatalog(),
        summarizer=summarizer,
    )

    product = await pipeline.enrich(PDP_URL)

    assert summarizer.highlight_calls == 0
    assert product.highlights == bullets


async def test_review_summary_needs_flag_and_reviews(mock_http, make_settings):
    summary = ReviewSummaryResponse(reviewSummary="Comfortable, runs small.", likes=["comfort"], dislikes=["sizing"])
    summarizer = FakeSummarizer(summary=summary)
    settings = make_settings(REVIEWS_SUMMARY_ENABLED=True)

    no_reviews = await EnrichmentPipeline(
        _html_http(mock_http, pdp_html()), settings, catalog=FakeCatalog(), summarizer=summarizer
    ).enrich(PDP_URL)
    assert summarizer.summary_calls == 0
    assert no_reviews.review_summary is None

    with_reviews = await EnrichmentPipeline(
        _html_http(mock_http, pdp_html(n_reviews=4)), settings, catalog=FakeCatalog(), summarizer=summarizer
    ).enrich(PDP_URL)
    assert summarizer.summary_calls == 1
    assert with_reviews.review_summary == "Comfortable, runs small."
    assert with_reviews.likes == ["comfort"]


# --- LLM output handling ------------------------------------------------------

class FakeCompletions:
    def __init__(self, contents):
        self.contents = list(contents)
        self.calls = 0

    async def create(self, **kwargs):
        self.calls += 1
        content = self.contents.pop(0) if self.contents else "not json"
        return SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
            usage=None,
            model=kwargs.get("model"),
        )


def _fake_openai(contents):
    completions = FakeCompletions(contents)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions


async def test_unparseable_llm_output_leaves_highlights_empty(mock_http, make_settings):
    client, completions = _fake_openai(["Sure! Here are some highlights: fast, light."])
    settings = make_settings(HIGHLIGHTS_ENABLED=True)
    pipeline = EnrichmentPipeline(
        _html_http(mock_http, pdp_html()), settings, catalog=FakeCatalog(), summarizer=Summarizer(settings, client)
    )

    product = await pipeline.enrich(PDP_URL)

    assert product.highlights == []
    assert completions.calls == 2  # first answer + one schema retry


async def test_llm_retry_recovers_and_trims_extra_bullets(make_settings):
    good = json.dumps({"highlights": ["one bullet", "two bullet", "three bullet", "four", "five", "six"]})
    client, completions = _fake_openai(["{oops", good])

    bullets = await Summarizer(make_settings(), client).generate_highlights(
        title="Trail Runner", description="A shoe", reviews=[]
    )

    assert completions.calls == 2
    assert bullets == ["one bullet", "two bullet", "three bullet", "four", "five"]


def test_parse_and_validate_strips_code_fences():
    res = parse_and_validate('```json\n{"highlights": ["a", "b", "c"]}\n```', HighlightsResponse)
    assert res.highlights == ["a", "b", "c"]
    with pytest.raises(ValueError):
        parse_and_validate('{"highlights": ["only one"]}', HighlightsResponse)


# --- page parsing -------------------------------------------------------------

def test_parse_pdp_falls_back_to_review_app_widgets():
    html = (
        "<html><body>"
        '<div class="jdgm-rev__body">Fits true to size and the cushioning is great.</div>'
        '<div data-review-content="Second pair I have bought, still love them."></div>'
        '<div class="spr-review-content">meh</div>'
        '<div class="product__description"><ul><li>Recycled polyester upper</li><li>ok</li></ul></div>'
        "</body></html>"
    )

    res = parse_pdp(html)

    assert [r.text for r in res.reviews] == [
        "Second pair I have bought, still love them.",
        "Fits true to size and the cushioning is great.",
    ]
    assert res.highlights == ["Recycled polyester upper"]


# --- catalog normalization ----------------------------------------------------

def test_catalog_product_carries_reviews_sentiment_and_merchant():
    raw = {
        "marketplace": "SHOPIFY",
        "title": "Trail Runner",
        "price": {"displayValue": "$120.00", "currency": "USD"},
        "merchantDomain": "shop.example.com",
        "sentiment": {"positive": 80, "neutral": 15, "negative": 5},
        "reviews": [
            {"rating": "4", "title": "Solid", "text": "Good grip on wet rock."},
            "Runs half a size small.",
            {"rating": 5, "body": ""},
        ],
        "variants": [{"id": "v1", "title": "9 / Black"}],
    }

    found = normalize_catalog_product(raw)

    assert found["merchant_domain"] == "shop.example.com"
    assert found["sentiment"] == {"positive": 80, "neutral": 15, "negative": 5}
    assert [(r.rating, r.text) for r in found["reviews"]] == [
        (4.0, "Good grip on wet rock."),
        (None, "Runs half a size small."),
    ]
    assert found["price"] == "$120.00"


async def test_catalog_reviews_survive_the_scrape(mock_http, settings):
    catalog = FakeCatalog(normalize_catalog_product({
        "title": "Trail Runner",
        "sentiment": {"positive": 90},
        "reviews": ["Great shoe for long runs.", "Comfortable right away."],
    }))
    pipeline = EnrichmentPipeline(
        _html_http(mock_http, pdp_html(n_reviews=5)), settings, catalog=catalog, summarizer=FakeSummarizer()
    )

    product = await pipeline.enrich(PDP_URL)

    assert [r.text for r in product.reviews] == ["Great shoe for long runs.", "Comfortable right away."]
    assert product.sentiment == {"positive": 90}
