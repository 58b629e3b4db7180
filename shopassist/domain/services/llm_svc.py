# shopassist/domain/services/llm_svc.py
from __future__ import annotations

import json
import logging
import re
from time import monotonic as _now
from typing import Any, Dict, List, Optional, Type, TypeVar

from openai import AsyncOpenAI
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from shopassist.core.config import Settings
from shopassist.domain.models.product import Review, SentimentPct
from shopassist.domain.services.constants import (
    HIGHLIGHTS_INPUT_CHARS,
    HIGHLIGHTS_MAX,
    HIGHLIGHTS_MIN,
    HIGHLIGHTS_REVIEW_TEXTS,
    SUMMARY_INPUT_CHARS,
    SUMMARY_REVIEW_TEXTS,
)
from shopassist.domain.services.prompts import (
    HIGHLIGHTS,
    PRODUCT_SUMMARY,
    REVIEW_SUMMARY,
    system_prompt,
    user_task,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 400

M = TypeVar("M", bound=BaseModel)

# =============================================================================
#                               VALIDATION SCHEMA
# =============================================================================

class HighlightsResponse(BaseModel):
    highlights: List[str] = Field(..., min_length=HIGHLIGHTS_MIN)  # extra bullets are trimmed, not rejected


class ReviewSummaryResponse(BaseModel):
    review_summary: str = Field(..., min_length=1, alias="reviewSummary")
    likes: List[str] = Field(default_factory=list)
    dislikes: List[str] = Field(default_factory=list)
    sentiment_pct: Optional[SentimentPct] = Field(default=None, alias="sentimentPct")

    model_config = ConfigDict(populate_by_name=True)


class ProductSummaryResponse(BaseModel):
    title: str
    summary: str
    pros: List[str] = Field(default_factory=list)
    cons: List[str] = Field(default_factory=list)
    sentiment: SentimentPct = Field(default_factory=SentimentPct)
    sources: List[str] = Field(default_factory=list)


# Regex to strip code fences (``` or ```json) from LLM output
_CODE_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.MULTILINE)


def _strip_fences(s: str) -> str:
    return _CODE_FENCE_RE.sub("", s).strip()


def parse_and_validate(json_text: str, schema: Type[M]) -> M:
    """
    Parse model output and validate it against `schema`.
    Raises ValueError on any issue; nothing partial is ever returned.
    """
    try:
        parsed = json.loads(_strip_fences(json_text or ""))
        return schema.model_validate(parsed)
    except (json.JSONDecodeError, ValidationError) as e:
        raise ValueError(f"Invalid LLM JSON: {e}") from e


def _review_texts(reviews: List[Review], limit: int) -> List[str]:
    return [r.text for r in reviews[:limit] if r.text]


# =============================================================================
#                               LLM CALL + RETRY
# =============================================================================

class Summarizer:
    """
    Generative fallbacks of the enrichment waterfall (and the product summary endpoint).
    Every public method returns None when the model is unavailable or its output does
    not validate.
    """

    def __init__(self, settings: Settings, client: Optional[AsyncOpenAI] = None, *, max_retries: int = 1):
        self.settings = settings
        self.model = settings.OPENAI_SUMMARY_MODEL
        self.timeout_s = settings.openai_timeout_s
        self.max_retries = max_retries
        self._client = client

    @property
    def available(self) -> bool:
        return self._client is not None or bool(self.settings.OPENAI_API_KEY)

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.settings.OPENAI_API_KEY)
        return self._client

    async def _call_llm(self, messages: List[dict], temperature: float) -> str:
        t0 = _now()
        resp = await self._get_client().chat.completions.create(
            model=self.model,
            messages=messages,
            max_tokens=DEFAULT_MAX_TOKENS,
            temperature=temperature,
            timeout=self.timeout_s,
            response_format={"type": "json_object"},
        )
        dt = _now() - t0
        u = getattr(resp, "usage", None)
        logger.info(
            "LLM call model=%s duration=%.3fs tokens(prompt=%s, completion=%s)",
            getattr(resp, "model", self.model), dt,
            getattr(u, "prompt_tokens", None), getattr(u, "completion_tokens", None),
        )
        return resp.choices[0].message.content or ""

    async def _ask(self, kind: str, payload: Dict[str, Any], schema: Type[M], *, temperature: float) -> Optional[M]:
        """
        Ask for JSON and validate strictly. On a validation error, retry with the
        JSON Schema spelled out. Returns None once retries are exhausted.
        """
        if not self.available:
            logger.info("LLM %s skipped: no OPENAI_API_KEY", kind)
            return None

        messages = [
            {"role": "system", "content": system_prompt(kind)},
            {"role": "user", "content": json.dumps({**payload, "task": user_task(kind)}, ensure_ascii=False)},
        ]
        for attempt in range(self.max_retries + 1):
            try:
                content = await self._call_llm(messages, temperature)
            except Exception as e:
                logger.warning("LLM %s call failed: %s", kind, e)
                return None
            try:
                return parse_and_validate(content, schema)
            except ValueError as e:
                logger.warning("LLM %s output rejected (attempt %s): %s", kind, attempt + 1, e)
                messages = messages + [
                    {"role": "assistant", "content": content},
                    {"role": "user", "content": (
                        f"Validation error was:\n{e}\n\n"
                        "Return ONLY JSON matching this JSON Schema exactly, no prose, no code fences:\n"
                        f"{json.dumps(schema.model_json_schema())}"
                    )},
                ]
        return None

    # ------------------------------------------------------------------ #

    async def generate_highlights(self, *, title: str, description: str, reviews: List[Review]) -> Optional[List[str]]:
        base_text = "\n\n".join(
            t for t in [title, description, *_review_texts(reviews, HIGHLIGHTS_REVIEW_TEXTS)] if t
        )[:HIGHLIGHTS_INPUT_CHARS]
        if not base_text:
            return None
        res = await self._ask(HIGHLIGHTS, {"text": base_text}, HighlightsResponse, temperature=0.3)
        if res is None:
            return None
        bullets = [h.strip() for h in res.highlights if h and h.strip()]
        return bullets[:HIGHLIGHTS_MAX] if len(bullets) >= HIGHLIGHTS_MIN else None

    async def summarize_reviews(self, reviews: List[Review]) -> Optional[ReviewSummaryResponse]:
        blob = "\n\n---\n\n".join(_review_texts(reviews, SUMMARY_REVIEW_TEXTS))[:SUMMARY_INPUT_CHARS]
        if not blob:
            return None
        return await self._ask(REVIEW_SUMMARY, {"reviews": blob}, ReviewSummaryResponse, temperature=0.2)

    async def summarize_product(
        self, *, url: str, name: Optional[str], pdp_text: str, reviews: List[str], sources: List[str]
    ) -> Optional[ProductSummaryResponse]:
        payload = {"url": url, "name": name, "pdp_text": pdp_text, "reviews": reviews, "sources": sources}
        return await self._ask(PRODUCT_SUMMARY, payload, ProductSummaryResponse, temperature=0.2)
