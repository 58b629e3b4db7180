# shopassist/domain/services/checkout_svc.py
"""
Checkout provider proxy: create / confirm / get a checkout intent.

Request validation happens before any network call. Provider failures are surfaced as
CheckoutProviderError (status + body) and never retried here.
"""
from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import httpx
from pydantic import ValidationError

from shopassist.core.config import Settings
from shopassist.domain.errors import CheckoutProviderError, CheckoutStateError, CheckoutValidationError
from shopassist.domain.models.checkout import (
    REQUIRED_BUYER_FIELDS,
    CheckoutIntent,
    CreateIntentRequest,
    IntentState,
)
from shopassist.utils.urls import is_http_url

logger = logging.getLogger(__name__)

INTENTS_PATH = "/v2/checkout-intents"


@dataclass(frozen=True)
class ProviderResponse:
    """Raw provider answer; `text` is forwarded verbatim to API callers."""
    status: int
    text: str

    def json(self) -> Dict[str, Any]:
        return json.loads(self.text) if self.text else {}

    def intent(self) -> CheckoutIntent:
        """Parsed intent; a body that is not an intent raises CheckoutProviderError."""
        try:
            return CheckoutIntent.from_provider(self.json())
        except (ValueError, ValidationError) as e:
            raise CheckoutProviderError(
                f"Malformed checkout intent payload: {e}", status=self.status, body=self.text
            ) from e


def _missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate_create_request(body: Mapping[str, Any]) -> CreateIntentRequest:
    """
    Check required fields in a fixed order and name the first missing one.
    Raises CheckoutValidationError; never touches the network.
    """
    if not isinstance(body, Mapping):
        raise CheckoutValidationError("body", "Request body must be a JSON object")
    for field in ("buyer", "productUrl", "quantity"):
        if _missing(body.get(field)) or body.get(field) == 0:
            raise CheckoutValidationError(
                field, "Missing required fields: buyer, productUrl, and quantity are required"
            )

    buyer = body["buyer"]
    if not isinstance(buyer, Mapping):
        raise CheckoutValidationError("buyer", "buyer must be an object")
    for field in REQUIRED_BUYER_FIELDS:
        if _missing(buyer.get(field)):
            raise CheckoutValidationError(field, f"Missing required buyer field: {field}")

    if not is_http_url(body.get("productUrl")):
        raise CheckoutValidationError("productUrl", "productUrl must be an http(s) URL")

    try:
        return CreateIntentRequest.model_validate(body)
    except ValidationError as e:
        err = e.errors()[0]
        loc = ".".join(str(p) for p in err.get("loc", ())) or "body"
        raise CheckoutValidationError(loc, f"Invalid field {loc}: {err.get('msg')}") from e


class CheckoutClient:
    """REST client for the checkout provider."""

    def __init__(self, http: httpx.AsyncClient, settings: Settings):
        self.http = http
        self.base = (settings.RYE_API_BASE or "").rstrip("/")
        self.api_key = settings.RYE_SELL_ANYTHING_API_KEY

    async def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> ProviderResponse:
        if not self.base or not self.api_key:
            raise CheckoutProviderError("Missing RYE_API_BASE or RYE_SELL_ANYTHING_API_KEY")

        url = f"{self.base}{path if path.startswith('/') else '/' + path}"
        t0 = time.perf_counter()
        try:
            resp = await self.http.request(
                method,
                url,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"},
            )
        except httpx.HTTPError as e:
            logger.warning("checkout %s %s unreachable: %s", method, path, e)
            raise CheckoutProviderError(f"Checkout provider unreachable: {e}") from e

        dt = time.perf_counter() - t0
        if resp.status_code >= 400:
            logger.warning("checkout %s %s status=%s time=%.3fs body=%s", method, path, resp.status_code, dt, resp.text[:500])
            raise CheckoutProviderError(
                f"Checkout provider error {resp.status_code}: {resp.text}",
                status=resp.status_code,
                body=resp.text,
            )
        logger.info("checkout %s %s status=%s time=%.3fs", method, path, resp.status_code, dt)
        return ProviderResponse(status=resp.status_code, text=resp.text)

    async def create_intent(self, request: CreateIntentRequest) -> ProviderResponse:
        logger.info(
            "checkout create product_url=%s quantity=%s variant_id=%s",
            request.product_url, request.quantity, request.variant_id,
        )
        return await self._request("POST", INTENTS_PATH, request.provider_payload())

    async def confirm_intent(self, intent_id: str, payment_token: str) -> ProviderResponse:
        if _missing(intent_id):
            raise CheckoutValidationError("checkoutIntentId", "Missing checkoutIntentId or paymentToken")
        if _missing(payment_token):
            raise CheckoutValidationError("paymentToken", "Missing checkoutIntentId or paymentToken")
        return await self._request(
            "POST", f"{INTENTS_PATH}/{intent_id}/confirm", {"basisTheoryToken": payment_token}
        )

    async def get_intent(self, intent_id: str) -> ProviderResponse:
        if _missing(intent_id):
            raise CheckoutValidationError("checkoutIntentId", "Missing required parameter: checkoutIntentId")
        return await self._request("GET", f"{INTENTS_PATH}/{intent_id}")

    async def fetch_intent(self, intent_id: str) -> CheckoutIntent:
        resp = await self.get_intent(intent_id)
        return resp.intent()


def ensure_confirmable(intent: CheckoutIntent) -> None:
    """Confirmation is only valid while awaiting confirmation with a computed offer."""
    if intent.state != IntentState.AWAITING_CONFIRMATION.value:
        raise CheckoutStateError(
            f"Intent {intent.id} is {intent.state}, not awaiting_confirmation",
            {"intent_id": intent.id, "state": intent.state},
        )
    if not intent.has_offer:
        raise CheckoutStateError(
            f"Intent {intent.id} has no offer yet", {"intent_id": intent.id, "state": intent.state}
        )
