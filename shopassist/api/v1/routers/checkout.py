# shopassist/api/v1/routers/checkout.py
import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, Query, Response

from shopassist.api.deps import checkout_client_dep, checkout_flow_dep
from shopassist.api.v1.schemas.shopping import AwaitIntentIn, AwaitIntentOut, ConfirmIntentIn
from shopassist.domain.errors import CheckoutValidationError
from shopassist.domain.services.checkout_flow import CheckoutFlow
from shopassist.domain.services.checkout_svc import CheckoutClient, validate_create_request

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/checkout", tags=["checkout"])


def _verbatim(text: str) -> Response:
    return Response(content=text, status_code=200, media_type="application/json")


@router.post("/create-intent")
async def create_intent(
    body: Dict[str, Any] = Body(...),
    client: CheckoutClient = Depends(checkout_client_dep),
):
    """
    Create a checkout intent for a buyer + product URL.
    Buyer fields are checked before the provider is called; its body is returned verbatim.
    """
    request = validate_create_request(body)
    resp = await client.create_intent(request)
    return _verbatim(resp.text)


@router.post("/confirm-intent")
async def confirm_intent(
    body: ConfirmIntentIn,
    flow: CheckoutFlow = Depends(checkout_flow_dep),
):
    """
    Submit the tokenized payment for an intent whose offer is ready.
    The intent is re-read first: no offer yet, or a settled intent, is a 409.
    """
    if not body.checkout_intent_id or not body.payment_token:
        raise CheckoutValidationError(
            "checkoutIntentId" if not body.checkout_intent_id else "paymentToken",
            "Missing checkoutIntentId or paymentToken",
        )
    await flow.attach(body.checkout_intent_id)
    resp = await flow.confirm(body.payment_token)
    return _verbatim(resp.text)


@router.get("/get-intent")
async def get_intent(
    checkout_intent_id: str = Query("", alias="checkoutIntentId"),
    client: CheckoutClient = Depends(checkout_client_dep),
):
    """Current provider snapshot of an intent."""
    resp = await client.get_intent(checkout_intent_id)
    return _verbatim(resp.text)


@router.post("/await-intent", response_model=AwaitIntentOut, response_model_by_alias=True)
async def await_intent(
    body: AwaitIntentIn,
    flow: CheckoutFlow = Depends(checkout_flow_dep),
) -> AwaitIntentOut:
    """
    Poll an intent server-side until the offer is ready (stopOnOffer), it settles,
    or the timeout ceiling is hit.
    """
    if not body.checkout_intent_id:
        raise CheckoutValidationError("checkoutIntentId", "Missing required parameter: checkoutIntentId")
    if body.timeout_s is not None:
        ceiling = flow.poller.timeout_s
        flow.poller.timeout_s = min(body.timeout_s, ceiling) if ceiling else body.timeout_s

    outcome = await flow.follow(body.checkout_intent_id, stop_on_offer=body.stop_on_offer)
    return AwaitIntentOut(
        outcome=outcome.kind.value,
        polls=outcome.polls,
        error=outcome.error,
        checkout_intent=outcome.intent.model_dump() if outcome.intent else None,
    )
