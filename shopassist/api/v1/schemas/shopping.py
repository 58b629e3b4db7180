# shopassist/api/v1/schemas/shopping.py
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from shopassist.domain.models.product import EnrichedProduct, Variant


class SearchIn(BaseModel):
    # blank queries and out-of-range limits are handled in the route, never a 422
    query: str = Field("", description="What the user is shopping for")
    limit: Optional[int] = Field(None, description="Max products (default from settings, capped)")


class UrlIn(BaseModel):
    # validated by hand so a bad URL yields {ok: false} rather than a 422
    url: Optional[str] = None


class SummarizeIn(BaseModel):
    url: Optional[str] = None
    name: Optional[str] = None


class EnrichOut(BaseModel):
    ok: bool
    enriched: Optional[EnrichedProduct] = None
    option_groups: Dict[str, List[str]] = Field(default_factory=dict)
    selected_variant: Optional[Variant] = None
    selected_options: Dict[str, str] = Field(default_factory=dict)
    error: Optional[str] = None


class ConfirmIntentIn(BaseModel):
    checkout_intent_id: Optional[str] = Field(default=None, alias="checkoutIntentId")
    payment_token: Optional[str] = Field(default=None, alias="paymentToken")
    model_config = ConfigDict(populate_by_name=True)


class AwaitIntentIn(BaseModel):
    checkout_intent_id: Optional[str] = Field(default=None, alias="checkoutIntentId")
    stop_on_offer: bool = Field(True, alias="stopOnOffer")
    timeout_s: Optional[float] = Field(default=None, gt=0, le=300, alias="timeoutS")
    model_config = ConfigDict(populate_by_name=True)


class AwaitIntentOut(BaseModel):
    outcome: str
    polls: int
    error: Optional[str] = None
    checkout_intent: Optional[Dict[str, Any]] = Field(default=None, serialization_alias="checkoutIntent")
