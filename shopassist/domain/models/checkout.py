from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

# Provider field names, in the order they are validated.
REQUIRED_BUYER_FIELDS = (
    "firstName",
    "lastName",
    "email",
    "phone",
    "address1",
    "city",
    "province",
    "country",
    "postalCode",
)


class IntentState(str, Enum):
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    PLACING_ORDER = "placing_order"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATES = frozenset({IntentState.COMPLETED.value, IntentState.FAILED.value})


class Buyer(BaseModel):
    """Buyer contact/address. Serialized with provider (camelCase) names."""
    first_name: str = Field(alias="firstName")
    last_name: str = Field(alias="lastName")
    email: str
    phone: str
    address1: str
    address2: Optional[str] = None
    city: str
    province: str
    country: str = "US"
    postal_code: str = Field(alias="postalCode")

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class SelectedOption(BaseModel):
    name: str
    value: str


class CreateIntentRequest(BaseModel):
    buyer: Buyer
    product_url: str = Field(alias="productUrl")
    quantity: int = Field(1, ge=1)
    variant_id: Optional[str] = Field(default=None, alias="variantId")
    selected_options: Optional[List[SelectedOption]] = Field(default=None, alias="selectedOptions")

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    def provider_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class CheckoutIntent(BaseModel):
    """Snapshot of the provider's intent. Unknown provider fields are kept."""
    id: str
    state: str
    offer: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(extra="allow", frozen=True)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def has_offer(self) -> bool:
        return bool(self.offer)

    @classmethod
    def from_provider(cls, body: Dict[str, Any]) -> "CheckoutIntent":
        # the provider may wrap the intent as {"checkoutIntent": {...}}
        if isinstance(body, dict) and isinstance(body.get("checkoutIntent"), dict):
            body = body["checkoutIntent"]
        return cls.model_validate(body)
