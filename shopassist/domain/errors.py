"""Domain exceptions for the resolution, enrichment and checkout services."""

from typing import Any, Optional


class ShopAssistError(Exception):
    """Base exception carrying a message and a context dict for logs/responses."""

    def __init__(self, message: str, context: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class CatalogError(ShopAssistError):
    """Structured catalog returned GraphQL errors or a non-JSON body."""

    pass


class CheckoutValidationError(ShopAssistError):
    """A required checkout request field is missing. Raised before any upstream call."""

    def __init__(self, field: str, message: Optional[str] = None):
        super().__init__(message or f"Missing required field: {field}", {"field": field})
        self.field = field


class CheckoutStateError(ShopAssistError):
    """Operation not allowed for the intent's current state (e.g. confirm without an offer)."""

    pass


class CheckoutProviderError(ShopAssistError):
    """Checkout provider answered with a non-2xx status or could not be reached."""

    def __init__(self, message: str, status: Optional[int] = None, body: str = ""):
        super().__init__(message, {"upstream_status": status, "upstream_body": body})
        self.status = status
        self.body = body
