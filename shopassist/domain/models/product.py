from pydantic import BaseModel, Field
from typing import Optional, List, Literal

SourceKind = Literal["marketplace", "storefront"]

PRICE_VARIES = "Varies"


class Product(BaseModel):
    """Search hit from one catalog adapter. Identity is the canonical `url`."""
    source_id: str
    name: str
    price: str = PRICE_VARIES
    currency: Optional[str] = None
    image_url: Optional[str] = None
    url: str = ""
    merchant_domain: Optional[str] = None
    rating: Optional[str] = None
    reason: Optional[str] = None

    model_config = {"frozen": True}


class SearchResult(BaseModel):
    products: List[Product] = Field(default_factory=list)
    message: Optional[str] = None
    model_config = {"frozen": True}


class VariantOption(BaseModel):
    name: str
    value: str
    model_config = {"frozen": True}


class Variant(BaseModel):
    id: str
    title: str = "Default"
    options: List[VariantOption] = Field(default_factory=list)
    available: bool = True
    price: Optional[str] = None
    currency_code: Optional[str] = None
    source_kind: SourceKind = "storefront"

    model_config = {"frozen": True}

    @property
    def selectable(self) -> bool:
        # marketplace variants are separate listings, not attribute combinations
        return self.source_kind == "storefront"


class Review(BaseModel):
    rating: Optional[float] = None
    title: str = ""
    text: str
    model_config = {"frozen": True}


class SentimentPct(BaseModel):
    positive: float = Field(0, ge=0, le=100)
    neutral: float = Field(0, ge=0, le=100)
    negative: float = Field(0, ge=0, le=100)
    model_config = {"frozen": True}


class EnrichedProduct(BaseModel):
    brand: str = ""
    title: str
    description: str = ""
    images: List[str] = Field(default_factory=list)
    price: str = PRICE_VARIES
    currency_code: str = "USD"
    variants: List[Variant] = Field(default_factory=list)
    highlights: List[str] = Field(default_factory=list)
    reviews: List[Review] = Field(default_factory=list)
    review_summary: Optional[str] = None
    likes: List[str] = Field(default_factory=list)
    dislikes: List[str] = Field(default_factory=list)
    sentiment: Optional[dict] = None
    sentiment_pct: Optional[SentimentPct] = None
    marketplace: Optional[str] = None
    merchant_domain: Optional[str] = None

    model_config = {"frozen": True}


class ProductDetails(BaseModel):
    url: str
    title: str = "Product"
    image_url: Optional[str] = None
    price: str = PRICE_VARIES
    variants: List[Variant] = Field(default_factory=list)
    model_config = {"frozen": True}


class ProductSummary(BaseModel):
    title: str
    summary: str
    pros: List[str] = Field(default_factory=list)
    cons: List[str] = Field(default_factory=list)
    sentiment: SentimentPct = Field(default_factory=lambda: SentimentPct(neutral=100))
    sources: List[str] = Field(default_factory=list)
    model_config = {"frozen": True}
