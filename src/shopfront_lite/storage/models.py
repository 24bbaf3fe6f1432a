"""Pydantic models and enums for catalog, cart, search and checkout."""

import json
from enum import StrEnum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

FLOOR_PRICE_RATIO = 0.7


class SearchSource(StrEnum):
    REMOTE = "remote"
    LOCAL = "local"
    KEYWORD = "keyword-fallback"


class SortOrder(StrEnum):
    RELEVANCE = "relevance"
    PRICE_LOW = "price-low"
    PRICE_HIGH = "price-high"


class CheckoutStatus(StrEnum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class Product(BaseModel):
    """Catalog entry. Immutable once loaded; replaced wholesale on catalog refresh."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str
    description: str = ""
    price: float
    floor_price: float = Field(
        default=0.0, validation_alias=AliasChoices("floor_price", "bottom_price")
    )
    category: str = ""
    image_url: str = ""
    tags: tuple[str, ...] = ()
    embedding: tuple[float, ...] | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, v: Any) -> str:
        return str(v)

    @field_validator("tags", mode="before")
    @classmethod
    def _coerce_tags(cls, v: Any) -> tuple[str, ...]:
        if v is None:
            return ()
        return tuple(str(t) for t in v if t)

    @field_validator("embedding", mode="before")
    @classmethod
    def _parse_embedding(cls, v: Any) -> Any:
        # pgvector columns arrive over REST as "[0.1,0.2,...]". Unusable vectors
        # are dropped so the product itself still loads.
        if isinstance(v, str):
            try:
                v = json.loads(v)
            except ValueError:
                return None
        if v is None:
            return None
        try:
            return tuple(float(x) for x in v)
        except (TypeError, ValueError):
            return None

    @model_validator(mode="before")
    @classmethod
    def _default_floor(cls, data: Any) -> Any:
        # Rows without a floor price negotiate down to 70% of list price.
        if isinstance(data, dict):
            floor = data.get("floor_price", data.get("bottom_price"))
            if not floor and data.get("price") is not None:
                data = {**data, "floor_price": float(data["price"]) * FLOOR_PRICE_RATIO}
                data.pop("bottom_price", None)
        return data

    @property
    def searchable_text(self) -> str:
        """Name, description, tags and category joined for embedding and keyword search."""
        return f"{self.name} {self.description} {' '.join(self.tags)} {self.category}"


class CartLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    product: Product
    quantity: int = Field(ge=1)

    @property
    def line_total(self) -> float:
        return self.product.price * self.quantity


class NegotiatedDiscount(BaseModel):
    """Percentage discount from the negotiation flow, applied after the bundle discount."""

    model_config = ConfigDict(frozen=True)

    percent: float = Field(default=0.0, ge=0, le=100)
    coupon_code: str | None = None


# -----------------------------------------------------------------------
# Search models
# -----------------------------------------------------------------------


class ScoredMatch(BaseModel):
    """One ranked hit. Keyword matches carry no score."""

    product_id: str
    score: float | None = None


class SearchFilters(BaseModel):
    """Post-filters applied client-side after retrieval."""

    category: str | None = None
    min_price: float | None = None
    max_price: float | None = None

    def matches(self, product: Product) -> bool:
        if self.category and self.category != "All":
            if product.category.lower() != self.category.lower():
                return False
        if self.min_price is not None and product.price < self.min_price:
            return False
        return not (self.max_price is not None and product.price > self.max_price)


class SearchResult(BaseModel):
    """Ranked result of one orchestrator pass, tagged with the stage that produced it."""

    query: str
    source: SearchSource
    matches: list[ScoredMatch] = []

    @property
    def product_ids(self) -> list[str]:
        return [m.product_id for m in self.matches]


# -----------------------------------------------------------------------
# Checkout + audit models
# -----------------------------------------------------------------------


class CheckoutLineItem(BaseModel):
    id: str
    name: str
    price: float
    quantity: int
    image: str = ""


class CheckoutSnapshot(BaseModel):
    """Payload handed to the payment-session creator. ``total_amount`` is in minor units."""

    line_items: list[CheckoutLineItem]
    total_amount: int
    discount_percent: float = 0.0
    coupon_code: str | None = None
    customer_email: str | None = None
    order_id: str | None = None
    success_url: str
    cancel_url: str


class PaymentSession(BaseModel):
    session_id: str = Field(validation_alias=AliasChoices("session_id", "sessionId"))
    url: str | None = None


class CheckoutRecord(BaseModel):
    id: str
    user_id: str | None = None
    total_amount: int
    discount_percent: float = 0.0
    coupon_code: str | None = None
    payment_session_id: str | None = None
    status: CheckoutStatus = CheckoutStatus.PENDING
    items: list[CheckoutLineItem] = []
    created_at: str = ""


class EventLogEntry(BaseModel):
    id: str
    session_id: str | None = None
    event_type: str
    data: str = "{}"
    duration_ms: int | None = None
    created_at: str


# -----------------------------------------------------------------------
# Service request/response models
# -----------------------------------------------------------------------


class HealthResponse(BaseModel):
    status: str = "ok"
    uptime_s: int = 0
    catalog_size: int = 0
    embedder_ready: bool = False
    sessions: int = 0


class AddToCartRequest(BaseModel):
    product_id: str
    quantity: int = 1


class QuantityRequest(BaseModel):
    product_id: str
    quantity: int


class RemoveRequest(BaseModel):
    product_id: str


class CategoryRequest(BaseModel):
    category: str = "All"


class SortRequest(BaseModel):
    order: str = SortOrder.RELEVANCE


class DiscountRequest(BaseModel):
    coupon_code: str | None = None
    percent: float


class CheckoutRequest(BaseModel):
    success_url: str
    cancel_url: str
    email: str | None = None


class CartResponse(BaseModel):
    lines: list[CartLine]
    subtotal: float
    bundle_discount: float
    total: int
    discount: NegotiatedDiscount
