"""
Payment and fulfillment DTOs (Pydantic v2) used at application boundaries.

Storefront payloads arrive in camelCase; every alias below also accepts the
snake_case name so internal callers and tests can use either.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, Field, ConfigDict, AliasChoices, field_validator, model_validator

# PayMongo expects 'month'/'week', the storefront sends 'monthly'/'weekly'
INTERVAL_ALIASES = {
    "monthly": "month",
    "weekly": "week",
}

DEFAULT_PLAN_NAME = "McDuffy Plan"
DEFAULT_PLAN_DESCRIPTION = "Gently cooked subscription"
DEFAULT_CURRENCY = "PHP"


def normalize_interval(interval: Optional[str]) -> str:
    if not interval:
        return "month"
    return INTERVAL_ALIASES.get(interval, interval)


class _BoundaryModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# ---------------------------------------------------------------------------
# Subscription intake
# ---------------------------------------------------------------------------


class CustomerInfo(_BoundaryModel):
    email: str = Field(min_length=1)
    first_name: str = Field(default="", validation_alias=AliasChoices("first_name", "firstName"))
    last_name: str = Field(default="", validation_alias=AliasChoices("last_name", "lastName"))
    phone: Optional[str] = None


class PlanInfo(_BoundaryModel):
    amount: float = Field(gt=0, description="centavos")
    name: Optional[str] = None
    description: Optional[str] = None
    currency: Optional[str] = None
    interval: Optional[str] = None
    interval_count: Optional[int] = Field(default=None, ge=1)


class PlanSpec(BaseModel):
    """Plan attributes exactly as sent to the payment processor."""

    name: str
    description: str
    amount: int
    currency: str
    interval: str
    interval_count: int = 1

    @classmethod
    def from_request(cls, plan: PlanInfo) -> "PlanSpec":
        return cls(
            name=plan.name or DEFAULT_PLAN_NAME,
            description=plan.description or DEFAULT_PLAN_DESCRIPTION,
            amount=int(round(plan.amount)),
            currency=plan.currency or DEFAULT_CURRENCY,
            interval=normalize_interval(plan.interval),
            interval_count=plan.interval_count or 1,
        )


class CustomerSpec(BaseModel):
    email: str
    first_name: str = ""
    last_name: str = ""
    phone: Optional[str] = None


class OrderDraft(_BoundaryModel):
    """Storefront order block staged as the blueprint for later fulfillment."""

    currency: str = DEFAULT_CURRENCY
    email: Optional[str] = None
    line_items: list[dict[str, Any]] = Field(
        default_factory=list, validation_alias=AliasChoices("line_items", "lineItems")
    )
    amount: str
    note: str = ""
    tags: list[str] = Field(default_factory=list)
    shipping_address: Optional[dict[str, Any]] = Field(
        default=None, validation_alias=AliasChoices("shipping_address", "shippingAddress")
    )

    @field_validator("amount", mode="before")
    @classmethod
    def _amount_as_string(cls, v: Any) -> Any:
        if isinstance(v, (int, float)):
            return str(v)
        return v

    @field_validator("currency")
    @classmethod
    def _upper_currency(cls, v: str) -> str:
        u = (v or "").upper()
        if len(u) != 3 or not u.isalpha():
            raise ValueError("currency must be ISO-4217 alpha-3")
        return u


class SubscribeRequest(_BoundaryModel):
    customer: CustomerInfo
    plan: PlanInfo
    shopify_order: Optional[OrderDraft] = Field(
        default=None, validation_alias=AliasChoices("shopify_order", "shopifyOrder")
    )


class SubscribeResult(BaseModel):
    subscription_id: Optional[str]
    payment_intent_id: str
    client_key: str


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


class PaidOrderRequest(BaseModel):
    """Input of the commerce platform's paid-order creation."""

    currency: str
    email: str
    line_items: list[dict[str, Any]]
    amount: str
    note: str = ""
    tags: list[str] = Field(default_factory=list)
    shipping_address: Optional[dict[str, Any]] = None


class CreatedOrder(BaseModel):
    id: str
    name: Optional[str] = None


class CreateOrderRequest(_BoundaryModel):
    payment_intent_id: str = Field(
        min_length=1, validation_alias=AliasChoices("payment_intent_id", "paymentIntentId")
    )


class CreateOrderResult(BaseModel):
    already_created: bool = False
    order_id: Optional[str] = None
    order_name: Optional[str] = None
    message: str


# ---------------------------------------------------------------------------
# Subscription management
# ---------------------------------------------------------------------------


class SubscriptionView(BaseModel):
    id: str
    order_id: str
    order_name: Optional[str] = None
    paymongo_subscription_id: Optional[str] = None
    status: str = "active"
    provider: str = "card"
    recipe: Optional[str] = None
    plan_name: str
    amount: int
    currency: str
    created_at: Optional[str] = None
    next_billing_date: Optional[str] = None


class SubscriptionActionRequest(_BoundaryModel):
    email: Optional[str] = None
    paymongo_subscription_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("paymongo_subscription_id", "paymongoSubscriptionId"),
    )
    reason: Optional[str] = None


class SubscriptionActionResult(BaseModel):
    status: Optional[str] = None
    message: str
    warning: Optional[str] = None
    processor_cancelled: Optional[bool] = None


# ---------------------------------------------------------------------------
# Dog profiles
# ---------------------------------------------------------------------------


class DogProfile(_BoundaryModel):
    email: str = Field(min_length=1)
    dog_name: str = ""
    dog_age: float = 0
    dog_age_unit: str = "years"
    dog_weight_kg: float = 0
    body_condition: str = "ideal"
    activity_level: str = "moderate"
    allergies: list[str] = Field(default_factory=list)
    preferred_protein: str = "surf_turf"
    preferred_plan: str = "full"
    updated_at: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _empty_means_default(cls, data: Any) -> Any:
        # 空字符串 / 0 / None 视为未填写，回落到默认值
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v not in (None, "", 0) or k == "email"}
        return data


# ---------------------------------------------------------------------------
# Webhooks
# ---------------------------------------------------------------------------


class PaymentEvent(BaseModel):
    """Fields the reconciler needs from a processor event envelope."""

    event_type: Optional[str] = None
    livemode: bool = False
    payment_id: Optional[str] = None
    payment_intent_id: Optional[str] = None
    resource: dict[str, Any] = Field(default_factory=dict)


class WebhookOutcome(str, Enum):
    REJECTED_MALFORMED = "rejected_malformed"
    REJECTED_SIGNATURE = "rejected_signature"
    IGNORED = "ignored"
    UNIDENTIFIED = "unidentified"
    DUPLICATE = "duplicate"
    BLUEPRINT_MISSING = "blueprint_missing"
    FULFILLED = "fulfilled"
    FAILED = "failed"


class WebhookAck(BaseModel):
    status_code: int
    outcome: WebhookOutcome
    order_id: Optional[str] = None
