"""Payment events decoded from Stripe webhook envelopes.

Every inbound event is decoded exactly once, at the webhook boundary, into
one member of the closed ``PaymentEvent`` union. Handlers never look at the
gateway's type strings or raw payloads again.
"""
from enum import Enum
from typing import Any, Literal, Optional, Union
from pydantic import BaseModel, Field, field_validator


class EventKind(str, Enum):
    CHECKOUT_COMPLETED = "checkout_completed"
    INVOICE_PAID = "invoice_paid"
    SUBSCRIPTION_CANCELLED = "subscription_cancelled"
    UNKNOWN = "unknown"


# Stripe event types, plus the normalized names for callers that already use them
EVENT_TYPE_KINDS: dict[str, EventKind] = {
    "checkout.session.completed": EventKind.CHECKOUT_COMPLETED,
    "checkout_completed": EventKind.CHECKOUT_COMPLETED,
    "invoice.paid": EventKind.INVOICE_PAID,
    "invoice_paid": EventKind.INVOICE_PAID,
    "customer.subscription.deleted": EventKind.SUBSCRIPTION_CANCELLED,
    "subscription_cancelled": EventKind.SUBSCRIPTION_CANCELLED,
}

# Invoice billing_reason of the invoice Stripe raises when a subscription is created
BILLING_REASON_SUBSCRIPTION_CREATE = "subscription_create"


class PlanType(str, Enum):
    MONTHLY = "monthly"
    YEARLY = "yearly"

    @property
    def duration_months(self) -> int:
        return 12 if self is PlanType.YEARLY else 1


class PaymentMetadata(BaseModel):
    """Metadata bag stamped on checkout sessions and recurring subscriptions."""

    user_id: Optional[str] = Field(None, alias="userId")
    plan_name: Optional[str] = Field(None, alias="planName")
    plan_type: PlanType = Field(PlanType.MONTHLY, alias="planType")
    is_trial: bool = Field(False, alias="isTrial")
    coupon_code: Optional[str] = Field(None, alias="couponCode")
    category: Optional[str] = None
    tier: Optional[str] = None

    class Config:
        populate_by_name = True

    @field_validator("user_id", "plan_name", "coupon_code", "category", "tier", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Optional[str]:
        """Stripe metadata values are strings; an empty one means absent."""
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator("plan_type", mode="before")
    @classmethod
    def parse_plan_type(cls, v: Any) -> PlanType:
        # Anything other than an explicit yearly plan bills monthly
        if isinstance(v, str) and v.strip().lower() == PlanType.YEARLY.value:
            return PlanType.YEARLY
        return PlanType.MONTHLY

    @field_validator("is_trial", mode="before")
    @classmethod
    def parse_is_trial(cls, v: Any) -> bool:
        if isinstance(v, bool):
            return v
        return isinstance(v, str) and v.strip().lower() == "true"


class CheckoutCompleted(BaseModel):
    """A checkout session that finished with a successful payment."""

    kind: Literal[EventKind.CHECKOUT_COMPLETED] = EventKind.CHECKOUT_COMPLETED
    event_id: Optional[str] = None
    session_id: str
    amount_total: int = 0  # minor units
    payment_method: Optional[str] = None
    stripe_subscription_id: Optional[str] = None
    metadata: PaymentMetadata = Field(default_factory=PaymentMetadata)


class InvoicePaid(BaseModel):
    """A paid invoice. Only invoices of a recurring subscription are renewals."""

    kind: Literal[EventKind.INVOICE_PAID] = EventKind.INVOICE_PAID
    event_id: Optional[str] = None
    invoice_id: str
    amount_paid: int = 0  # minor units
    stripe_subscription_id: Optional[str] = None
    billing_reason: Optional[str] = None

    @property
    def opens_subscription(self) -> bool:
        """First invoice of a new subscription; its checkout already granted the term."""
        return self.billing_reason == BILLING_REASON_SUBSCRIPTION_CREATE


class SubscriptionCancelled(BaseModel):
    """The gateway's recurring subscription was deleted upstream."""

    kind: Literal[EventKind.SUBSCRIPTION_CANCELLED] = EventKind.SUBSCRIPTION_CANCELLED
    event_id: Optional[str] = None
    stripe_subscription_id: str
    metadata: PaymentMetadata = Field(default_factory=PaymentMetadata)


class UnknownEvent(BaseModel):
    kind: Literal[EventKind.UNKNOWN] = EventKind.UNKNOWN
    event_id: Optional[str] = None
    event_type: str


PaymentEvent = Union[CheckoutCompleted, InvoicePaid, SubscriptionCancelled, UnknownEvent]


def _invoice_subscription_id(invoice: dict) -> Optional[str]:
    """Recurring subscription id of an invoice, if it belongs to one.

    Older API versions put it at the top level; newer ones nest it under
    ``parent.subscription_details``.
    """
    subscription = invoice.get("subscription")
    if subscription is None:
        parent = invoice.get("parent") or {}
        subscription = (parent.get("subscription_details") or {}).get("subscription")
    if isinstance(subscription, dict):
        subscription = subscription.get("id")
    return subscription or None


def decode_event(event: dict) -> PaymentEvent:
    """Decode a verified Stripe event envelope into a ``PaymentEvent``."""
    event_type = event.get("type") or ""
    event_id = event.get("id")
    obj = (event.get("data") or {}).get("object") or {}
    kind = EVENT_TYPE_KINDS.get(event_type, EventKind.UNKNOWN)

    if kind is EventKind.CHECKOUT_COMPLETED:
        method_types = obj.get("payment_method_types") or []
        subscription = obj.get("subscription")
        if isinstance(subscription, dict):
            subscription = subscription.get("id")
        return CheckoutCompleted(
            event_id=event_id,
            session_id=obj["id"],
            amount_total=obj.get("amount_total") or 0,
            payment_method=method_types[0] if method_types else None,
            stripe_subscription_id=subscription or None,
            metadata=PaymentMetadata.model_validate(dict(obj.get("metadata") or {})),
        )

    if kind is EventKind.INVOICE_PAID:
        return InvoicePaid(
            event_id=event_id,
            invoice_id=obj["id"],
            amount_paid=obj.get("amount_paid") or 0,
            stripe_subscription_id=_invoice_subscription_id(obj),
            billing_reason=obj.get("billing_reason") or None,
        )

    if kind is EventKind.SUBSCRIPTION_CANCELLED:
        return SubscriptionCancelled(
            event_id=event_id,
            stripe_subscription_id=obj["id"],
            metadata=PaymentMetadata.model_validate(dict(obj.get("metadata") or {})),
        )

    return UnknownEvent(event_id=event_id, event_type=event_type)
