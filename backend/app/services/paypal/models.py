"""PayPal webhook event models.

Only the fields the billing flow reads are declared; everything else PayPal
sends is kept as extra data so the original event can be passed back to the
signature verification API untouched.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class PayPalEventType(str, Enum):
    SUBSCRIPTION_CREATED = "BILLING.SUBSCRIPTION.CREATED"
    SUBSCRIPTION_ACTIVATED = "BILLING.SUBSCRIPTION.ACTIVATED"
    SUBSCRIPTION_REACTIVATED = "BILLING.SUBSCRIPTION.RE-ACTIVATED"
    SUBSCRIPTION_CANCELLED = "BILLING.SUBSCRIPTION.CANCELLED"
    SUBSCRIPTION_SUSPENDED = "BILLING.SUBSCRIPTION.SUSPENDED"
    SUBSCRIPTION_EXPIRED = "BILLING.SUBSCRIPTION.EXPIRED"
    SUBSCRIPTION_PAYMENT_FAILED = "BILLING.SUBSCRIPTION.PAYMENT.FAILED"
    PAYMENT_SALE_COMPLETED = "PAYMENT.SALE.COMPLETED"


class Subscriber(BaseModel):
    model_config = ConfigDict(extra="allow")

    email_address: str | None = None
    payer_id: str | None = None


class SaleAmount(BaseModel):
    model_config = ConfigDict(extra="allow")

    total: str | None = None
    currency: str | None = None


class WebhookResource(BaseModel):
    """A subscription (BILLING.*) or a sale (PAYMENT.SALE.*) resource."""

    model_config = ConfigDict(extra="allow")

    id: str | None = None
    status: str | None = None
    plan_id: str | None = None
    subscriber: Subscriber | None = None
    # Sales carry the subscription id here; ``id`` is the sale id
    billing_agreement_id: str | None = None
    amount: SaleAmount | None = None


class WebhookEvent(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str | None = None
    event_type: str = Field(..., min_length=1)
    resource_type: str | None = None
    summary: str | None = None
    create_time: datetime | None = None
    resource: WebhookResource = Field(default_factory=WebhookResource)


class WebhookOutcome(BaseModel):
    """What the receiver did with one event."""

    status: str = "ok"
    event_type: str
    action: str
    subscription_id: str | None = None
    points_allocated: int | None = None
    new_balance: int | None = None
