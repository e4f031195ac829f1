import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict

PlanType = Literal["free", "pro", "business", "enterprise"]
SubscriptionStatus = Literal["created", "active", "cancelled", "suspended", "expired"]


class SubscriptionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    paypal_subscription_id: str
    plan_type: PlanType
    status: SubscriptionStatus
    created_at: datetime
    activated_at: datetime | None
    cancelled_at: datetime | None
    suspended_at: datetime | None
    expired_at: datetime | None
