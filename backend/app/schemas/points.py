import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Balance
# ---------------------------------------------------------------------------


class PointsBalanceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: uuid.UUID
    points_remaining: int
    points_total: int
    last_reset: datetime | None


# ---------------------------------------------------------------------------
# Payment history
# ---------------------------------------------------------------------------


class PaymentHistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    external_event_id: str | None
    event_kind: str
    points: int
    amount: Decimal | None
    currency: str
    paypal_payment_id: str | None
    created_at: datetime


class PaymentHistoryPage(BaseModel):
    items: list[PaymentHistoryResponse]
    total: int
    page: int
    page_size: int


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


class ManualAllocationRequest(BaseModel):
    user_id: uuid.UUID
    points: int = Field(..., gt=0)
    external_event_id: str = Field(..., min_length=1, max_length=255)


class AllocationResponse(BaseModel):
    user_id: uuid.UUID
    external_event_id: str
    allocated: bool
    new_balance: int | None


class DedupeResponse(BaseModel):
    removed: int
