"""Points ledger models."""

from enum import Enum

from pydantic import BaseModel


class PaymentEventKind(str, Enum):
    ACTIVATION = "activation"
    PAYMENT = "payment"
    MANUAL = "manual"
    WEBHOOK = "webhook"
    PAYMENT_FAILED = "payment_failed"


# Kinds that count as "points already allocated" for an external event.
# Every duplicate check consults this set and nothing else.
ALLOCATION_EVENT_KINDS: frozenset[PaymentEventKind] = frozenset(
    {
        PaymentEventKind.ACTIVATION,
        PaymentEventKind.PAYMENT,
        PaymentEventKind.MANUAL,
        PaymentEventKind.WEBHOOK,
    }
)


class CreditResult(BaseModel):
    """Outcome of a ledger credit.

    ``allocated=False`` means the event was already credited and nothing
    changed; it is not an error.
    """

    allocated: bool
    new_balance: int | None = None
