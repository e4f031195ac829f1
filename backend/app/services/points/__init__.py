"""Points ledger — idempotent crediting, balances and payment history."""

from app.services.points.exceptions import LedgerStorageError, LockAcquisitionError, PointsError
from app.services.points.ledger import Ledger, get_ledger
from app.services.points.locks import (
    AdvisoryKeyedLock,
    KeyedLock,
    LocalKeyedLock,
    advisory_lock_id,
    build_lock_provider,
    lock_key,
)
from app.services.points.models import ALLOCATION_EVENT_KINDS, CreditResult, PaymentEventKind

__all__ = [
    "ALLOCATION_EVENT_KINDS",
    "AdvisoryKeyedLock",
    "CreditResult",
    "KeyedLock",
    "Ledger",
    "LedgerStorageError",
    "LocalKeyedLock",
    "LockAcquisitionError",
    "PaymentEventKind",
    "PointsError",
    "advisory_lock_id",
    "build_lock_provider",
    "get_ledger",
    "lock_key",
]
