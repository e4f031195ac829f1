"""Points ledger — exactly-once crediting per (user, external event).

Payment webhooks are delivered at least once, unordered, and possibly in
parallel. ``Ledger.credit`` makes redelivery harmless:

1. take the lock for ``(user_id, external_event_id)``
2. if an allocation record already exists for that pair → no-op
3. create the balance row if missing
4. increment the balance and raise the high-water mark
5. append the allocation record
6. commit, then release the lock

Steps 3–5 share one transaction so a crash can never leave the balance
updated without its audit row (or the reverse).
"""

import logging
import threading
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import case, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import settings
from app.models.payment_history import PaymentHistory
from app.models.user_points import UserPoints
from app.services.points.accounts import has_allocation, insert_default_points
from app.services.points.exceptions import LedgerStorageError
from app.services.points.locks import KeyedLock, build_lock_provider, lock_key
from app.services.points.models import ALLOCATION_EVENT_KINDS, CreditResult, PaymentEventKind

logger = logging.getLogger(__name__)


class Ledger:
    """Idempotent points crediting over a session factory and a keyed lock."""

    def __init__(
        self,
        session_factory: sessionmaker,
        lock_provider: KeyedLock,
        default_balance: int | None = None,
        default_currency: str | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._locks = lock_provider
        self.default_balance = settings.POINTS_DEFAULT_BALANCE if default_balance is None else default_balance
        self.default_currency = default_currency or settings.DEFAULT_CURRENCY

    def credit(
        self,
        user_id: uuid.UUID,
        amount: int,
        external_event_id: str,
        event_kind: PaymentEventKind = PaymentEventKind.WEBHOOK,
        currency: str | None = None,
        display_amount: Decimal | None = None,
        paypal_payment_id: str | None = None,
    ) -> CreditResult:
        """Credit ``amount`` points once for ``(user_id, external_event_id)``.

        Returns ``CreditResult(allocated=False)`` for an already-credited
        event. Raises LedgerStorageError or LockAcquisitionError on failures;
        nothing is committed in that case and the call can be retried.
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValueError(f"amount must be a positive integer, got {amount!r}")
        if not external_event_id:
            raise ValueError("external_event_id is required")
        event_kind = PaymentEventKind(event_kind)
        if event_kind not in ALLOCATION_EVENT_KINDS:
            raise ValueError(f"{event_kind!r} is not an allocation event kind")

        key = lock_key(user_id, external_event_id)

        with self._session_factory() as db:
            with self._locks.hold(db, key):
                try:
                    result = self._apply_credit(
                        db,
                        user_id=user_id,
                        amount=amount,
                        external_event_id=external_event_id,
                        event_kind=event_kind,
                        currency=currency or self.default_currency,
                        display_amount=display_amount,
                        paypal_payment_id=paypal_payment_id,
                    )
                except SQLAlchemyError as exc:
                    db.rollback()
                    logger.exception("Ledger credit failed for %s", key)
                    raise LedgerStorageError(f"Failed to credit {key}: {exc}") from exc
                except Exception:
                    db.rollback()
                    raise

        if result.allocated:
            logger.info(
                "Allocated %d points to user %s for %s (%s); new balance %d",
                amount,
                user_id,
                external_event_id,
                event_kind.value,
                result.new_balance,
            )
        else:
            logger.info("Duplicate credit suppressed for %s", key)
        return result

    def _apply_credit(
        self,
        db: Session,
        *,
        user_id: uuid.UUID,
        amount: int,
        external_event_id: str,
        event_kind: PaymentEventKind,
        currency: str,
        display_amount: Decimal | None,
        paypal_payment_id: str | None,
    ) -> CreditResult:
        if has_allocation(db, user_id, external_event_id):
            db.rollback()
            return CreditResult(allocated=False)

        insert_default_points(db, user_id, self.default_balance)
        new_balance = self._increment_balance(db, user_id, amount)
        self._insert_record(
            db,
            PaymentHistory(
                user_id=user_id,
                external_event_id=external_event_id,
                event_kind=event_kind.value,
                points=amount,
                amount=display_amount,
                currency=currency,
                paypal_payment_id=paypal_payment_id,
            ),
        )
        db.commit()
        return CreditResult(allocated=True, new_balance=new_balance)

    def _increment_balance(self, db: Session, user_id: uuid.UUID, amount: int) -> int:
        # Computed in SQL so credits for other events of the same user,
        # which hold different locks, cannot overwrite each other.
        incremented = UserPoints.points_remaining + amount
        db.execute(
            update(UserPoints)
            .where(UserPoints.user_id == user_id)
            .values(
                points_remaining=incremented,
                points_total=case((incremented > UserPoints.points_total, incremented), else_=UserPoints.points_total),
                last_reset=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        return db.execute(select(UserPoints.points_remaining).where(UserPoints.user_id == user_id)).scalar_one()

    def _insert_record(self, db: Session, record: PaymentHistory) -> None:
        db.add(record)
        db.flush()


# ---------------------------------------------------------------------------
# Default instance
# ---------------------------------------------------------------------------

_ledger: Ledger | None = None
_ledger_lock = threading.Lock()


def get_ledger() -> Ledger:
    """Get or create the application ledger (FastAPI dependency)."""
    global _ledger  # noqa: PLW0603
    if _ledger is not None:
        return _ledger

    with _ledger_lock:
        if _ledger is not None:
            return _ledger

        from app.core.database import SessionLocal, engine

        _ledger = Ledger(SessionLocal, build_lock_provider(engine))
        return _ledger
