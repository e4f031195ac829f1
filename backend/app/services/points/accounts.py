"""Points balance and payment history — reads, lazy creation and admin cleanup."""

import logging
import uuid
from decimal import Decimal

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.payment_history import PaymentHistory
from app.models.user_points import UserPoints
from app.services.points.models import ALLOCATION_EVENT_KINDS, PaymentEventKind

logger = logging.getLogger(__name__)

_ALLOCATION_KIND_VALUES = sorted(kind.value for kind in ALLOCATION_EVENT_KINDS)


# ---------------------------------------------------------------------------
# Balance
# ---------------------------------------------------------------------------


def insert_default_points(db: Session, user_id: uuid.UUID, default_balance: int) -> None:
    """Create the user's points row with the default balance if it is missing.

    Uses INSERT ... ON CONFLICT DO NOTHING where the dialect supports it so
    concurrent first credits for a new user cannot collide on the unique key.
    """
    values = {
        "id": uuid.uuid4(),
        "user_id": user_id,
        "points_remaining": default_balance,
        "points_total": default_balance,
    }
    dialect = db.get_bind().dialect.name

    if dialect == "postgresql":
        stmt = pg_insert(UserPoints).values(**values).on_conflict_do_nothing(index_elements=["user_id"])
    elif dialect == "sqlite":
        stmt = sqlite_insert(UserPoints).values(**values).on_conflict_do_nothing(index_elements=["user_id"])
    else:
        exists = db.execute(select(UserPoints.id).where(UserPoints.user_id == user_id)).scalar_one_or_none()
        if exists is not None:
            return
        db.add(UserPoints(**values))
        db.flush()
        return

    db.execute(stmt)


def get_or_create_points(db: Session, user_id: uuid.UUID) -> UserPoints:
    """Return the user's points row, creating it with the default balance if absent."""
    points = db.execute(select(UserPoints).where(UserPoints.user_id == user_id)).scalar_one_or_none()
    if points is not None:
        return points

    insert_default_points(db, user_id, settings.POINTS_DEFAULT_BALANCE)
    db.commit()
    return db.execute(select(UserPoints).where(UserPoints.user_id == user_id)).scalar_one()


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


def has_allocation(db: Session, user_id: uuid.UUID, external_event_id: str) -> bool:
    """Return True if points were already allocated for this external event."""
    found = db.execute(
        select(PaymentHistory.id)
        .where(
            PaymentHistory.user_id == user_id,
            PaymentHistory.external_event_id == external_event_id,
            PaymentHistory.event_kind.in_(_ALLOCATION_KIND_VALUES),
        )
        .limit(1)
    ).scalar_one_or_none()
    return found is not None


def record_payment_event(
    db: Session,
    user_id: uuid.UUID,
    event_kind: PaymentEventKind,
    external_event_id: str | None = None,
    amount: Decimal | None = None,
    currency: str | None = None,
    paypal_payment_id: str | None = None,
) -> PaymentHistory:
    """Append a payment event that does not allocate points (e.g. a failed payment)."""
    event_kind = PaymentEventKind(event_kind)
    if event_kind in ALLOCATION_EVENT_KINDS:
        raise ValueError(f"{event_kind.value!r} allocates points; use Ledger.credit instead")

    entry = PaymentHistory(
        user_id=user_id,
        external_event_id=external_event_id,
        event_kind=event_kind.value,
        points=0,
        amount=amount,
        currency=currency or settings.DEFAULT_CURRENCY,
        paypal_payment_id=paypal_payment_id,
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry


def get_payment_history(
    db: Session,
    user_id: uuid.UUID,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[PaymentHistory], int]:
    """Return paginated payment history for a user, newest first."""
    base = select(PaymentHistory).where(PaymentHistory.user_id == user_id)
    count_query = select(func.count()).select_from(PaymentHistory).where(PaymentHistory.user_id == user_id)

    total = db.execute(count_query).scalar_one()
    offset = (page - 1) * page_size
    entries = (
        db.execute(
            base.order_by(PaymentHistory.created_at.desc(), PaymentHistory.id).offset(offset).limit(page_size)
        )
        .scalars()
        .all()
    )

    return list(entries), total


# ---------------------------------------------------------------------------
# Admin cleanup
# ---------------------------------------------------------------------------


def find_duplicate_allocation_ids(db: Session) -> list[uuid.UUID]:
    """Return ids of allocation rows that repeat an earlier (user_id, external_event_id)."""
    rows = db.execute(
        select(PaymentHistory.id, PaymentHistory.user_id, PaymentHistory.external_event_id)
        .where(
            PaymentHistory.event_kind.in_(_ALLOCATION_KIND_VALUES),
            PaymentHistory.external_event_id.is_not(None),
        )
        .order_by(
            PaymentHistory.user_id,
            PaymentHistory.external_event_id,
            PaymentHistory.created_at,
            PaymentHistory.id,
        )
    ).all()

    seen: set[tuple[uuid.UUID, str]] = set()
    duplicate_ids: list[uuid.UUID] = []
    for row_id, user_id, external_event_id in rows:
        pair = (user_id, external_event_id)
        if pair in seen:
            duplicate_ids.append(row_id)
        else:
            seen.add(pair)
    return duplicate_ids


def remove_duplicate_allocations(db: Session) -> int:
    """Delete all but the earliest allocation per (user_id, external_event_id).

    Only needed for rows written before credits were serialized per event.
    Returns the number of rows deleted.
    """
    duplicate_ids = find_duplicate_allocation_ids(db)
    if duplicate_ids:
        db.execute(delete(PaymentHistory).where(PaymentHistory.id.in_(duplicate_ids)))
    db.commit()

    logger.info("Removed %d duplicate allocation records", len(duplicate_ids))
    return len(duplicate_ids)
