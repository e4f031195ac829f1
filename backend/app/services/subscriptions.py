"""Subscription state — per-user PayPal subscription records and lifecycle."""

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.user_subscription import UserSubscription

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

SUBSCRIPTION_STATUSES = ("created", "active", "cancelled", "suspended", "expired")
TERMINAL_STATUSES = frozenset({"cancelled", "expired"})

# created → active ⇄ suspended, active → cancelled, any live state → expired.
# PayPal can also cancel an agreement that is still pending or suspended.
ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "created": frozenset({"active", "cancelled", "expired"}),
    "active": frozenset({"suspended", "cancelled", "expired"}),
    "suspended": frozenset({"active", "cancelled", "expired"}),
    "cancelled": frozenset(),
    "expired": frozenset(),
}

# Status → timestamp column stamped on entering it
_STATUS_TIMESTAMPS = {
    "active": "activated_at",
    "cancelled": "cancelled_at",
    "suspended": "suspended_at",
    "expired": "expired_at",
}


def can_transition(current: str, target: str) -> bool:
    """Return True if ``current → target`` is a valid lifecycle step."""
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


def get_by_paypal_id(db: Session, paypal_subscription_id: str) -> UserSubscription | None:
    return db.execute(
        select(UserSubscription).where(UserSubscription.paypal_subscription_id == paypal_subscription_id)
    ).scalar_one_or_none()


def get_current_for_user(db: Session, user_id: uuid.UUID) -> UserSubscription | None:
    """Return the user's most relevant subscription: the newest live one, else the newest."""
    subscriptions = (
        db.execute(
            select(UserSubscription)
            .where(UserSubscription.user_id == user_id)
            .order_by(UserSubscription.created_at.desc(), UserSubscription.id)
        )
        .scalars()
        .all()
    )
    for subscription in subscriptions:
        if not is_terminal(subscription.status):
            return subscription
    return subscriptions[0] if subscriptions else None


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


def upsert_subscription(
    db: Session,
    user_id: uuid.UUID,
    paypal_subscription_id: str,
    plan_type: str,
) -> UserSubscription:
    """Create the subscription record in ``created`` state, or update its plan.

    An existing record keeps its status: a late ``created`` event must not
    roll back an already active subscription.
    """
    subscription = get_by_paypal_id(db, paypal_subscription_id)

    if subscription is None:
        subscription = UserSubscription(
            user_id=user_id,
            paypal_subscription_id=paypal_subscription_id,
            plan_type=plan_type,
            status="created",
        )
        db.add(subscription)
        logger.info("Created subscription %s for user %s (plan=%s)", paypal_subscription_id, user_id, plan_type)
    else:
        subscription.plan_type = plan_type

    db.commit()
    db.refresh(subscription)
    return subscription


def transition(
    db: Session,
    subscription: UserSubscription,
    target: str,
    at: datetime | None = None,
) -> bool:
    """Move a subscription to ``target`` status.

    Returns True if the subscription is in ``target`` afterwards (including
    when it already was). Disallowed transitions are logged and ignored.
    """
    if target not in SUBSCRIPTION_STATUSES:
        raise ValueError(f"Unknown subscription status: {target!r}")

    current = subscription.status
    if current == target:
        return True

    if not can_transition(current, target):
        logger.warning(
            "Ignoring subscription %s transition %s → %s",
            subscription.paypal_subscription_id,
            current,
            target,
        )
        return False

    subscription.status = target
    column = _STATUS_TIMESTAMPS.get(target)
    # activated_at anchors billing cycles, so a re-activation keeps the original
    if column is not None and not (column == "activated_at" and subscription.activated_at is not None):
        setattr(subscription, column, at or datetime.now(timezone.utc))

    db.commit()
    db.refresh(subscription)
    logger.info("Subscription %s: %s → %s", subscription.paypal_subscription_id, current, target)
    return True
