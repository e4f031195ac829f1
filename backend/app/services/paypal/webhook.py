"""PayPal webhook dispatch — subscription lifecycle and points allocation.

PayPal delivers events at least once and in no particular order. Handlers
therefore treat every event as possibly duplicated or early:

- lifecycle events move the subscription through its state machine and
  ignore steps that are not allowed from the current state
- crediting events go through ``Ledger.credit`` keyed by billing cycle, so
  a redelivered event is a no-op
- a payment or status change for a subscription we have not seen yet is a
  retriable error
"""

import calendar
import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation

from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.user_subscription import UserSubscription
from app.services import subscriptions as subscription_service
from app.services.auth import get_user_by_email
from app.services.paypal.exceptions import SubscriptionNotReadyError, WebhookPayloadError
from app.services.paypal.models import PayPalEventType, WebhookEvent, WebhookOutcome
from app.services.plans import get_plan, resolve_paypal_plan
from app.services.points import Ledger, PaymentEventKind
from app.services.points.accounts import record_payment_event

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Billing cycles
# ---------------------------------------------------------------------------


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _add_months(value: datetime, months: int) -> datetime:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def billing_cycle(anchor: datetime | None, at: datetime, grace: timedelta | None = None) -> int:
    """Return the zero-based monthly billing cycle ``at`` falls in.

    ``anchor`` is the subscription's activation time. Without an anchor (a
    payment seen before activation) the event belongs to the first cycle.
    ``grace`` lets a sale that settles shortly before a cycle boundary count
    toward the cycle it pays for.
    """
    if anchor is None:
        return 0
    if grace is None:
        grace = timedelta(hours=settings.BILLING_CYCLE_GRACE_HOURS)

    anchor = _as_utc(anchor)
    effective = _as_utc(at) + grace

    months = (effective.year - anchor.year) * 12 + (effective.month - anchor.month)
    if months > 0 and _add_months(anchor, months) > effective:
        months -= 1
    return max(months, 0)


def allocation_key(paypal_subscription_id: str, cycle: int) -> str:
    """Idempotency key for one billing cycle of a subscription.

    The first cycle uses the bare subscription id so activation and the
    first payment credit once between them, and so allocations recorded
    before cycle keys existed still count.
    """
    if cycle == 0:
        return paypal_subscription_id
    return f"{paypal_subscription_id}:cycle-{cycle}"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _event_time(event: WebhookEvent) -> datetime:
    return _as_utc(event.create_time) if event.create_time else datetime.now(timezone.utc)


def _subscription_id(event: WebhookEvent) -> str:
    resource = event.resource
    if event.event_type == PayPalEventType.PAYMENT_SALE_COMPLETED.value:
        subscription_id = resource.billing_agreement_id or resource.id
    else:
        subscription_id = resource.id
    if not subscription_id:
        raise WebhookPayloadError(f"{event.event_type} event has no subscription id")
    return subscription_id


def _sale_amount(event: WebhookEvent, fallback: Decimal) -> tuple[Decimal, str]:
    amount = event.resource.amount
    currency = (amount.currency if amount and amount.currency else None) or settings.DEFAULT_CURRENCY
    if amount is None or amount.total is None:
        return fallback, currency
    try:
        return Decimal(amount.total), currency
    except InvalidOperation:
        logger.warning("Unparseable sale amount %r on event %s", amount.total, event.id)
        return fallback, currency


def _ensure_subscription(db: Session, event: WebhookEvent, subscription_id: str) -> UserSubscription | None:
    """Return the subscription record, creating it from the event resource if missing."""
    subscription = subscription_service.get_by_paypal_id(db, subscription_id)
    if subscription is not None:
        return subscription

    subscriber = event.resource.subscriber
    email = subscriber.email_address if subscriber else None
    user = get_user_by_email(db, email) if email else None
    if user is None:
        logger.warning("No user for subscriber %r on subscription %s", email, subscription_id)
        return None

    plan = resolve_paypal_plan(event.resource.plan_id)
    return subscription_service.upsert_subscription(db, user.id, subscription_id, plan.plan_type)


def _credit_cycle(
    ledger: Ledger,
    event: WebhookEvent,
    subscription: UserSubscription,
    event_kind: PaymentEventKind,
    at: datetime,
    paypal_payment_id: str | None = None,
) -> WebhookOutcome:
    plan = get_plan(subscription.plan_type)
    display_amount, currency = (
        _sale_amount(event, plan.price) if event_kind == PaymentEventKind.PAYMENT else (plan.price, settings.DEFAULT_CURRENCY)
    )
    cycle = billing_cycle(subscription.activated_at, at)

    result = ledger.credit(
        user_id=subscription.user_id,
        amount=plan.points,
        external_event_id=allocation_key(subscription.paypal_subscription_id, cycle),
        event_kind=event_kind,
        currency=currency,
        display_amount=display_amount,
        paypal_payment_id=paypal_payment_id,
    )
    return WebhookOutcome(
        event_type=event.event_type,
        action="points_allocated" if result.allocated else "already_allocated",
        subscription_id=subscription.paypal_subscription_id,
        points_allocated=plan.points if result.allocated else 0,
        new_balance=result.new_balance,
    )


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def handle_subscription_created(db: Session, ledger: Ledger, event: WebhookEvent) -> WebhookOutcome:
    subscription_id = _subscription_id(event)
    existing = subscription_service.get_by_paypal_id(db, subscription_id)

    if existing is not None:
        plan = resolve_paypal_plan(event.resource.plan_id)
        subscription_service.upsert_subscription(db, existing.user_id, subscription_id, plan.plan_type)
        return WebhookOutcome(event_type=event.event_type, action="subscription_updated", subscription_id=subscription_id)

    subscription = _ensure_subscription(db, event, subscription_id)
    if subscription is None:
        return WebhookOutcome(event_type=event.event_type, action="ignored_unknown_user", subscription_id=subscription_id)
    return WebhookOutcome(event_type=event.event_type, action="subscription_created", subscription_id=subscription_id)


def handle_subscription_activated(db: Session, ledger: Ledger, event: WebhookEvent) -> WebhookOutcome:
    subscription_id = _subscription_id(event)
    subscription = _ensure_subscription(db, event, subscription_id)
    if subscription is None:
        return WebhookOutcome(event_type=event.event_type, action="ignored_unknown_user", subscription_id=subscription_id)

    at = _event_time(event)
    if not subscription_service.transition(db, subscription, "active", at=at):
        return WebhookOutcome(event_type=event.event_type, action="ignored_transition", subscription_id=subscription_id)

    return _credit_cycle(ledger, event, subscription, PaymentEventKind.ACTIVATION, at)


def handle_payment_completed(db: Session, ledger: Ledger, event: WebhookEvent) -> WebhookOutcome:
    subscription_id = _subscription_id(event)
    subscription = subscription_service.get_by_paypal_id(db, subscription_id)
    if subscription is None:
        logger.warning("Payment for unknown subscription %s, asking PayPal to retry", subscription_id)
        raise SubscriptionNotReadyError(subscription_id)

    if subscription_service.is_terminal(subscription.status):
        logger.warning(
            "Payment for %s subscription %s, no points allocated",
            subscription.status,
            subscription_id,
        )
        return WebhookOutcome(event_type=event.event_type, action="ignored_inactive", subscription_id=subscription_id)

    sale_id = event.resource.id if event.resource.billing_agreement_id else None
    return _credit_cycle(ledger, event, subscription, PaymentEventKind.PAYMENT, _event_time(event), sale_id)


def _status_handler(target: str) -> Callable[[Session, Ledger, WebhookEvent], WebhookOutcome]:
    def handle(db: Session, ledger: Ledger, event: WebhookEvent) -> WebhookOutcome:
        subscription_id = _subscription_id(event)
        subscription = subscription_service.get_by_paypal_id(db, subscription_id)
        if subscription is None:
            logger.warning("%s for unknown subscription %s, asking PayPal to retry", event.event_type, subscription_id)
            raise SubscriptionNotReadyError(subscription_id)

        changed = subscription_service.transition(db, subscription, target, at=_event_time(event))
        return WebhookOutcome(
            event_type=event.event_type,
            action=f"subscription_{target}" if changed else "ignored_transition",
            subscription_id=subscription_id,
        )

    handle.__name__ = f"handle_subscription_{target}"
    return handle


def handle_payment_failed(db: Session, ledger: Ledger, event: WebhookEvent) -> WebhookOutcome:
    subscription_id = _subscription_id(event)
    subscription = subscription_service.get_by_paypal_id(db, subscription_id)
    if subscription is None:
        logger.warning("Failed payment for unknown subscription %s", subscription_id)
        return WebhookOutcome(
            event_type=event.event_type, action="ignored_unknown_subscription", subscription_id=subscription_id
        )

    record_payment_event(
        db,
        subscription.user_id,
        PaymentEventKind.PAYMENT_FAILED,
        external_event_id=subscription_id,
    )
    logger.info("Recorded failed payment for subscription %s", subscription_id)
    return WebhookOutcome(event_type=event.event_type, action="payment_failure_recorded", subscription_id=subscription_id)


EVENT_HANDLERS: dict[str, Callable[[Session, Ledger, WebhookEvent], WebhookOutcome]] = {
    PayPalEventType.SUBSCRIPTION_CREATED.value: handle_subscription_created,
    PayPalEventType.SUBSCRIPTION_ACTIVATED.value: handle_subscription_activated,
    PayPalEventType.SUBSCRIPTION_REACTIVATED.value: handle_subscription_activated,
    PayPalEventType.PAYMENT_SALE_COMPLETED.value: handle_payment_completed,
    PayPalEventType.SUBSCRIPTION_CANCELLED.value: _status_handler("cancelled"),
    PayPalEventType.SUBSCRIPTION_SUSPENDED.value: _status_handler("suspended"),
    PayPalEventType.SUBSCRIPTION_EXPIRED.value: _status_handler("expired"),
    PayPalEventType.SUBSCRIPTION_PAYMENT_FAILED.value: handle_payment_failed,
}


def process_event(db: Session, ledger: Ledger, event: WebhookEvent) -> WebhookOutcome:
    """Dispatch one webhook event. Unknown event types are acknowledged and ignored."""
    logger.info("PayPal webhook %s (event id %s)", event.event_type, event.id)

    handler = EVENT_HANDLERS.get(event.event_type)
    if handler is None:
        logger.info("Unhandled PayPal event type: %s", event.event_type)
        return WebhookOutcome(event_type=event.event_type, action="ignored_event_type")

    return handler(db, ledger, event)

