"""Plan catalog — PayPal plan ids to plan type, monthly points and price."""

import logging
from decimal import Decimal

from pydantic import BaseModel

from app.core.config import settings

logger = logging.getLogger(__name__)

DEFAULT_PLAN_TYPE = "free"


class Plan(BaseModel):
    plan_type: str
    points: int
    display_name: str
    price: Decimal


PLANS: dict[str, Plan] = {
    "free": Plan(plan_type="free", points=50, display_name="Free", price=Decimal("0")),
    "pro": Plan(plan_type="pro", points=1250, display_name="Creator", price=Decimal("29")),
    "business": Plan(plan_type="business", points=3500, display_name="Agency", price=Decimal("79")),
    "enterprise": Plan(plan_type="enterprise", points=10000, display_name="Scale", price=Decimal("199")),
}


def list_plans() -> list[Plan]:
    """Return every plan, cheapest first."""
    return sorted(PLANS.values(), key=lambda plan: plan.price)


def get_plan(plan_type: str | None) -> Plan:
    """Return the plan for a plan type, falling back to the default tier."""
    plan = PLANS.get(plan_type or "")
    if plan is None:
        logger.warning("Unknown plan type %r, using %s", plan_type, DEFAULT_PLAN_TYPE)
        return PLANS[DEFAULT_PLAN_TYPE]
    return plan


def resolve_paypal_plan(paypal_plan_id: str | None) -> Plan:
    """Map a PayPal billing plan id to a plan.

    Unknown or missing ids resolve to the default tier with a warning; an
    unmapped plan never fails a webhook.
    """
    plan_type = settings.PAYPAL_PLAN_IDS.get(paypal_plan_id or "")
    if plan_type is None:
        logger.warning("Unknown PayPal plan id %r, using %s", paypal_plan_id, DEFAULT_PLAN_TYPE)
        return PLANS[DEFAULT_PLAN_TYPE]
    return get_plan(plan_type)
