"""Tests for subscription state and lifecycle transitions."""

from datetime import datetime, timedelta

import pytest

from app.models.user_subscription import UserSubscription
from app.services.subscriptions import (
    can_transition,
    get_by_paypal_id,
    get_current_for_user,
    is_terminal,
    transition,
    upsert_subscription,
)


class TestStateMachine:
    @pytest.mark.parametrize(
        "current,target",
        [
            ("created", "active"),
            ("active", "suspended"),
            ("suspended", "active"),
            ("active", "cancelled"),
            ("created", "cancelled"),
            ("suspended", "cancelled"),
            ("created", "expired"),
            ("active", "expired"),
            ("suspended", "expired"),
        ],
    )
    def test_allowed(self, current, target):
        assert can_transition(current, target)

    @pytest.mark.parametrize(
        "current,target",
        [
            ("active", "created"),
            ("created", "suspended"),
            ("cancelled", "active"),
            ("expired", "active"),
            ("cancelled", "expired"),
        ],
    )
    def test_disallowed(self, current, target):
        assert not can_transition(current, target)

    def test_terminal_states(self):
        assert is_terminal("cancelled")
        assert is_terminal("expired")
        assert not is_terminal("suspended")


class TestUpsert:
    def test_creates_in_created_state(self, db, user):
        subscription = upsert_subscription(db, user.id, "I-SUB1", "pro")

        assert subscription.status == "created"
        assert subscription.plan_type == "pro"
        assert get_by_paypal_id(db, "I-SUB1").id == subscription.id

    def test_existing_keeps_status(self, db, user):
        subscription = upsert_subscription(db, user.id, "I-SUB1", "pro")
        transition(db, subscription, "active")

        updated = upsert_subscription(db, user.id, "I-SUB1", "business")

        assert updated.id == subscription.id
        assert updated.status == "active"
        assert updated.plan_type == "business"


class TestTransition:
    def test_activation_stamps_activated_at(self, db, user):
        subscription = upsert_subscription(db, user.id, "I-SUB1", "pro")
        at = datetime(2026, 3, 1, 12, 0, 0)

        assert transition(db, subscription, "active", at=at) is True
        assert subscription.status == "active"
        assert subscription.activated_at == at

    def test_reactivation_keeps_original_anchor(self, db, user):
        subscription = upsert_subscription(db, user.id, "I-SUB1", "pro")
        first = datetime(2026, 3, 1, 12, 0, 0)
        transition(db, subscription, "active", at=first)
        transition(db, subscription, "suspended", at=first + timedelta(days=40))

        assert transition(db, subscription, "active", at=first + timedelta(days=45)) is True
        assert subscription.activated_at == first
        assert subscription.suspended_at == first + timedelta(days=40)

    def test_same_state_is_noop(self, db, user):
        subscription = upsert_subscription(db, user.id, "I-SUB1", "pro")
        transition(db, subscription, "active", at=datetime(2026, 3, 1))

        assert transition(db, subscription, "active", at=datetime(2026, 4, 1)) is True
        assert subscription.activated_at == datetime(2026, 3, 1)

    def test_disallowed_transition_is_ignored(self, db, user):
        subscription = upsert_subscription(db, user.id, "I-SUB1", "pro")
        transition(db, subscription, "cancelled")

        assert transition(db, subscription, "active") is False
        assert subscription.status == "cancelled"
        assert subscription.activated_at is None

    def test_unknown_status_rejected(self, db, user):
        subscription = upsert_subscription(db, user.id, "I-SUB1", "pro")

        with pytest.raises(ValueError):
            transition(db, subscription, "paused")


class TestCurrentSubscription:
    def _add(self, db, user, paypal_id, status, created_at):
        subscription = UserSubscription(
            user_id=user.id,
            paypal_subscription_id=paypal_id,
            plan_type="pro",
            status=status,
            created_at=created_at,
        )
        db.add(subscription)
        db.commit()
        return subscription

    def test_none(self, db, user):
        assert get_current_for_user(db, user.id) is None

    def test_prefers_live_subscription(self, db, user):
        self._add(db, user, "I-OLD", "active", datetime(2026, 1, 1))
        self._add(db, user, "I-NEW", "cancelled", datetime(2026, 2, 1))

        assert get_current_for_user(db, user.id).paypal_subscription_id == "I-OLD"

    def test_falls_back_to_newest(self, db, user):
        self._add(db, user, "I-OLD", "expired", datetime(2026, 1, 1))
        self._add(db, user, "I-NEW", "cancelled", datetime(2026, 2, 1))

        assert get_current_for_user(db, user.id).paypal_subscription_id == "I-NEW"

    def test_ignores_other_users(self, db, user, other_user):
        self._add(db, other_user, "I-OTHER", "active", datetime(2026, 1, 1))

        assert get_current_for_user(db, user.id) is None
