"""Unit tests for subscription state and capacity rules."""

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from app.core.utils.time import utcnow
from app.modules.subscriptions.models import Subscription, SubscriptionPlan, SubscriptionStatus


pytestmark = pytest.mark.unit


def build_plan(max_users: int = 5, max_admins: int = 1) -> SubscriptionPlan:
    return SubscriptionPlan(
        name="trial",
        display_name="Free Trial",
        type="trial",
        price=Decimal("0"),
        max_users=max_users,
        max_admins=max_admins,
    )


def build_subscription(**overrides) -> Subscription:
    now = utcnow()
    values = {
        "tenant_id": uuid4(),
        "plan_id": uuid4(),
        "status": SubscriptionStatus.TRIAL.value,
        "current_period_start": now,
        "current_period_end": now + timedelta(days=14),
        "trial_end": now + timedelta(days=14),
        "current_users": 0,
        "current_admins": 0,
    }
    values.update(overrides)
    return Subscription(**values)


class TestCapacity:
    def test_room_left(self):
        subscription = build_subscription(current_users=4)

        assert subscription.can_add_users(build_plan())
        assert not subscription.can_add_users(build_plan(), count=2)

    def test_full(self):
        subscription = build_subscription(current_users=5, current_admins=1)

        assert not subscription.can_add_users(build_plan())
        assert not subscription.can_add_admins(build_plan())

    def test_usage_never_goes_negative(self):
        subscription = build_subscription(current_users=1, current_admins=0)

        subscription.adjust_usage(users=-2, admins=-1)

        assert subscription.current_users == 0
        assert subscription.current_admins == 0
        assert subscription.usage_updated_at is not None


class TestStatus:
    def test_running_trial_is_active(self):
        assert build_subscription().is_active

    def test_ended_trial_is_inactive(self):
        subscription = build_subscription(trial_end=utcnow() - timedelta(minutes=1))

        assert subscription.is_trial_expired
        assert not subscription.is_active

    def test_paid_subscription_follows_period(self):
        current = build_subscription(status=SubscriptionStatus.ACTIVE.value)
        lapsed = build_subscription(
            status=SubscriptionStatus.ACTIVE.value,
            current_period_end=utcnow() - timedelta(days=1),
        )

        assert current.is_active
        assert not lapsed.is_active

    @pytest.mark.parametrize("status", ["suspended", "cancelled", "expired"])
    def test_terminated_statuses(self, status):
        assert not build_subscription(status=status).is_active

    def test_past_due_keeps_access_until_period_end(self):
        subscription = build_subscription(status=SubscriptionStatus.PAST_DUE.value)

        assert subscription.is_active

    def test_past_due_loses_access_after_period_end(self):
        subscription = build_subscription(
            status=SubscriptionStatus.PAST_DUE.value,
            current_period_end=utcnow() - timedelta(hours=1),
        )

        assert not subscription.is_active
