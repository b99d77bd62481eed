"""
Tests for monthly allowance calculation.

Tests cover:
- Benefit parsing (unlimited, limited, not included)
- Per-period counting with no rollover
- Snapshot-first benefit resolution
- Plan snapshot recording
"""

import pytest
from datetime import datetime, timedelta, timezone

from content_access.access.clock import period_for
from content_access.access.models import UNLIMITED
from content_access.models.claim import ClaimStatus
from content_access.models.subscription import SubscriptionStatus
from content_access.services.allowance_calculator import (
    AllowanceCalculator,
    BENEFITS_SOURCE_LIVE_PLAN,
    BENEFITS_SOURCE_SNAPSHOT,
    build_entry,
    parse_benefit,
)


@pytest.fixture
def calculator(db_session, clock, settings):
    return AllowanceCalculator(db_session, clock=clock, settings=settings)


@pytest.fixture
def subscriber(make_user, make_plan, make_subscription):
    """Subscriber with games limited to 3 and files unlimited."""
    user = make_user()
    plan = make_plan({"game": 3, "file": True})
    subscription = make_subscription(user.id, plan)
    return user, plan, subscription


class TestParseBenefit:

    @pytest.mark.parametrize("value", [True, "unlimited"])
    def test_unlimited_values(self, value):
        assert parse_benefit(value) == UNLIMITED

    def test_positive_int_is_limit(self):
        assert parse_benefit(3) == 3

    @pytest.mark.parametrize("value", [0, -2, False, None, "3", 2.5, {}])
    def test_everything_else_is_not_included(self, value):
        assert parse_benefit(value) is None


class TestBuildEntry:

    def test_limited_entry(self):
        entry = build_entry("game", 3, used=1)

        assert entry.allowed == 3
        assert entry.remaining == 2
        assert entry.is_limited is True
        assert entry.has_reached_limit is False

    def test_limited_entry_at_limit(self):
        entry = build_entry("game", 3, used=4)

        assert entry.remaining == 0
        assert entry.has_reached_limit is True

    def test_unlimited_entry_never_reaches_limit(self):
        entry = build_entry("file", True, used=250)

        assert entry.is_unlimited
        assert entry.remaining == UNLIMITED
        assert entry.has_reached_limit is False

    def test_not_included_entry(self):
        entry = build_entry("workshop", None, used=0)

        assert entry.not_included is True
        assert entry.has_reached_limit is True
        assert entry.to_dict()["not_included"] is True


class TestMonthlyAllowances:

    def test_no_subscription_returns_none(self, calculator, make_user):
        user = make_user()

        assert calculator.calculate_monthly_allowances(user.id) is None

    def test_expired_subscription_is_ignored(self, calculator, make_user, make_plan, make_subscription, clock):
        user = make_user()
        plan = make_plan({"game": 3})
        make_subscription(user.id, plan, end_date=clock() - timedelta(days=1))

        assert calculator.calculate_monthly_allowances(user.id) is None

    def test_cancelled_subscription_is_ignored(self, calculator, make_user, make_plan, make_subscription):
        user = make_user()
        plan = make_plan({"game": 3})
        make_subscription(user.id, plan, status=SubscriptionStatus.CANCELLED)

        assert calculator.calculate_monthly_allowances(user.id) is None

    def test_counts_claims_in_current_period(self, calculator, subscriber, make_product, make_claim):
        user, _, subscription = subscriber
        make_claim(subscription, make_product("game"))

        snapshot = calculator.calculate_monthly_allowances(user.id)

        assert snapshot.period == "2025-11"
        game = snapshot.get("game")
        assert game.used == 1
        assert game.remaining == 2
        assert snapshot.get("file").allowed == UNLIMITED

    def test_no_rollover_between_months(self, calculator, subscriber, make_product, make_claim):
        user, _, subscription = subscriber
        for _ in range(3):
            make_claim(subscription, make_product("game"), period="2025-10")

        november = calculator.calculate_monthly_allowances(user.id)
        october = calculator.calculate_monthly_allowances(user.id, "2025-10")

        assert november.get("game").used == 0
        assert november.get("game").remaining == 3
        assert october.get("game").has_reached_limit is True

    def test_unused_allowance_does_not_carry_over(self, calculator, subscriber, clock):
        user, _, _ = subscriber
        clock.set(datetime(2025, 12, 1, 0, 0, tzinfo=timezone.utc))

        snapshot = calculator.calculate_monthly_allowances(user.id)

        assert snapshot.period == "2025-12"
        assert snapshot.get("game").allowed == 3

    def test_revoked_claims_do_not_count(self, calculator, subscriber, make_product, make_claim):
        user, _, subscription = subscriber
        make_claim(subscription, make_product("game"), status=ClaimStatus.REVOKED)
        make_claim(subscription, make_product("game"))

        entry = calculator.calculate_monthly_allowances(user.id).get("game")

        assert entry.used == 1
        assert entry.remaining == 2

    def test_bundle_children_do_not_count(self, calculator, subscriber, make_product, make_claim):
        user, _, subscription = subscriber
        parent = make_claim(subscription, make_product("game"))
        make_claim(subscription, make_product("game"), parent_claim_id=parent.id)

        assert calculator.calculate_monthly_allowances(user.id).get("game").used == 1

    def test_invalid_period_raises(self, calculator, subscriber):
        user, _, _ = subscriber

        with pytest.raises(ValueError):
            calculator.calculate_monthly_allowances(user.id, "2025-13")


class TestSnapshotResolution:

    def test_live_plan_used_without_snapshot(self, calculator, subscriber):
        user, _, _ = subscriber

        snapshot = calculator.calculate_monthly_allowances(user.id)

        assert snapshot.benefits_source == BENEFITS_SOURCE_LIVE_PLAN
        assert snapshot.plan_name == "Educator"

    def test_snapshot_wins_over_live_plan(self, calculator, make_user, make_plan, make_subscription):
        user = make_user()
        plan = make_plan({"game": 3})
        make_subscription(
            user.id,
            plan,
            plan_snapshot={"plan_id": plan.id, "plan_name": "Founders", "benefits": {"game": 5}},
        )

        snapshot = calculator.calculate_monthly_allowances(user.id)

        assert snapshot.benefits_source == BENEFITS_SOURCE_SNAPSHOT
        assert snapshot.plan_name == "Founders"
        assert snapshot.get("game").allowed == 5

    def test_ensure_plan_snapshot_records_once(self, calculator, subscriber, db_session):
        _, plan, subscription = subscriber

        assert calculator.ensure_plan_snapshot(subscription) is True
        db_session.commit()

        plan.benefits = {"game": 1}
        db_session.commit()

        assert calculator.ensure_plan_snapshot(subscription) is False
        benefits, source = calculator.effective_benefits(subscription)
        assert source == BENEFITS_SOURCE_SNAPSHOT
        assert benefits == {"game": 3, "file": True}


class TestPeriodFor:

    def test_period_uses_billing_timezone(self):
        moment = datetime(2025, 12, 1, 2, 0, tzinfo=timezone.utc)

        assert period_for(moment) == "2025-12"
        assert period_for(moment, timezone(timedelta(hours=-5))) == "2025-11"

    def test_naive_datetimes_are_treated_as_utc(self):
        assert period_for(datetime(2025, 1, 31, 23, 59)) == "2025-01"
