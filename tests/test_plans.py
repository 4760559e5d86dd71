# =============================================================================
# Statbill - Plan Catalog Tests
# =============================================================================
#
# NOTE: The `app` fixture already pushes an app context (via `with app.app_context():`
# in conftest.py). Do NOT wrap test bodies with `with app.app_context():`.
# =============================================================================

import pytest
from datetime import date, timedelta

from statbill.billing.features import Feature
from statbill.billing.plans import (
    ENTERPRISE, LATEST_GENERATION, PLANS, UNLIMITED, VOLUMES,
    AvailablePlans, Interval, PlanKind,
    available_plans_for, find_by_product_id, get_plan_by_volume, get_regular_plan,
    plans_for, subscription_interval, suggest_plan,
)
from statbill.models.subscription import SubscriptionStatus


# =============================================================================
# Catalog Tests
# =============================================================================

class TestCatalog:
    """Tests for the static plan catalog."""

    def test_plan_is_frozen(self):
        """Plan dataclass is frozen (immutable)."""
        plan = plans_for(PlanKind.GROWTH)[0]
        with pytest.raises(AttributeError):
            plan.site_limit = 100

    def test_one_plan_per_kind_volume_generation(self):
        keys = [(p.kind, p.monthly_pageview_limit, p.generation) for p in PLANS]
        assert len(keys) == len(set(keys))

    def test_latest_tiers_cover_all_volumes(self):
        for kind in (PlanKind.GROWTH, PlanKind.BUSINESS):
            volumes = [p.monthly_pageview_limit for p in plans_for(kind)]
            assert volumes == list(VOLUMES)

    def test_product_ids_are_unique(self):
        ids = [p.monthly_product_id for p in PLANS] + [p.yearly_product_id for p in PLANS]
        assert len(ids) == len(set(ids))

    def test_volume_label(self):
        assert plans_for(PlanKind.GROWTH)[1].volume == '100k'

    def test_yearly_price_is_ten_months(self):
        plan = plans_for(PlanKind.BUSINESS)[0]
        assert plan.yearly_cost == plan.monthly_cost * 10

    def test_grandfathered_growth_limits(self):
        plan = plans_for(PlanKind.GROWTH, 3)[0]
        assert plan.team_member_limit == UNLIMITED
        assert plan.data_retention_in_years is None
        assert Feature.STATS_API in plan.features

    def test_product_id_by_interval(self):
        plan = plans_for(PlanKind.GROWTH)[0]
        assert plan.product_id(Interval.MONTHLY) == plan.monthly_product_id
        assert plan.product_id(Interval.YEARLY) == plan.yearly_product_id
        assert plan.product_id('yearly') == plan.yearly_product_id


# =============================================================================
# Lookup Tests
# =============================================================================

class TestLookups:
    """Tests for plan lookups."""

    @pytest.mark.parametrize('kind', [PlanKind.GROWTH, PlanKind.BUSINESS])
    def test_get_plan_by_volume_exact_match(self, kind):
        plans = plans_for(kind)
        for volume in VOLUMES:
            plan = get_plan_by_volume(plans, volume)
            assert plan.monthly_pageview_limit == volume
            assert plan.kind == kind

    def test_get_plan_by_volume_unknown(self):
        assert get_plan_by_volume(plans_for(PlanKind.GROWTH), 123) is None

    def test_get_plan_by_volume_enterprise(self):
        assert get_plan_by_volume(plans_for(PlanKind.GROWTH), ENTERPRISE) is None
        assert get_plan_by_volume(plans_for(PlanKind.BUSINESS), ENTERPRISE) is None

    def test_find_by_product_id(self):
        plan = plans_for(PlanKind.BUSINESS)[2]
        assert find_by_product_id(plan.monthly_product_id) == plan
        assert find_by_product_id(plan.yearly_product_id) == plan
        assert find_by_product_id('price_unknown') is None
        assert find_by_product_id(None) is None

    def test_available_volumes_dedup_keeps_order(self):
        growth = plans_for(PlanKind.GROWTH)[:2]
        business = plans_for(PlanKind.BUSINESS)[:3]
        available = AvailablePlans(growth=growth, business=business)
        assert available.volumes == [10_000, 100_000, 200_000]

    def test_available_plans_find(self):
        available = available_plans_for(None)
        business = available.business[0]
        assert available.find(business.yearly_product_id) == business
        assert available.find(plans_for(PlanKind.GROWTH, 3)[0].monthly_product_id) is None


# =============================================================================
# Subscription-based Lookups
# =============================================================================

class TestSubscriptionLookups:
    """Tests for lookups driven by the user's subscription."""

    def test_no_subscription(self, app):
        assert get_regular_plan(None) is None
        assert subscription_interval(None) is None
        available = available_plans_for(None)
        assert all(p.generation == LATEST_GENERATION for p in available.growth)

    def test_regular_plan_and_interval(self, app, user, subscribe):
        plan = plans_for(PlanKind.GROWTH)[1]
        subscription = subscribe(user, plan.yearly_product_id)

        assert get_regular_plan(subscription) == plan
        assert subscription_interval(subscription) == Interval.YEARLY

    def test_expired_subscription_ignored_when_asked(self, app, user, subscribe):
        plan = plans_for(PlanKind.GROWTH)[1]
        subscription = subscribe(
            user, plan.monthly_product_id,
            status=SubscriptionStatus.DELETED,
            next_bill_date=date.today() - timedelta(days=1),
        )

        assert get_regular_plan(subscription) == plan
        assert get_regular_plan(subscription, only_non_expired=True) is None

    def test_deleted_subscription_still_paid_for(self, app, user, subscribe):
        plan = plans_for(PlanKind.GROWTH)[1]
        subscription = subscribe(
            user, plan.monthly_product_id,
            status=SubscriptionStatus.DELETED,
            next_bill_date=date.today() + timedelta(days=10),
        )

        assert get_regular_plan(subscription, only_non_expired=True) == plan

    def test_enterprise_subscription_interval(self, app, user, subscribe, enterprise_plan):
        subscription = subscribe(user, enterprise_plan.product_id)

        assert get_regular_plan(subscription) is None
        assert subscription_interval(subscription) == Interval.YEARLY

    def test_grandfathered_owner_keeps_generation(self, app, user, subscribe):
        subscription = subscribe(user, plans_for(PlanKind.GROWTH, 3)[0].monthly_product_id)

        available = available_plans_for(subscription)
        assert all(p.generation == 3 for p in available.growth)
        assert all(p.generation == LATEST_GENERATION for p in available.business)


# =============================================================================
# Suggested Plan Tests
# =============================================================================

class TestSuggestPlan:
    """Tests for suggest_plan."""

    def test_suggests_first_plan_above_usage(self):
        owned = plans_for(PlanKind.GROWTH)[0]
        suggested = suggest_plan(owned, 32_100)
        assert suggested.monthly_pageview_limit == 100_000
        assert suggested.kind == PlanKind.GROWTH

    def test_suggestion_keeps_tier(self):
        owned = plans_for(PlanKind.BUSINESS)[0]
        assert suggest_plan(owned, 150_000).kind == PlanKind.BUSINESS

    def test_usage_equal_to_limit_needs_next_plan(self):
        owned = plans_for(PlanKind.GROWTH)[0]
        assert suggest_plan(owned, 100_000).monthly_pageview_limit == 200_000

    def test_suggests_enterprise_above_catalog(self):
        owned = plans_for(PlanKind.GROWTH)[0]
        assert suggest_plan(owned, 25_000_000) == ENTERPRISE
