"""
Plan catalog for Statbill billing.
Defines the Growth and Business tiers per generation and the lookups used
by the plan picker, the quota checks and the usage notifications.
"""
import enum
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional, Tuple, Union

from statbill.billing.features import Feature
from statbill.utils.text import large_number_format


class PlanKind(str, enum.Enum):
    """Plan tiers."""
    GROWTH = 'growth'
    BUSINESS = 'business'
    ENTERPRISE = 'enterprise'


class Interval(str, enum.Enum):
    """Billing intervals."""
    MONTHLY = 'monthly'
    YEARLY = 'yearly'


# Marker for volumes above every catalog plan ("contact us" territory)
ENTERPRISE = 'enterprise'

UNLIMITED = 'unlimited'

LATEST_GENERATION = 4


@dataclass(frozen=True)
class Plan:
    """Immutable catalog plan."""
    kind: PlanKind
    generation: int
    monthly_pageview_limit: int
    monthly_product_id: str
    yearly_product_id: str
    site_limit: int
    team_member_limit: Union[int, str]  # UNLIMITED or a number
    data_retention_in_years: Optional[int] = None
    monthly_cost: Optional[Decimal] = None
    yearly_cost: Optional[Decimal] = None
    features: Tuple[Feature, ...] = field(default_factory=tuple)

    @property
    def volume(self) -> str:
        """Short volume label, e.g. '100k'."""
        return large_number_format(self.monthly_pageview_limit)

    def product_id(self, interval: Interval) -> str:
        if Interval(interval) == Interval.YEARLY:
            return self.yearly_product_id
        return self.monthly_product_id


@dataclass(frozen=True)
class AvailablePlans:
    """Growth and Business plans offered to one user, ordered by volume."""
    growth: List[Plan]
    business: List[Plan]

    @property
    def volumes(self) -> List[int]:
        """Union of growth and business volumes, first occurrence order kept."""
        seen = []
        for plan in self.growth + self.business:
            if plan.monthly_pageview_limit not in seen:
                seen.append(plan.monthly_pageview_limit)
        return seen

    def for_kind(self, kind: PlanKind) -> List[Plan]:
        return self.business if PlanKind(kind) == PlanKind.BUSINESS else self.growth

    def find(self, product_id: str) -> Optional[Plan]:
        for plan in self.growth + self.business:
            if product_id in (plan.monthly_product_id, plan.yearly_product_id):
                return plan
        return None


VOLUMES = (10_000, 100_000, 200_000, 500_000, 1_000_000, 2_000_000, 5_000_000, 10_000_000)


def _tier(kind, generation, monthly_costs, **limits):
    """One plan per catalog volume; yearly price is ten months."""
    plans = []
    for volume, cost in zip(VOLUMES, monthly_costs):
        slug = f'price_{kind.value}_v{generation}_{large_number_format(volume).lower()}'
        plans.append(Plan(
            kind=kind,
            generation=generation,
            monthly_pageview_limit=volume,
            monthly_product_id=f'{slug}_monthly',
            yearly_product_id=f'{slug}_yearly',
            monthly_cost=Decimal(cost),
            yearly_cost=Decimal(cost) * 10,
            **limits,
        ))
    return tuple(plans)


PLANS = (
    # Grandfathered growth plans: unlimited team, no retention cap
    _tier(
        PlanKind.GROWTH, 3, (9, 19, 29, 49, 69, 89, 129, 169),
        team_member_limit=UNLIMITED,
        site_limit=50,
        data_retention_in_years=None,
        features=(Feature.GOALS, Feature.PROPS, Feature.STATS_API),
    )
    + _tier(
        PlanKind.GROWTH, 4, (9, 19, 29, 49, 69, 89, 129, 169),
        team_member_limit=3,
        site_limit=10,
        data_retention_in_years=3,
        features=(Feature.GOALS,),
    )
    + _tier(
        PlanKind.BUSINESS, 4, (19, 39, 59, 99, 139, 179, 259, 339),
        team_member_limit=10,
        site_limit=50,
        data_retention_in_years=5,
        features=(
            Feature.GOALS, Feature.PROPS, Feature.FUNNELS,
            Feature.REVENUE_GOALS, Feature.STATS_API,
        ),
    )
)


def plans_for(kind: PlanKind, generation: int = LATEST_GENERATION) -> List[Plan]:
    """Catalog plans of one tier and generation, ordered by volume."""
    kind = PlanKind(kind)
    return sorted(
        (p for p in PLANS if p.kind == kind and p.generation == generation),
        key=lambda p: p.monthly_pageview_limit,
    )


def find_by_product_id(product_id: Optional[str]) -> Optional[Plan]:
    if not product_id:
        return None
    for plan in PLANS:
        if product_id in (plan.monthly_product_id, plan.yearly_product_id):
            return plan
    return None


def get_plan_by_volume(plans: List[Plan], volume) -> Optional[Plan]:
    """Plan with exactly this volume limit. ENTERPRISE never matches."""
    if volume == ENTERPRISE:
        return None
    for plan in plans:
        if plan.monthly_pageview_limit == volume:
            return plan
    return None


def get_regular_plan(subscription, only_non_expired: bool = False) -> Optional[Plan]:
    """Catalog plan behind a subscription, None for enterprise or no subscription.

    Args:
        subscription: Subscription row or None
        only_non_expired: ignore deleted subscriptions whose paid period is over
    """
    if subscription is None:
        return None
    if only_non_expired and subscription.is_expired:
        return None
    return find_by_product_id(subscription.plan_id)


def get_enterprise_plan(subscription):
    """Enterprise plan of the subscription owner matching its product id."""
    if subscription is None or subscription.user is None:
        return None
    return subscription.user.enterprise_plans.filter_by(
        product_id=subscription.plan_id
    ).first()


def subscription_interval(subscription) -> Optional[Interval]:
    """Billing interval of a subscription, None when it can't be determined."""
    if subscription is None:
        return None

    plan = find_by_product_id(subscription.plan_id)
    if plan is not None:
        if subscription.plan_id == plan.yearly_product_id:
            return Interval.YEARLY
        return Interval.MONTHLY

    enterprise_plan = get_enterprise_plan(subscription)
    if enterprise_plan is not None:
        try:
            return Interval(enterprise_plan.billing_interval)
        except ValueError:
            return None
    return None


def available_plans_for(subscription) -> AvailablePlans:
    """Plans offered to the owner of ``subscription``.

    Owners of a grandfathered growth plan keep seeing their generation's
    growth plans; everybody else sees the latest generation.
    """
    owned = get_regular_plan(subscription)
    growth_generation = LATEST_GENERATION
    if owned is not None and owned.kind == PlanKind.GROWTH and owned.generation < LATEST_GENERATION:
        growth_generation = owned.generation

    return AvailablePlans(
        growth=plans_for(PlanKind.GROWTH, growth_generation),
        business=plans_for(PlanKind.BUSINESS, LATEST_GENERATION),
    )


def suggest_plan(owned_plan: Optional[Plan], usage_during_cycle: int):
    """Smallest plan of the owned tier and generation that fits the usage.

    Returns ENTERPRISE when no catalog plan is large enough.
    """
    if owned_plan is not None:
        candidates = plans_for(owned_plan.kind, owned_plan.generation)
    else:
        candidates = plans_for(PlanKind.GROWTH)

    for plan in candidates:
        if usage_during_cycle < plan.monthly_pageview_limit:
            return plan
    return ENTERPRISE
