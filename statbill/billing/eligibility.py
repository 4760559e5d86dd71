"""
Checkout eligibility for the plan picker.

Decides whether the checkout/change-plan button of a plan box is enabled,
what it says, and which features the user would lose by switching.
"""
from dataclasses import dataclass
from typing import List, Optional

from statbill.billing.features import Feature, display_name
from statbill.billing.plans import Interval, Plan, PlanKind
from statbill.services.quota_service import PlanLimitExceeded, QuotaService, Usage
from statbill.utils.text import pretty_join

CURRENTLY_ON_THIS_PLAN = 'Currently on this plan'
USAGE_EXCEEDS_PLAN = 'Your usage exceeds this plan'
UPDATE_BILLING_DETAILS = 'Please update your billing details first'


@dataclass(frozen=True)
class Eligibility:
    allowed: bool
    reason: Optional[str] = None


ALLOWED = Eligibility(allowed=True)


def blocked(reason: Optional[str] = None) -> Eligibility:
    return Eligibility(allowed=False, reason=reason)


@dataclass(frozen=True)
class CheckoutState:
    """Everything the plan box needs to render its call to action."""
    product_id: str
    eligibility: Eligibility
    link_text: Optional[str] = None
    confirm_message: Optional[str] = None
    change_plan: bool = False

    @property
    def disabled(self) -> bool:
        return not self.eligibility.allowed

    @property
    def disabled_message(self) -> Optional[str]:
        return self.eligibility.reason


def change_plan_link_text(owned_plan: Optional[Plan], plan: Plan,
                          current_interval: Optional[Interval],
                          selected_interval: Interval) -> Optional[str]:
    """Label of the change-plan button; None when the user owns no plan."""
    if owned_plan is None:
        return None

    from_kind, to_kind = owned_plan.kind, plan.kind
    from_volume, to_volume = owned_plan.monthly_pageview_limit, plan.monthly_pageview_limit

    if from_kind == PlanKind.BUSINESS and to_kind == PlanKind.GROWTH:
        return 'Downgrade to Growth'
    if from_kind == PlanKind.GROWTH and to_kind == PlanKind.BUSINESS:
        return 'Upgrade to Business'
    if from_volume == to_volume and current_interval == selected_interval:
        return CURRENTLY_ON_THIS_PLAN
    if from_volume == to_volume:
        return 'Change billing interval'
    if from_volume > to_volume:
        return 'Downgrade'
    return 'Upgrade'


def can_subscribe(usage: Usage, plan: Plan, subscription=None,
                  link_text: Optional[str] = None, available: bool = True) -> Eligibility:
    """Whether checkout for ``plan`` is allowed.

    Rules are evaluated in order and the first match wins.

    Args:
        usage: usage snapshot of the user
        plan: plan shown in the box
        subscription: the user's current subscription, if any
        link_text: result of change_plan_link_text for this plan
        available: False when the box shows a fallback plan for an enterprise volume
    """
    if usage.sites == 0:
        return blocked()

    subscription_deleted = subscription is not None and subscription.is_deleted
    if link_text == CURRENTLY_ON_THIS_PLAN and not subscription_deleted:
        return blocked()

    if available:
        try:
            QuotaService.ensure_can_subscribe_to_plan(usage, plan)
        except PlanLimitExceeded:
            return blocked(USAGE_EXCEEDS_PLAN)

    if subscription is not None and subscription.billing_details_expired:
        return blocked(UPDATE_BILLING_DETAILS)

    return ALLOWED


def features_to_lose(usage: Usage, plan: Plan) -> List[Feature]:
    return [feature for feature in usage.features if feature not in plan.features]


def losing_features_message(features: List[Feature]) -> Optional[str]:
    """Confirmation prompt shown before a downgrade that drops used features."""
    if not features:
        return None

    names = pretty_join(display_name(feature) for feature in features)
    these = 'this feature' if len(features) == 1 else 'these features'
    return (
        f'This plan does not support {names}, which you are currently using. '
        f'Please note that by subscribing to this plan you will lose access to {these}.'
    )


def checkout_state(usage: Usage, plan: Plan, selected_interval: Interval,
                   owned_plan: Optional[Plan] = None, current_interval: Optional[Interval] = None,
                   subscription=None, available: bool = True) -> CheckoutState:
    """Resolve the call to action of one plan box."""
    link_text = change_plan_link_text(owned_plan, plan, current_interval, selected_interval)
    change_plan = (
        owned_plan is not None
        and subscription is not None
        and subscription.is_resumable
    )

    return CheckoutState(
        product_id=plan.product_id(selected_interval),
        eligibility=can_subscribe(usage, plan, subscription, link_text, available),
        link_text=link_text,
        confirm_message=losing_features_message(features_to_lose(usage, plan)),
        change_plan=change_plan,
    )


def suggest_tier(usage: Usage, owned_plan: Optional[Plan], growth_plans: List[Plan]) -> Optional[PlanKind]:
    """Tier to highlight as "Recommended" for users without a plan.

    Growth when the usage fits the smallest Growth plan's team, site and
    feature limits, Business otherwise. Pageviews are left to the slider.
    """
    if owned_plan is not None or usage.sites == 0 or not growth_plans:
        return None

    growth = growth_plans[0]
    fits = (
        QuotaService.within_limit(usage.team_members, growth.team_member_limit)
        and QuotaService.within_limit(usage.sites, growth.site_limit)
        and not features_to_lose(usage, growth)
    )
    return PlanKind.GROWTH if fits else PlanKind.BUSINESS
