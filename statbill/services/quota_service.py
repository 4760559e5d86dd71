"""
Quota service for Statbill billing.
Computes usage snapshots (sites, team members, features, billable pageviews
per billing cycle) and checks them against plan limits.
"""
import calendar
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func

from statbill.billing.features import Feature
from statbill.billing.plans import UNLIMITED
from statbill.extensions import db
from statbill.models.site import Site, Goal, Funnel, site_memberships
from statbill.models.usage import DailyUsage
from statbill.models.user import ApiKey, User
from statbill.utils.text import DateRange


LAST_30_DAYS = 'last_30_days'
CURRENT_CYCLE = 'current_cycle'
LAST_CYCLE = 'last_cycle'
PENULTIMATE_CYCLE = 'penultimate_cycle'

BILLING_CYCLES = (CURRENT_CYCLE, LAST_CYCLE, PENULTIMATE_CYCLE)


class PlanLimitExceeded(Exception):
    """Raised when usage does not fit into a plan's limits."""

    def __init__(self, exceeded_limits: List[str]):
        self.exceeded_limits = exceeded_limits
        super().__init__(
            f"Usage exceeds plan limits: {', '.join(exceeded_limits)}"
        )


@dataclass(frozen=True)
class UsageCycle:
    """Billable usage over one cycle."""
    date_range: DateRange
    pageviews: int = 0
    custom_events: int = 0

    @property
    def total(self) -> int:
        return self.pageviews + self.custom_events


@dataclass(frozen=True)
class Usage:
    """Usage snapshot for one user, computed per request."""
    sites: int
    team_members: int
    monthly_pageviews: Dict[str, UsageCycle]
    features: Tuple[Feature, ...] = field(default_factory=tuple)

    @property
    def last_30_days(self) -> Optional[UsageCycle]:
        return self.monthly_pageviews.get(LAST_30_DAYS)


def _shift_months(day: date, months: int) -> date:
    """Move by whole months, clamping to the last day of the target month."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def cycle_date_range(cycle: str, last_bill_date: Optional[date] = None,
                     today: Optional[date] = None) -> DateRange:
    """Date range of a usage cycle.

    Billing cycles are anchored on the subscription's last bill date; the
    rolling 30-day window ends yesterday.
    """
    if cycle == LAST_30_DAYS:
        today = today or date.today()
        return DateRange(today - timedelta(days=30), today - timedelta(days=1))

    if last_bill_date is None:
        raise ValueError(f"{cycle} requires a last bill date")

    offsets = {CURRENT_CYCLE: 0, LAST_CYCLE: -1, PENULTIMATE_CYCLE: -2}
    if cycle not in offsets:
        raise ValueError(f"Unknown usage cycle: {cycle}")

    start = _shift_months(last_bill_date, offsets[cycle])
    end = _shift_months(last_bill_date, offsets[cycle] + 1) - timedelta(days=1)
    return DateRange(start, end)


class QuotaService:
    """Usage computation and plan limit checks."""

    @staticmethod
    def usage_cycle(user: User, cycle: str, last_bill_date: Optional[date] = None,
                    today: Optional[date] = None) -> UsageCycle:
        """Sum billable events over all sites owned by ``user`` in a cycle."""
        date_range = cycle_date_range(cycle, last_bill_date, today)

        pageviews, custom_events = (
            db.session.query(
                func.coalesce(func.sum(DailyUsage.pageviews), 0),
                func.coalesce(func.sum(DailyUsage.custom_events), 0),
            )
            .select_from(DailyUsage)
            .join(Site, Site.id == DailyUsage.site_id)
            .filter(
                Site.owner_id == user.id,
                DailyUsage.date >= date_range.first,
                DailyUsage.date <= date_range.last,
            )
            .one()
        )
        return UsageCycle(date_range=date_range, pageviews=int(pageviews),
                          custom_events=int(custom_events))

    @staticmethod
    def monthly_pageview_usage(user: User, today: Optional[date] = None) -> Dict[str, UsageCycle]:
        """Billing-cycle usage for subscribers, rolling 30 days otherwise."""
        subscription = user.subscription
        last_bill_date = subscription.last_bill_date if subscription else None

        if last_bill_date is None:
            return {LAST_30_DAYS: QuotaService.usage_cycle(user, LAST_30_DAYS, today=today)}

        return {
            cycle: QuotaService.usage_cycle(user, cycle, last_bill_date)
            for cycle in BILLING_CYCLES
        }

    @staticmethod
    def site_usage(user: User) -> int:
        return user.sites.count()

    @staticmethod
    def team_member_usage(user: User) -> int:
        """Distinct members across owned sites, the owner excluded."""
        return (
            db.session.query(func.count(func.distinct(site_memberships.c.user_id)))
            .select_from(site_memberships)
            .join(Site, Site.id == site_memberships.c.site_id)
            .filter(Site.owner_id == user.id, site_memberships.c.user_id != user.id)
            .scalar()
        ) or 0

    @staticmethod
    def features_usage(user: User) -> Tuple[Feature, ...]:
        """Gated features the user currently relies on."""
        site_ids = [site.id for site in user.sites]
        used = []

        if any(site.allowed_event_props for site in user.sites):
            used.append(Feature.PROPS)

        if site_ids and Funnel.query.filter(Funnel.site_id.in_(site_ids)).first():
            used.append(Feature.FUNNELS)

        if site_ids and Goal.query.filter(
            Goal.site_id.in_(site_ids), Goal.currency.isnot(None)
        ).first():
            used.append(Feature.REVENUE_GOALS)

        if ApiKey.query.filter_by(user_id=user.id).first():
            used.append(Feature.STATS_API)

        return tuple(used)

    @staticmethod
    def usage(user: User, with_features: bool = False, today: Optional[date] = None) -> Usage:
        """Full usage snapshot for ``user``."""
        return Usage(
            sites=QuotaService.site_usage(user),
            team_members=QuotaService.team_member_usage(user),
            monthly_pageviews=QuotaService.monthly_pageview_usage(user, today=today),
            features=QuotaService.features_usage(user) if with_features else (),
        )

    @staticmethod
    def last_30_days_total(user: User, usage: Usage) -> int:
        if usage.last_30_days is not None:
            return usage.last_30_days.total
        return QuotaService.usage_cycle(user, LAST_30_DAYS).total

    @staticmethod
    def exceeds_last_two_usage_cycles(monthly_pageviews: Dict[str, UsageCycle], limit: int,
                                      margin: float = 0.0) -> bool:
        """True when both completed cycles went over ``limit`` (plus margin)."""
        allowance = limit + int(limit * margin)
        last = monthly_pageviews.get(LAST_CYCLE)
        penultimate = monthly_pageviews.get(PENULTIMATE_CYCLE)
        if last is None or penultimate is None:
            return False
        return last.total > allowance and penultimate.total > allowance

    @staticmethod
    def exceeds_monthly_pageview_limit(monthly_pageviews: Dict[str, UsageCycle], limit: int) -> bool:
        if LAST_30_DAYS in monthly_pageviews:
            return monthly_pageviews[LAST_30_DAYS].total > limit
        return QuotaService.exceeds_last_two_usage_cycles(monthly_pageviews, limit)

    @staticmethod
    def within_limit(value: int, limit) -> bool:
        return limit == UNLIMITED or limit is None or value <= limit

    @staticmethod
    def exceeded_limits(usage: Usage, plan) -> List[str]:
        """Names of the plan limits the usage does not fit into."""
        checks = [
            ('team_member_limit',
             not QuotaService.within_limit(usage.team_members, plan.team_member_limit)),
            ('site_limit',
             not QuotaService.within_limit(usage.sites, plan.site_limit)),
            ('monthly_pageview_limit',
             QuotaService.exceeds_monthly_pageview_limit(
                 usage.monthly_pageviews, plan.monthly_pageview_limit)),
        ]
        return [name for name, exceeded in checks if exceeded]

    @staticmethod
    def ensure_can_subscribe_to_plan(usage: Usage, plan) -> None:
        """Raise PlanLimitExceeded unless ``usage`` fits into ``plan``.

        Raises:
            PlanLimitExceeded: with the names of the exceeded limits
        """
        exceeded = QuotaService.exceeded_limits(usage, plan)
        if exceeded:
            raise PlanLimitExceeded(exceeded)
