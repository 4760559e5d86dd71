"""
Usage overrun checks for Statbill billing.
Run daily (``flask check-usage``): warns subscribers who outgrew their plan,
alerts the team about enterprise overages and locks dashboards whose grace
period ran out.
"""
import logging
from datetime import date, timedelta
from typing import Optional

from flask import current_app

from statbill.billing.plans import get_enterprise_plan, get_regular_plan, suggest_plan
from statbill.extensions import db
from statbill.models.subscription import Subscription, SubscriptionStatus
from statbill.models.user import User
from statbill.services.quota_service import LAST_CYCLE, QuotaService
from statbill.utils.email import (
    dashboard_locked, enterprise_over_limit_internal_email, over_limit_email, send_email,
)

logger = logging.getLogger(__name__)


class UsageCheckService:
    """Daily pageview allowance enforcement."""

    @staticmethod
    def run(today: Optional[date] = None, dry_run: bool = False) -> dict:
        """Run every check once.

        Args:
            today: Reference day, defaults to date.today()
            dry_run: Log what would happen without writing or sending anything

        Returns:
            Dict with counts per outcome
        """
        today = today or date.today()
        report = {
            'checked': 0,
            'over_limit': 0,
            'enterprise_alerts': 0,
            'locked': 0,
            'grace_cleared': 0,
        }

        for subscription in UsageCheckService.subscriptions_due(today):
            report['checked'] += 1
            outcome = UsageCheckService.check_subscription(subscription, today, dry_run)
            if outcome:
                report[outcome] += 1

        for user in UsageCheckService.expired_grace_periods(today):
            outcome = UsageCheckService.check_grace_period(user, today, dry_run)
            if outcome:
                report[outcome] += 1

        if not dry_run:
            db.session.commit()

        logger.info('Usage check finished%s: %s', ' (dry run)' if dry_run else '', report)
        return report

    @staticmethod
    def subscriptions_due(today: date):
        """Active subscriptions whose billing cycle rolled over yesterday."""
        return Subscription.query.filter(
            Subscription.status == SubscriptionStatus.ACTIVE,
            Subscription.last_bill_date == today - timedelta(days=1),
        ).all()

    @staticmethod
    def expired_grace_periods(today: date):
        return User.query.filter(
            User.grace_period_end.isnot(None),
            User.grace_period_end < today,
            User.dashboard_locked.is_(False),
        ).all()

    @staticmethod
    def _margin() -> float:
        return current_app.config.get('PAGEVIEW_ALLOWANCE_MARGIN', 0.0)

    @staticmethod
    def check_subscription(subscription: Subscription, today: date,
                           dry_run: bool = False) -> Optional[str]:
        """Check one subscription; returns the report key of the outcome, if any."""
        user = subscription.user
        monthly_pageviews = QuotaService.monthly_pageview_usage(user, today=today)

        plan = get_regular_plan(subscription)
        if plan is not None:
            if not QuotaService.exceeds_last_two_usage_cycles(
                monthly_pageviews, plan.monthly_pageview_limit, UsageCheckService._margin()
            ):
                return None
            if user.grace_period_end is not None:
                # Already warned; the grace period check takes it from here
                return None

            suggested = suggest_plan(plan, monthly_pageviews[LAST_CYCLE].total)
            logger.info('User %s outgrew plan %s, suggesting %s', user.id, plan.monthly_product_id,
                        getattr(suggested, 'volume', suggested))
            if not dry_run:
                user.grace_period_end = today + timedelta(
                    days=current_app.config.get('GRACE_PERIOD_DAYS', 7)
                )
                send_email(over_limit_email(user, monthly_pageviews, suggested))
            return 'over_limit'

        enterprise_plan = get_enterprise_plan(subscription)
        if enterprise_plan is None:
            logger.warning('Subscription %s has unknown plan %s', subscription.id, subscription.plan_id)
            return None

        site_usage = QuotaService.site_usage(user)
        pageviews_exceeded = QuotaService.exceeds_last_two_usage_cycles(
            monthly_pageviews, enterprise_plan.monthly_pageview_limit, UsageCheckService._margin()
        )
        sites_exceeded = site_usage > enterprise_plan.site_limit
        if not (pageviews_exceeded or sites_exceeded):
            return None

        logger.info('Enterprise user %s is over their plan (pageviews=%s, sites=%s)',
                    user.id, pageviews_exceeded, sites_exceeded)
        if not dry_run:
            send_email(enterprise_over_limit_internal_email(
                user, monthly_pageviews, site_usage, enterprise_plan.site_limit
            ))
        return 'enterprise_alerts'

    @staticmethod
    def check_grace_period(user: User, today: date, dry_run: bool = False) -> Optional[str]:
        """Lock the dashboard if the user is still over the limit, else end the grace period."""
        subscription = user.subscription
        plan = get_regular_plan(subscription, only_non_expired=True)
        monthly_pageviews = QuotaService.monthly_pageview_usage(user, today=today)

        still_over = plan is not None and QuotaService.exceeds_last_two_usage_cycles(
            monthly_pageviews, plan.monthly_pageview_limit, UsageCheckService._margin()
        )

        if not still_over:
            logger.info('Grace period of user %s ended within limits', user.id)
            if not dry_run:
                user.grace_period_end = None
            return 'grace_cleared'

        suggested = suggest_plan(plan, monthly_pageviews[LAST_CYCLE].total)
        logger.info('Locking dashboard of user %s', user.id)
        if not dry_run:
            user.dashboard_locked = True
            send_email(dashboard_locked(user, monthly_pageviews, suggested))
        return 'locked'
