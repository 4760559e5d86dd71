"""
Database models for Statbill.
"""
from statbill.models.user import User, ApiKey
from statbill.models.site import Site, Goal, Funnel, site_memberships
from statbill.models.usage import DailyUsage
from statbill.models.subscription import Subscription, SubscriptionStatus, EnterprisePlan

__all__ = [
    'User',
    'ApiKey',
    'Site',
    'Goal',
    'Funnel',
    'site_memberships',
    'DailyUsage',
    'Subscription',
    'SubscriptionStatus',
    'EnterprisePlan',
]
