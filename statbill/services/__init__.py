"""
Services package for Statbill.
Contains business logic separated from routes.
"""

from statbill.services.quota_service import QuotaService
from statbill.services.subscription_service import SubscriptionService
from statbill.services.usage_check_service import UsageCheckService

__all__ = [
    'QuotaService',
    'SubscriptionService',
    'UsageCheckService',
]
