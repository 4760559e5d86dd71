"""
Subscription service for Statbill billing.
Bridges the plan picker to Stripe: checkout sessions, in-place plan changes,
the billing portal and webhook-driven subscription sync.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

import stripe
from flask import current_app, url_for

from statbill.extensions import db
from statbill.models.subscription import Subscription, SubscriptionStatus
from statbill.models.user import User

logger = logging.getLogger(__name__)


STATUS_MAP = {
    'active': SubscriptionStatus.ACTIVE,
    'trialing': SubscriptionStatus.ACTIVE,
    'past_due': SubscriptionStatus.PAST_DUE,
    'unpaid': SubscriptionStatus.PAST_DUE,
    'paused': SubscriptionStatus.PAUSED,
    'canceled': SubscriptionStatus.DELETED,
    'incomplete_expired': SubscriptionStatus.DELETED,
}


def _to_date(timestamp: Optional[int]):
    if not timestamp:
        return None
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).date()


class SubscriptionService:
    """Service for managing user subscriptions and Stripe billing."""

    @staticmethod
    def get_or_create_stripe_customer(user: User) -> str:
        """Get or create a Stripe customer for the user.

        Args:
            user: User to get/create customer for

        Returns:
            Stripe customer ID
        """
        if user.stripe_customer_id:
            return user.stripe_customer_id

        customer = stripe.Customer.create(
            email=user.email,
            name=user.name,
            metadata={'user_id': str(user.id)},
        )

        user.stripe_customer_id = customer.id
        db.session.commit()

        return customer.id

    @staticmethod
    def create_checkout_session(user: User, product_id: str) -> str:
        """Create a Stripe Checkout Session for a new subscription.

        Args:
            user: User subscribing
            product_id: Stripe price ID of the selected plan and interval

        Returns:
            Checkout session URL to redirect to
        """
        customer_id = SubscriptionService.get_or_create_stripe_customer(user)

        session = stripe.checkout.Session.create(
            customer=customer_id,
            line_items=[{
                'price': product_id,
                'quantity': 1,
            }],
            mode='subscription',
            success_url=url_for('billing.success', _external=True) + '?session_id={CHECKOUT_SESSION_ID}',
            cancel_url=url_for('billing.choose_plan', _external=True),
            metadata={'user_id': str(user.id)},
            subscription_data={'metadata': {'user_id': str(user.id)}},
        )

        logger.info('Checkout session created for user %s (price=%s)', user.id, product_id)
        return session.url

    @staticmethod
    def create_portal_session(user: User) -> str:
        """Create a Stripe Billing Portal session (payment method updates).

        Returns:
            Portal session URL to redirect to
        """
        customer_id = SubscriptionService.get_or_create_stripe_customer(user)

        session = stripe.billing_portal.Session.create(
            customer=customer_id,
            return_url=url_for('billing.choose_plan', _external=True),
        )

        return session.url

    @staticmethod
    def change_plan(user: User, product_id: str) -> Subscription:
        """Switch an existing subscription to another price, prorated.

        Args:
            user: Subscription owner
            product_id: Stripe price ID to switch to

        Returns:
            Updated Subscription

        Raises:
            ValueError: If the user has no provider-side subscription
        """
        subscription = user.subscription
        if subscription is None or not subscription.stripe_subscription_id:
            raise ValueError(f'User {user.id} has no subscription to change')

        remote = stripe.Subscription.retrieve(subscription.stripe_subscription_id)
        item_id = remote['items']['data'][0]['id']

        stripe.Subscription.modify(
            subscription.stripe_subscription_id,
            items=[{'id': item_id, 'price': product_id}],
            proration_behavior='create_prorations',
        )

        previous = subscription.plan_id
        subscription.plan_id = product_id
        db.session.commit()

        logger.info('Plan changed for user %s: %s -> %s', user.id, previous, product_id)
        return subscription

    @staticmethod
    def handle_webhook_event(payload: bytes, sig_header: str) -> dict:
        """Handle incoming Stripe webhook event.

        Args:
            payload: Raw request body
            sig_header: Stripe-Signature header value

        Returns:
            Dict with event type and processing result

        Raises:
            ValueError: If signature verification fails
        """
        webhook_secret = current_app.config['STRIPE_WEBHOOK_SECRET']

        try:
            event = stripe.Webhook.construct_event(payload, sig_header, webhook_secret)
        except stripe.error.SignatureVerificationError:
            raise ValueError("Invalid webhook signature")

        event_type = event['type']
        data = event['data']['object']
        result = {'event_type': event_type, 'handled': False}

        if event_type == 'checkout.session.completed':
            SubscriptionService._handle_checkout_completed(data)
            result['handled'] = True

        elif event_type in ('customer.subscription.created', 'customer.subscription.updated'):
            SubscriptionService.sync_subscription(data)
            result['handled'] = True

        elif event_type == 'customer.subscription.deleted':
            SubscriptionService._handle_subscription_deleted(data)
            result['handled'] = True

        return result

    @staticmethod
    def _find_user(data: dict) -> Optional[User]:
        user_id = (data.get('metadata') or {}).get('user_id')
        if user_id:
            return db.session.get(User, int(user_id))

        customer_id = data.get('customer')
        if customer_id:
            return User.query.filter_by(stripe_customer_id=customer_id).first()
        return None

    @staticmethod
    def _handle_checkout_completed(session_data: dict) -> None:
        """Remember the Stripe customer created during checkout."""
        user = SubscriptionService._find_user(session_data)
        if not user:
            logger.warning('Checkout completed for unknown user (customer=%s)',
                           session_data.get('customer'))
            return

        customer_id = session_data.get('customer')
        if customer_id and user.stripe_customer_id != customer_id:
            user.stripe_customer_id = customer_id
            db.session.commit()

    @staticmethod
    def sync_subscription(sub_data: dict) -> Optional[Subscription]:
        """Create or update the local Subscription from a Stripe subscription object."""
        user = SubscriptionService._find_user(sub_data)
        if not user:
            logger.warning('Subscription %s for unknown user', sub_data.get('id'))
            return None

        status = STATUS_MAP.get(sub_data.get('status'))
        if status is None:
            logger.info('Ignoring subscription %s in status %s',
                        sub_data.get('id'), sub_data.get('status'))
            return None

        items = (sub_data.get('items') or {}).get('data') or []
        price_id = items[0]['price']['id'] if items else None

        subscription = user.subscription
        if subscription is None:
            subscription = Subscription(user_id=user.id, plan_id=price_id or '')
            db.session.add(subscription)

        if price_id:
            subscription.plan_id = price_id
        subscription.status = status
        subscription.stripe_subscription_id = sub_data.get('id')
        subscription.stripe_customer_id = sub_data.get('customer')
        subscription.last_bill_date = _to_date(sub_data.get('current_period_start'))
        subscription.next_bill_date = _to_date(sub_data.get('current_period_end'))

        db.session.commit()
        return subscription

    @staticmethod
    def _handle_subscription_deleted(sub_data: dict) -> None:
        subscription = Subscription.query.filter_by(
            stripe_subscription_id=sub_data.get('id')
        ).first()

        if not subscription:
            return

        subscription.status = SubscriptionStatus.DELETED
        db.session.commit()
        logger.info('Subscription %s deleted for user %s', subscription.stripe_subscription_id,
                    subscription.user_id)
