"""
Subscription models for Statbill billing.
Tracks the provider-side subscription and per-user enterprise plans.
"""
import enum
from datetime import datetime, date

from statbill.extensions import db


class SubscriptionStatus(str, enum.Enum):
    """Subscription lifecycle states, owned by the payment provider."""
    ACTIVE = 'active'
    PAST_DUE = 'past_due'
    PAUSED = 'paused'
    DELETED = 'deleted'


class Subscription(db.Model):
    """User subscription, synced from Stripe webhooks."""

    __tablename__ = 'subscriptions'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey('users.id', ondelete='CASCADE'),
        unique=True,
        nullable=False,
        index=True,
    )

    # Provider price identifier; matches a catalog plan's monthly or yearly product id
    plan_id = db.Column(db.String(255), nullable=False)
    status = db.Column(
        db.Enum(SubscriptionStatus, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=SubscriptionStatus.ACTIVE,
    )

    # Stripe IDs
    stripe_subscription_id = db.Column(
        db.String(255), unique=True, nullable=True, index=True,
    )
    stripe_customer_id = db.Column(db.String(255), nullable=True)

    # Billing cycle
    last_bill_date = db.Column(db.Date, nullable=True)
    next_bill_date = db.Column(db.Date, nullable=True)

    # Timestamps
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=True, onupdate=datetime.utcnow)

    user = db.relationship('User', backref=db.backref('subscription', uselist=False))

    def __repr__(self):
        return f'<Subscription user={self.user_id} plan={self.plan_id} status={self.status.value}>'

    @property
    def is_deleted(self):
        return self.status == SubscriptionStatus.DELETED

    @property
    def is_resumable(self):
        """An existing subscription can be changed in place (no new checkout)."""
        return self.status in (
            SubscriptionStatus.ACTIVE,
            SubscriptionStatus.PAST_DUE,
            SubscriptionStatus.PAUSED,
        )

    @property
    def billing_details_expired(self):
        """Payment method needs updating before any plan change."""
        return self.status in (SubscriptionStatus.PAUSED, SubscriptionStatus.PAST_DUE)

    @property
    def is_expired(self):
        """Deleted and past the end of the last paid period."""
        if not self.is_deleted:
            return False
        return self.next_bill_date is None or self.next_bill_date < date.today()


class EnterprisePlan(db.Model):
    """Custom plan negotiated with a single customer."""

    __tablename__ = 'enterprise_plans'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey('users.id', ondelete='CASCADE'),
        nullable=False,
        index=True,
    )
    product_id = db.Column(db.String(255), nullable=False, index=True)
    billing_interval = db.Column(db.String(10), nullable=False, default='monthly')
    monthly_pageview_limit = db.Column(db.BigInteger, nullable=False)
    site_limit = db.Column(db.Integer, nullable=False)
    team_member_limit = db.Column(db.Integer, nullable=True)  # None = unlimited
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    user = db.relationship('User', backref=db.backref('enterprise_plans', lazy='dynamic'))

    def __repr__(self):
        return f'<EnterprisePlan user={self.user_id} product={self.product_id}>'
