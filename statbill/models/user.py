"""
User and API key models.
"""
from datetime import datetime

from flask_login import UserMixin

from statbill.extensions import db


class User(UserMixin, db.Model):
    """Account owner. Owns sites, a subscription and optionally an enterprise plan."""

    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)

    stripe_customer_id = db.Column(db.String(255), nullable=True)

    # Usage enforcement
    grace_period_end = db.Column(db.Date, nullable=True)
    dashboard_locked = db.Column(db.Boolean, nullable=False, default=False)

    # Timestamps
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    sites = db.relationship('Site', back_populates='owner', lazy='dynamic')
    api_keys = db.relationship('ApiKey', back_populates='user', lazy='dynamic',
                               cascade='all, delete-orphan')

    def __repr__(self):
        return f'<User {self.email}>'

    @property
    def first_name(self):
        """First word of the display name, used in email greetings."""
        return self.name.split(' ')[0] if self.name else ''


class ApiKey(db.Model):
    """Stats API key. Having one counts as using the Stats API feature."""

    __tablename__ = 'api_keys'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey('users.id', ondelete='CASCADE'),
        nullable=False,
        index=True,
    )
    name = db.Column(db.String(100), nullable=False)
    key_prefix = db.Column(db.String(12), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    user = db.relationship('User', back_populates='api_keys')

    def __repr__(self):
        return f'<ApiKey {self.key_prefix}… user={self.user_id}>'
