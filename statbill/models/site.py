"""
Site models: tracked sites, their goals, funnels and team memberships.
"""
from datetime import datetime

from statbill.extensions import db


# Team members invited to a site (the owner is not listed here)
site_memberships = db.Table(
    'site_memberships',
    db.Column('site_id', db.Integer, db.ForeignKey('sites.id', ondelete='CASCADE'), primary_key=True),
    db.Column('user_id', db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
    db.Column('role', db.String(20), nullable=False, default='viewer'),
    db.Column('created_at', db.DateTime, default=datetime.utcnow)
)


class Site(db.Model):
    """A website whose pageviews are tracked and billed to its owner."""

    __tablename__ = 'sites'

    id = db.Column(db.Integer, primary_key=True)
    domain = db.Column(db.String(255), unique=True, nullable=False, index=True)
    owner_id = db.Column(
        db.Integer,
        db.ForeignKey('users.id', ondelete='CASCADE'),
        nullable=False,
        index=True,
    )
    # Custom event properties allowed on this site (enables the Props feature)
    allowed_event_props = db.Column(db.JSON, default=list)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    owner = db.relationship('User', back_populates='sites')
    members = db.relationship('User', secondary=site_memberships, lazy='dynamic')
    goals = db.relationship('Goal', back_populates='site', lazy='dynamic',
                            cascade='all, delete-orphan')
    funnels = db.relationship('Funnel', back_populates='site', lazy='dynamic',
                              cascade='all, delete-orphan')

    def __repr__(self):
        return f'<Site {self.domain}>'


class Goal(db.Model):
    """Conversion goal. Goals with a currency are revenue goals."""

    __tablename__ = 'goals'

    id = db.Column(db.Integer, primary_key=True)
    site_id = db.Column(
        db.Integer,
        db.ForeignKey('sites.id', ondelete='CASCADE'),
        nullable=False,
        index=True,
    )
    event_name = db.Column(db.String(120), nullable=True)
    page_path = db.Column(db.String(255), nullable=True)
    currency = db.Column(db.String(3), nullable=True)

    site = db.relationship('Site', back_populates='goals')

    def __repr__(self):
        return f'<Goal {self.event_name or self.page_path} site={self.site_id}>'


class Funnel(db.Model):
    """Ordered sequence of goals."""

    __tablename__ = 'funnels'

    id = db.Column(db.Integer, primary_key=True)
    site_id = db.Column(
        db.Integer,
        db.ForeignKey('sites.id', ondelete='CASCADE'),
        nullable=False,
        index=True,
    )
    name = db.Column(db.String(120), nullable=False)

    site = db.relationship('Site', back_populates='funnels')

    def __repr__(self):
        return f'<Funnel {self.name} site={self.site_id}>'
