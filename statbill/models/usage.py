"""
Daily billable usage per site.
Written by the ingestion pipeline, read by the quota service.
"""
from statbill.extensions import db


class DailyUsage(db.Model):
    """Pageviews and custom events recorded for one site on one day."""

    __tablename__ = 'daily_usage'
    __table_args__ = (
        db.UniqueConstraint('site_id', 'date', name='uq_daily_usage_site_date'),
    )

    id = db.Column(db.Integer, primary_key=True)
    site_id = db.Column(
        db.Integer,
        db.ForeignKey('sites.id', ondelete='CASCADE'),
        nullable=False,
        index=True,
    )
    date = db.Column(db.Date, nullable=False, index=True)
    pageviews = db.Column(db.Integer, nullable=False, default=0)
    custom_events = db.Column(db.Integer, nullable=False, default=0)

    site = db.relationship('Site')

    def __repr__(self):
        return f'<DailyUsage site={self.site_id} {self.date}: {self.pageviews}+{self.custom_events}>'
