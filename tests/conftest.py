# =============================================================================
# Statbill - Pytest Fixtures Configuration
# =============================================================================

import pytest
from datetime import date, timedelta

from statbill import create_app
from statbill.extensions import db
from statbill.models.user import User
from statbill.models.site import Site, site_memberships
from statbill.models.usage import DailyUsage
from statbill.models.subscription import Subscription, SubscriptionStatus, EnterprisePlan


# =============================================================================
# Application Fixtures
# =============================================================================

@pytest.fixture(scope='function')
def app():
    """Create and configure test application with SQLite in-memory database."""
    # Create app with 'testing' config (uses SQLite in-memory)
    application = create_app('testing')

    with application.app_context():
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Test client for HTTP requests."""
    return app.test_client()


@pytest.fixture(scope='function')
def runner(app):
    """CLI test runner."""
    return app.test_cli_runner()


# =============================================================================
# User Fixtures
# =============================================================================

def _create_user(email, name):
    user = User(email=email, name=name)
    db.session.add(user)
    db.session.commit()
    user_id = user.id
    db.session.expire_all()
    return db.session.get(User, user_id)


@pytest.fixture
def user(app):
    """Account owner without subscription."""
    return _create_user('john@test.com', 'John Doe')


@pytest.fixture
def make_user(app):
    """Factory for additional users (team members)."""
    counter = {'n': 0}

    def _make(name='Member'):
        counter['n'] += 1
        return _create_user(f"member{counter['n']}@test.com", name)

    return _make


@pytest.fixture
def authenticated_client(client, app, user):
    """Client with logged-in user."""
    with client.session_transaction() as sess:
        sess['_user_id'] = str(user.id)
        sess['_fresh'] = True
    return client


# =============================================================================
# Site and Usage Fixtures
# =============================================================================

@pytest.fixture
def make_site(app):
    """Factory creating a site owned by a user."""
    counter = {'n': 0}

    def _make(owner, domain=None, **kwargs):
        counter['n'] += 1
        site = Site(domain=domain or f"site{counter['n']}.example.com", owner_id=owner.id, **kwargs)
        db.session.add(site)
        db.session.commit()
        return site

    return _make


@pytest.fixture
def add_member(app):
    """Invite a user to a site."""

    def _add(site, member, role='viewer'):
        db.session.execute(site_memberships.insert().values(
            site_id=site.id, user_id=member.id, role=role,
        ))
        db.session.commit()

    return _add


@pytest.fixture
def record_usage(app):
    """Record billable events for a site on one day."""

    def _record(site, day, pageviews, custom_events=0):
        db.session.add(DailyUsage(
            site_id=site.id, date=day, pageviews=pageviews, custom_events=custom_events,
        ))
        db.session.commit()

    return _record


@pytest.fixture
def yesterday():
    return date.today() - timedelta(days=1)


# =============================================================================
# Subscription Fixtures
# =============================================================================

@pytest.fixture
def subscribe(app):
    """Attach a subscription to a user."""

    def _subscribe(user, plan_id, status=SubscriptionStatus.ACTIVE,
                   last_bill_date=None, next_bill_date=None,
                   stripe_subscription_id='sub_test'):
        subscription = Subscription(
            user_id=user.id,
            plan_id=plan_id,
            status=status,
            last_bill_date=last_bill_date,
            next_bill_date=next_bill_date,
            stripe_subscription_id=stripe_subscription_id,
            stripe_customer_id='cus_test',
        )
        db.session.add(subscription)
        db.session.commit()
        return subscription

    return _subscribe


@pytest.fixture
def enterprise_plan(app, user):
    """Custom enterprise plan for ``user``."""
    plan = EnterprisePlan(
        user_id=user.id,
        product_id='price_enterprise_custom',
        billing_interval='yearly',
        monthly_pageview_limit=20_000_000,
        site_limit=50,
        team_member_limit=None,
    )
    db.session.add(plan)
    db.session.commit()
    return plan
