# =============================================================================
# Statbill - Benefit List Tests
# =============================================================================

import itertools

import pytest

from statbill.billing.benefits import (
    Benefit, BenefitKind, business_benefits, enterprise_benefits, growth_benefits,
)
from statbill.billing.plans import PlanKind, VOLUMES, get_plan_by_volume, plans_for


def texts(benefits):
    return [str(benefit) for benefit in benefits]


class TestGrowthBenefits:
    """Tests for growth_benefits."""

    def test_latest_growth(self):
        plan = plans_for(PlanKind.GROWTH)[0]
        assert texts(growth_benefits(plan)) == [
            'Up to 3 team members',
            'Up to 10 sites',
            '3 years of data retention',
            'Intuitive, fast and privacy-friendly dashboard',
            'Email/Slack reports',
            'Google Analytics import',
            'Goals and custom events',
        ]

    def test_grandfathered_growth_has_no_retention_line(self):
        plan = plans_for(PlanKind.GROWTH, 3)[0]
        assert texts(growth_benefits(plan)) == [
            'Unlimited team members',
            'Up to 50 sites',
            'Intuitive, fast and privacy-friendly dashboard',
            'Email/Slack reports',
            'Google Analytics import',
            'Goals and custom events',
            'Custom Properties',
            'Stats API (600 requests per hour)',
        ]

    def test_deterministic(self):
        plan = plans_for(PlanKind.GROWTH)[4]
        assert growth_benefits(plan) == growth_benefits(plan)


class TestBusinessBenefits:
    """Tests for business_benefits."""

    def test_against_latest_growth(self):
        growth = growth_benefits(plans_for(PlanKind.GROWTH)[0])
        business = business_benefits(plans_for(PlanKind.BUSINESS)[0], growth)
        assert texts(business) == [
            'Everything in Growth',
            'Up to 10 team members',
            'Up to 50 sites',
            '5 years of data retention',
            'Custom Properties',
            'Funnels',
            'Ecommerce revenue attribution',
            'Stats API (600 requests per hour)',
            'Priority support',
        ]

    def test_against_grandfathered_growth(self):
        growth = growth_benefits(plans_for(PlanKind.GROWTH, 3)[0])
        business = business_benefits(plans_for(PlanKind.BUSINESS)[0], growth)
        assert texts(business) == [
            'Everything in Growth',
            'Up to 10 team members',
            '5 years of data retention',
            'Funnels',
            'Ecommerce revenue attribution',
            'Priority support',
        ]

    @pytest.mark.parametrize('generation,volume', list(itertools.product([3, 4], VOLUMES)))
    def test_never_repeats_a_growth_entry(self, generation, volume):
        growth = growth_benefits(get_plan_by_volume(plans_for(PlanKind.GROWTH, generation), volume))
        business = business_benefits(get_plan_by_volume(plans_for(PlanKind.BUSINESS), volume), growth)
        assert not set(texts(business)) & set(texts(growth))

    def test_deterministic(self):
        growth = growth_benefits(plans_for(PlanKind.GROWTH)[0])
        plan = plans_for(PlanKind.BUSINESS)[0]
        assert business_benefits(plan, growth) == business_benefits(plan, growth)


class TestEnterpriseBenefits:
    """Tests for enterprise_benefits."""

    def test_upgrades_business_caps(self, app):
        growth = growth_benefits(plans_for(PlanKind.GROWTH)[0])
        business = business_benefits(plans_for(PlanKind.BUSINESS)[0], growth)

        enterprise = enterprise_benefits(business)
        lines = texts(enterprise)
        assert lines[0] == 'Everything in Business'
        assert lines[1] == '10+ team members'
        assert lines[2] == '50+ sites'
        assert lines[3] == '600+ Stats API requests per hour'
        assert 'href="https://statbill.io/white-label-web-analytics"' in lines[4]
        assert '>reselling</a>' in lines[4]
        assert lines[5] == '5+ years of data retention'
        assert lines[6] == 'Technical onboarding'

    def test_optional_lines_omitted(self):
        lines = texts(enterprise_benefits([], reselling_url='https://example.com/resell'))
        assert '10+ team members' not in lines
        assert '5+ years of data retention' not in lines
        assert len(lines) == 5

    def test_reselling_link_is_markup(self):
        benefit = Benefit(BenefitKind.RESELLING_LINK, 'https://example.com/?a=1&b=2')
        html = benefit.__html__()
        assert 'href="https://example.com/?a=1&amp;b=2"' in html

    def test_plain_text_is_escaped(self):
        assert Benefit(BenefitKind.TEXT, '<b>').__html__() == '&lt;b&gt;'
