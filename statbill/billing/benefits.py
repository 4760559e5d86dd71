"""
Benefit lists shown under each plan tier.

Entries are semantic values (a limit and its number, a feature, a literal
line) so that Business can be diffed against Growth before anything is
turned into text.
"""
import enum
from dataclasses import dataclass
from typing import List

from flask import current_app, has_app_context
from markupsafe import Markup, escape

from statbill.billing.features import benefit_phrase
from statbill.billing.plans import UNLIMITED, Plan


class BenefitKind(str, enum.Enum):
    TEXT = 'text'
    TEAM_MEMBERS = 'team_members'
    SITES = 'sites'
    DATA_RETENTION = 'data_retention'
    FEATURE = 'feature'
    RESELLING_LINK = 'reselling_link'


DEFAULT_RESELLING_URL = 'https://statbill.io/white-label-web-analytics'


@dataclass(frozen=True)
class Benefit:
    kind: BenefitKind
    value: object = None

    @property
    def text(self):
        if self.kind == BenefitKind.TEAM_MEMBERS:
            if self.value == UNLIMITED:
                return 'Unlimited team members'
            return f'Up to {self.value} team members'
        if self.kind == BenefitKind.SITES:
            return f'Up to {self.value} sites'
        if self.kind == BenefitKind.DATA_RETENTION:
            return f'{self.value} years of data retention'
        if self.kind == BenefitKind.FEATURE:
            return benefit_phrase(self.value)
        if self.kind == BenefitKind.RESELLING_LINK:
            return Markup(
                'Sites API access for '
                '<a class="text-indigo-500 hover:text-indigo-400" href="{}">reselling</a>'
            ).format(self.value)
        return self.value

    def __str__(self):
        return str(self.text)

    def __html__(self):
        return escape(self.text)


def text(value: str) -> Benefit:
    return Benefit(BenefitKind.TEXT, value)


def _limit_benefits(plan: Plan) -> List[Benefit]:
    entries = [
        Benefit(BenefitKind.TEAM_MEMBERS, plan.team_member_limit),
        Benefit(BenefitKind.SITES, plan.site_limit),
    ]
    if plan.data_retention_in_years:
        entries.append(Benefit(BenefitKind.DATA_RETENTION, plan.data_retention_in_years))
    return entries


def _feature_benefits(plan: Plan) -> List[Benefit]:
    return [Benefit(BenefitKind.FEATURE, feature) for feature in plan.features]


def growth_benefits(plan: Plan) -> List[Benefit]:
    entries = _limit_benefits(plan) + [
        text('Intuitive, fast and privacy-friendly dashboard'),
        text('Email/Slack reports'),
        text('Google Analytics import'),
    ] + _feature_benefits(plan)
    return [entry for entry in entries if entry.text]


def business_benefits(plan: Plan, growth: List[Benefit]) -> List[Benefit]:
    """Business entries not already listed for Growth, then priority support."""
    entries = [text('Everything in Growth')] + _limit_benefits(plan) + _feature_benefits(plan)
    entries = [entry for entry in entries if entry not in growth]
    entries.append(text('Priority support'))
    return [entry for entry in entries if entry.text]


def enterprise_benefits(business: List[Benefit], reselling_url: str = None) -> List[Benefit]:
    if reselling_url is None:
        reselling_url = (
            current_app.config.get('RESELLING_URL', DEFAULT_RESELLING_URL)
            if has_app_context() else DEFAULT_RESELLING_URL
        )

    team_members = None
    if Benefit(BenefitKind.TEAM_MEMBERS, 10) in business:
        team_members = text('10+ team members')

    data_retention = None
    if Benefit(BenefitKind.DATA_RETENTION, 5) in business:
        data_retention = text('5+ years of data retention')

    entries = [
        text('Everything in Business'),
        team_members,
        text('50+ sites'),
        text('600+ Stats API requests per hour'),
        Benefit(BenefitKind.RESELLING_LINK, reselling_url),
        data_retention,
        text('Technical onboarding'),
    ]
    return [entry for entry in entries if entry is not None]
