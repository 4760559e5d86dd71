"""
Feature kinds gated by plan tier, with their display names and
the phrases used in plan benefit lists.
"""
import enum


class Feature(str, enum.Enum):
    """Gated product features."""
    GOALS = 'goals'
    PROPS = 'props'
    FUNNELS = 'funnels'
    REVENUE_GOALS = 'revenue_goals'
    STATS_API = 'stats_api'


DISPLAY_NAMES = {
    Feature.GOALS: 'Goals',
    Feature.PROPS: 'Custom Properties',
    Feature.FUNNELS: 'Funnels',
    Feature.REVENUE_GOALS: 'Revenue Goals',
    Feature.STATS_API: 'Stats API',
}

# Features not listed here fall back to their display name
BENEFIT_PHRASES = {
    Feature.GOALS: 'Goals and custom events',
    Feature.STATS_API: 'Stats API (600 requests per hour)',
    Feature.REVENUE_GOALS: 'Ecommerce revenue attribution',
}


def display_name(feature: Feature) -> str:
    return DISPLAY_NAMES.get(feature, feature.value.replace('_', ' ').title())


def benefit_phrase(feature: Feature) -> str:
    """Phrase shown for a feature in a plan's benefit list."""
    return BENEFIT_PHRASES.get(feature, display_name(feature))
