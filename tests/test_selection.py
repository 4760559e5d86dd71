# =============================================================================
# Statbill - Plan Selection Tests
# =============================================================================

import pytest

from statbill.billing.plans import ENTERPRISE, AvailablePlans, Interval, PlanKind, plans_for
from statbill.billing.selection import (
    PlanSelection, format_volume, initial_selection, restore, set_interval,
    slide, slider_index, slider_labels,
)


@pytest.fixture
def available():
    """Three volumes per tier: 10k, 100k and 200k."""
    return AvailablePlans(
        growth=plans_for(PlanKind.GROWTH)[:3],
        business=plans_for(PlanKind.BUSINESS)[:3],
    )


# =============================================================================
# Initial State
# =============================================================================

class TestInitialSelection:
    """Tests for the selection shown on first page load."""

    def test_first_volume_above_recent_usage(self, available):
        selection = initial_selection(available, owned_plan=None, last_30_days_usage=5_000)
        assert selection.volume == 10_000
        assert selection.interval == Interval.MONTHLY
        assert selection.growth_plan.monthly_pageview_limit == 10_000
        assert selection.business_plan.monthly_pageview_limit == 10_000

    def test_usage_equal_to_volume_moves_up(self, available):
        selection = initial_selection(available, last_30_days_usage=10_000)
        assert selection.volume == 100_000

    def test_owned_plan_volume_wins(self, available):
        owned = available.growth[1]
        selection = initial_selection(available, owned_plan=owned, last_30_days_usage=5_000_000)
        assert selection.volume == 100_000

    def test_enterprise_when_usage_above_all_volumes(self, available):
        selection = initial_selection(available, last_30_days_usage=300_000)
        assert selection.volume == ENTERPRISE
        assert selection.is_enterprise
        assert selection.growth_plan is None
        assert selection.business_plan is None

    def test_interval_from_subscription(self, available):
        selection = initial_selection(available, current_interval=Interval.YEARLY)
        assert selection.interval == Interval.YEARLY


# =============================================================================
# Transitions
# =============================================================================

class TestTransitions:
    """Tests for set_interval and slide."""

    def test_set_interval(self, available):
        selection = initial_selection(available)
        assert set_interval(selection, 'yearly').interval == Interval.YEARLY
        assert set_interval(selection, 'monthly').interval == Interval.MONTHLY

    @pytest.mark.parametrize('value', ['weekly', '', None, 'YEARLY'])
    def test_set_interval_rejects_unknown_values(self, available, value):
        selection = initial_selection(available)
        assert set_interval(selection, value) is selection

    def test_set_interval_keeps_volume(self, available):
        selection = slide(initial_selection(available), 2, available)
        changed = set_interval(selection, 'yearly')
        assert changed.volume == 200_000
        assert changed.growth_plan == selection.growth_plan

    def test_slide_to_catalog_volume(self, available):
        selection = slide(initial_selection(available), 1, available)
        assert selection.volume == 100_000
        assert selection.growth_plan.kind == PlanKind.GROWTH
        assert selection.business_plan.kind == PlanKind.BUSINESS

    def test_slide_to_enterprise_slot(self, available):
        selection = slide(initial_selection(available), 3, available)
        assert selection.volume == ENTERPRISE
        assert selection.growth_plan is None
        assert selection.business_plan is None

    def test_slide_is_idempotent(self, available):
        start = initial_selection(available)
        for index in range(4):
            once = slide(start, index, available)
            assert slide(once, index, available) == once

    @pytest.mark.parametrize('index', [-1, 4, 99, '1', 1.0, True, None])
    def test_slide_rejects_invalid_index(self, available, index):
        selection = initial_selection(available)
        assert slide(selection, index, available) is selection

    def test_slide_keeps_interval(self, available):
        selection = set_interval(initial_selection(available), 'yearly')
        assert slide(selection, 2, available).interval == Interval.YEARLY


# =============================================================================
# Session Persistence
# =============================================================================

class TestRestore:
    """Tests for rebuilding the selection from the session."""

    def test_round_trip(self, available):
        selection = slide(set_interval(initial_selection(available), 'yearly'), 3, available)
        default = initial_selection(available)
        assert restore(selection.to_session(), available, default) == selection

    def test_missing_data_gives_default(self, available):
        default = initial_selection(available)
        assert restore(None, available, default) is default

    def test_volume_no_longer_offered_keeps_default_volume(self, available):
        default = initial_selection(available)
        restored = restore({'interval': 'yearly', 'volume': 5_000_000}, available, default)
        assert restored.volume == default.volume
        assert restored.interval == Interval.YEARLY

    def test_garbage_interval_ignored(self, available):
        default = initial_selection(available)
        restored = restore({'interval': 'hourly', 'volume': 100_000}, available, default)
        assert restored.interval == Interval.MONTHLY
        assert restored.volume == 100_000

    def test_round_trip_with_context(self, available):
        selection = slide(initial_selection(available), 2, available)
        default = initial_selection(available)
        saved = selection.to_session('price_growth_v4_10k_monthly:active')
        assert restore(saved, available, default, 'price_growth_v4_10k_monthly:active') == selection

    def test_changed_context_gives_default(self, available):
        default = initial_selection(available)
        saved = slide(default, 2, available).to_session()
        assert restore(saved, available, default, 'price_growth_v4_100k_monthly:active') is default


# =============================================================================
# Slider Presentation
# =============================================================================

class TestSliderPresentation:
    """Tests for slider labels and position."""

    def test_labels(self, available):
        assert slider_labels(available.volumes) == ['10k', '100k', '200k', '200k+']

    def test_format_enterprise_volume(self):
        assert format_volume(ENTERPRISE, [10_000, 10_000_000]) == '10M+'

    def test_slider_index(self, available):
        volumes = available.volumes
        assert slider_index(PlanSelection(Interval.MONTHLY, 100_000), volumes) == 1
        assert slider_index(PlanSelection(Interval.MONTHLY, ENTERPRISE), volumes) == 3
