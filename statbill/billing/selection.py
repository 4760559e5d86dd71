"""
Plan picker state.

The selection (billing interval + pageview volume) is a frozen value; every
UI event produces a new one through the transition functions below. Invalid
input returns the current selection unchanged.
"""
import logging
from dataclasses import dataclass, replace
from typing import List, Optional, Union

from statbill.billing.plans import (
    ENTERPRISE, AvailablePlans, Interval, Plan, get_plan_by_volume,
)
from statbill.utils.text import large_number_format

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlanSelection:
    """Interval and volume picked on the page, with the plans matching that volume."""
    interval: Interval
    volume: Union[int, str]
    growth_plan: Optional[Plan] = None
    business_plan: Optional[Plan] = None

    @property
    def is_enterprise(self) -> bool:
        return self.volume == ENTERPRISE

    def to_session(self, context: Optional[str] = None) -> dict:
        """Session form; ``context`` ties it to the subscription it was picked under."""
        return {'interval': self.interval.value, 'volume': self.volume, 'context': context}


def default_volume(owned_plan: Optional[Plan], last_30_days_usage: int, volumes: List[int]):
    """Owned plan's volume, else the first volume above recent usage, else ENTERPRISE."""
    if owned_plan is not None:
        return owned_plan.monthly_pageview_limit
    for volume in volumes:
        if last_30_days_usage < volume:
            return volume
    return ENTERPRISE


def select_volume(available_plans: AvailablePlans, volume, interval: Interval) -> PlanSelection:
    return PlanSelection(
        interval=interval,
        volume=volume,
        growth_plan=get_plan_by_volume(available_plans.growth, volume),
        business_plan=get_plan_by_volume(available_plans.business, volume),
    )


def initial_selection(available_plans: AvailablePlans, owned_plan: Optional[Plan] = None,
                      last_30_days_usage: int = 0,
                      current_interval: Optional[Interval] = None) -> PlanSelection:
    """Selection shown when the page is first opened."""
    volume = default_volume(owned_plan, last_30_days_usage, available_plans.volumes)
    return select_volume(available_plans, volume, current_interval or Interval.MONTHLY)


def set_interval(selection: PlanSelection, value) -> PlanSelection:
    """Switch between monthly and yearly billing."""
    if value not in (Interval.MONTHLY.value, Interval.YEARLY.value):
        logger.debug('Ignoring unknown billing interval %r', value)
        return selection
    return replace(selection, interval=Interval(value))


def slide(selection: PlanSelection, index, available_plans: AvailablePlans) -> PlanSelection:
    """Move the volume slider to ``index``.

    Positions 0..n-1 are the catalog volumes; position n is ENTERPRISE.
    """
    volumes = available_plans.volumes
    if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index <= len(volumes):
        logger.debug('Ignoring out-of-range slider index %r', index)
        return selection

    volume = ENTERPRISE if index == len(volumes) else volumes[index]
    return select_volume(available_plans, volume, selection.interval)


def restore(data, available_plans: AvailablePlans, default: PlanSelection,
            context: Optional[str] = None) -> PlanSelection:
    """Rebuild a selection saved with ``to_session``.

    Falls back to ``default`` when the subscription context changed since the
    selection was saved, and for anything that no longer matches the catalog.
    """
    if not isinstance(data, dict) or data.get('context') != context:
        return default

    selection = set_interval(default, data.get('interval'))
    volume = data.get('volume')
    if volume != ENTERPRISE and volume not in available_plans.volumes:
        return selection
    return select_volume(available_plans, volume, selection.interval)


def slider_index(selection: PlanSelection, volumes: List[int]) -> int:
    if selection.volume in volumes:
        return volumes.index(selection.volume)
    return len(volumes)


def format_volume(volume, volumes: List[int]) -> str:
    """'100k', or '10M+' for the enterprise position."""
    if volume == ENTERPRISE:
        return f'{large_number_format(volumes[-1])}+' if volumes else '+'
    return large_number_format(volume)


def slider_labels(volumes: List[int]) -> List[str]:
    return [format_volume(volume, volumes) for volume in volumes + [ENTERPRISE]]
