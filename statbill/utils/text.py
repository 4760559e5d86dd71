"""
Presentation formatting helpers shared by views, emails and templates.
"""
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional


@dataclass(frozen=True)
class DateRange:
    """Inclusive range of calendar days."""
    first: date
    last: date

    def __contains__(self, day):
        return self.first <= day <= self.last


def delimit_integer(number) -> str:
    """12300 -> '12,300'."""
    return f'{int(number):,}'


def _compact(number: int, divisor: int, suffix: str) -> str:
    # Keep one decimal below 100 units (1.5k, 2.5M), truncate above
    scaled = (number // (divisor // 10)) / 10
    if scaled == int(scaled) or number >= 100 * divisor:
        return f'{int(scaled)}{suffix}'
    return f'{scaled}{suffix}'


def large_number_format(number) -> str:
    """Compact volume label: 10000 -> '10k', 2500000 -> '2.5M'."""
    number = int(number)
    if 1_000 <= number < 1_000_000:
        return _compact(number, 1_000, 'k')
    if 1_000_000 <= number < 1_000_000_000:
        return _compact(number, 1_000_000, 'M')
    if number >= 1_000_000_000:
        return _compact(number, 1_000_000_000, 'B')
    return str(number)


def format_price(amount: Optional[Decimal], currency_symbol: str = '$') -> str:
    """Decimal('1290.00') -> '$1,290'. Cents are shown only when present."""
    if amount is None:
        return 'N/A'
    amount = Decimal(amount)
    if amount == amount.to_integral_value():
        return f'{currency_symbol}{int(amount):,}'
    return f'{currency_symbol}{amount:,.2f}'


def format_date(day: date) -> str:
    return f'{day:%b} {day.day}, {day.year}'


def format_date_range(date_range: DateRange) -> str:
    """'Mar 1, 2023 - Mar 31, 2023'."""
    return f'{format_date(date_range.first)} - {format_date(date_range.last)}'


def pretty_join(items: Iterable[str]) -> str:
    """['a', 'b', 'c'] -> 'a, b and c'."""
    items = list(items)
    if len(items) <= 1:
        return ''.join(items)
    return f"{', '.join(items[:-1])} and {items[-1]}"
