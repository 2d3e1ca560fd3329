"""
services/spending_service.py
----------------------------
Spending insights computed from the billing schedule: money actually charged
per calendar month and per category over a date range.

Currency conversion is an outside concern. Callers pass a ``convert``
callable; without one, charges in other currencies are left out and logged.
"""

import calendar
from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Iterable, Optional, Union

from dateutil.relativedelta import relativedelta

from models.subscription import Subscription
from services.recurrence import billing_dates_between
from utils.logger import get_logger

logger = get_logger(__name__)

Converter = Callable[[float, str, str], float]

RANGE_KINDS = ("6months", "ytd", "year", "alltime")
_ALL_TIME_YEARS = 5


@dataclass(frozen=True)
class DateRange:
    start: date
    end: date
    label: str


@dataclass(frozen=True)
class SpendingDataPoint:
    month: str        # e.g. "Jan"
    year: int
    amount: float
    full_label: str   # e.g. "January 2026"


@dataclass(frozen=True)
class CategorySpending:
    category: str
    amount: float
    percentage: float


def date_range(kind: str, as_of: Union[date, datetime]) -> DateRange:
    """
    Resolve a named range relative to ``as_of``.

    Kinds: '6months' (this month and the five before), 'ytd', 'year' (the
    whole calendar year) and 'alltime' (capped at five years back).
    """
    today = as_of.date() if isinstance(as_of, datetime) else as_of
    if kind == "6months":
        return DateRange(today.replace(day=1) - relativedelta(months=5), today, "Last 6 Months")
    if kind == "ytd":
        return DateRange(date(today.year, 1, 1), today, "Year to Date")
    if kind == "year":
        return DateRange(date(today.year, 1, 1), date(today.year, 12, 31), str(today.year))
    if kind == "alltime":
        return DateRange(date(today.year - _ALL_TIME_YEARS, 1, 1), today, "All Time")
    raise ValueError(f"Unknown range {kind!r}; expected one of {RANGE_KINDS}")


def primary_currency(subscriptions: Iterable[Subscription], fallback: str) -> str:
    """Most common currency among active subscriptions."""
    counts = Counter(s.currency.upper() for s in subscriptions if not s.is_archived)
    return counts.most_common(1)[0][0] if counts else fallback


def _charges(
    subscriptions: Iterable[Subscription],
    start: date,
    end: date,
    target_currency: str,
    convert: Optional[Converter],
):
    """Yield (subscription, charge date, amount in target currency)."""
    skipped: set[str] = set()
    for sub in subscriptions:
        if sub.is_archived:
            continue
        currency = sub.currency.upper()
        if currency != target_currency.upper() and convert is None:
            skipped.add(currency)
            continue
        amount = sub.amount
        if currency != target_currency.upper():
            amount = convert(sub.amount, currency, target_currency)
        for charge in billing_dates_between(sub, start, end):
            yield sub, charge, amount
    if skipped:
        logger.info(f"Left out charges in {sorted(skipped)}: no converter to {target_currency}")


def spending_by_month(
    subscriptions: Iterable[Subscription],
    start: date,
    end: date,
    target_currency: str,
    convert: Optional[Converter] = None,
) -> list[SpendingDataPoint]:
    """Charges bucketed by calendar month; every month in range is present."""
    buckets: dict[tuple[int, int], float] = {}
    cursor = start.replace(day=1)
    while cursor <= end:
        buckets[(cursor.year, cursor.month)] = 0.0
        cursor += relativedelta(months=1)

    for _, charge, amount in _charges(subscriptions, start, end, target_currency, convert):
        buckets[(charge.year, charge.month)] += amount

    return [
        SpendingDataPoint(
            month=calendar.month_abbr[month],
            year=year,
            amount=amount,
            full_label=f"{calendar.month_name[month]} {year}",
        )
        for (year, month), amount in buckets.items()
    ]


def spending_by_category(
    subscriptions: Iterable[Subscription],
    start: date,
    end: date,
    target_currency: str,
    convert: Optional[Converter] = None,
) -> list[CategorySpending]:
    """Charges per category with percentage share, highest first."""
    totals: dict[str, float] = {}
    for sub, _, amount in _charges(subscriptions, start, end, target_currency, convert):
        totals[sub.category] = totals.get(sub.category, 0.0) + amount

    grand_total = sum(totals.values())
    result = [
        CategorySpending(
            category=category,
            amount=amount,
            percentage=(amount / grand_total * 100) if grand_total > 0 else 0.0,
        )
        for category, amount in totals.items()
    ]
    return sorted(result, key=lambda c: c.amount, reverse=True)


def total_spending(points: Iterable[SpendingDataPoint]) -> float:
    return sum(p.amount for p in points)
