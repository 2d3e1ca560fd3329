"""
services/recurrence.py
----------------------
Pure billing-cycle arithmetic.

Maps (billing cycle, anchor, as-of) to the next charge date, the number of
days until it, and the cost normalized to one month. Nothing in this module
reads the clock: the reference instant is always a parameter, and all dates
are local wall-clock dates.
"""

import math
from collections import deque
from datetime import date, datetime, timedelta
from itertools import count
from typing import Iterator, Optional, Union

from dateutil.relativedelta import relativedelta

from models.subscription import (
    BillingCycle,
    PaymentHistoryEntry,
    Subscription,
    SubscriptionDuration,
)
from services.exceptions import InvalidBillingDataError, UnknownBillingCycleError

DateLike = Union[date, datetime]

# Average Gregorian month (365.2425 / 12).
AVERAGE_MONTH_DAYS = 30.4375

_MONTH_STEPS: dict[BillingCycle, int] = {
    BillingCycle.MONTHLY: 1,
    BillingCycle.QUARTERLY: 3,
    BillingCycle.SEMIANNUAL: 6,
    BillingCycle.YEARLY: 12,
}

_DAY_STEPS: dict[BillingCycle, int] = {
    BillingCycle.WEEKLY: 7,
    BillingCycle.BI_WEEKLY: 14,
}

# Cycle length expressed in months.
_CYCLE_MONTHS: dict[BillingCycle, float] = {
    BillingCycle.WEEKLY: 7 / AVERAGE_MONTH_DAYS,
    BillingCycle.BI_WEEKLY: 14 / AVERAGE_MONTH_DAYS,
    BillingCycle.MONTHLY: 1,
    BillingCycle.QUARTERLY: 3,
    BillingCycle.SEMIANNUAL: 6,
    BillingCycle.YEARLY: 12,
}

_CYCLE_LABELS: dict[BillingCycle, str] = {
    BillingCycle.ONE_TIME: "One-Time",
    BillingCycle.WEEKLY: "Weekly",
    BillingCycle.BI_WEEKLY: "Every 2 weeks",
    BillingCycle.MONTHLY: "Monthly",
    BillingCycle.QUARTERLY: "Every 3 months",
    BillingCycle.SEMIANNUAL: "Every 6 months",
    BillingCycle.YEARLY: "Yearly",
}


# ── Validation ───────────────────────────────────────────

def parse_cycle(value: Union[BillingCycle, str]) -> BillingCycle:
    """
    Coerce a persisted value to a BillingCycle.

    Raises:
        UnknownBillingCycleError: If the value is not a known cycle.
    """
    if isinstance(value, BillingCycle):
        return value
    try:
        return BillingCycle(value)
    except ValueError:
        raise UnknownBillingCycleError(f"Unknown billing cycle: {value!r}") from None


def validate_billing_day(billing_day: int) -> int:
    """
    Check that a billing day is a day-of-month anchor (1-31).

    Raises:
        InvalidBillingDataError: If it is not.
    """
    if isinstance(billing_day, bool) or not isinstance(billing_day, int):
        raise InvalidBillingDataError(f"billing_day must be an integer, got {billing_day!r}")
    if not 1 <= billing_day <= 31:
        raise InvalidBillingDataError(f"billing_day must be in 1-31, got {billing_day}")
    return billing_day


def _to_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def is_month_based(cycle: BillingCycle) -> bool:
    return cycle in _MONTH_STEPS


def billing_cycle_label(cycle: Union[BillingCycle, str]) -> str:
    """Human-readable label, e.g. 'Every 3 months'."""
    return _CYCLE_LABELS[parse_cycle(cycle)]


# ── Core calculator ──────────────────────────────────────

def occurrence_at(
    cycle: Union[BillingCycle, str],
    anchor: DateLike,
    index: int,
    billing_day: Optional[int] = None,
) -> date:
    """
    Return the ``index``-th occurrence (0 = the anchor itself).

    Month-based cycles are always computed from the anchor, never from the
    previous occurrence, so the day-of-month is clamped per target month:
    a 31st anchor gives Feb 28/29 and then Mar 31 again.

    Args:
        cycle: Billing cycle.
        anchor: First occurrence.
        index: Zero-based occurrence number.
        billing_day: Day-of-month for month-based cycles (defaults to the
            anchor's day).
    """
    cycle = parse_cycle(cycle)
    anchor = _to_date(anchor)
    if index < 0:
        raise ValueError(f"index must be >= 0, got {index}")

    if cycle is BillingCycle.ONE_TIME:
        if index:
            raise ValueError("A one-time charge has a single occurrence")
        return anchor

    if cycle in _DAY_STEPS:
        return anchor + timedelta(days=index * _DAY_STEPS[cycle])

    day = anchor.day if billing_day is None else validate_billing_day(billing_day)
    return anchor + relativedelta(months=index * _MONTH_STEPS[cycle], day=day)


def _first_index(
    cycle: BillingCycle,
    anchor: date,
    on_or_after: DateLike,
    billing_day: Optional[int],
) -> Optional[int]:
    """Index of the first occurrence >= ``on_or_after`` (None if there is none)."""
    target = max(_to_date(on_or_after), anchor)

    if cycle is BillingCycle.ONE_TIME:
        return 0 if anchor >= target else None

    if cycle in _DAY_STEPS:
        days_apart = (target - anchor).days
        return -(-days_apart // _DAY_STEPS[cycle])

    step = _MONTH_STEPS[cycle]
    months_apart = (target.year - anchor.year) * 12 + (target.month - anchor.month)
    index = max(0, months_apart // step)
    while occurrence_at(cycle, anchor, index, billing_day) < target:
        index += 1
    return index


def next_occurrence(
    cycle: Union[BillingCycle, str],
    anchor: DateLike,
    as_of: DateLike,
    billing_day: Optional[int] = None,
) -> Optional[date]:
    """
    Next charge date on or after ``as_of``.

    The boundary is inclusive: if ``as_of`` falls on an occurrence, that
    occurrence is returned.

    Returns:
        The date, or None for a one-time charge whose date has passed.

    Raises:
        UnknownBillingCycleError: For an unrecognized cycle.
        InvalidBillingDataError: For a billing day outside 1-31.
    """
    cycle = parse_cycle(cycle)
    anchor = _to_date(anchor)
    if billing_day is not None:
        validate_billing_day(billing_day)
    index = _first_index(cycle, anchor, as_of, billing_day)
    if index is None:
        return None
    return occurrence_at(cycle, anchor, index, billing_day)


def iter_occurrences(
    cycle: Union[BillingCycle, str],
    anchor: DateLike,
    start: DateLike,
    billing_day: Optional[int] = None,
) -> Iterator[date]:
    """Lazily yield every occurrence on or after ``start``, ascending."""
    cycle = parse_cycle(cycle)
    anchor = _to_date(anchor)
    index = _first_index(cycle, anchor, start, billing_day)
    if index is None:
        return
    if cycle is BillingCycle.ONE_TIME:
        yield anchor
        return
    for i in count(index):
        yield occurrence_at(cycle, anchor, i, billing_day)


def days_until(target: DateLike, as_of: DateLike) -> int:
    """Whole calendar days from ``as_of`` to ``target`` (negative if past)."""
    return (_to_date(target) - _to_date(as_of)).days


def monthly_equivalent(amount: float, cycle: Union[BillingCycle, str]) -> Optional[float]:
    """
    Normalize a charge to a per-month cost.

    Weekly cycles use the average month (30.4375 days), not 4 weeks.

    Returns:
        The monthly cost, or None for one-time charges, which have no
        monthly equivalent and must be left out of monthly totals.
    """
    cycle = parse_cycle(cycle)
    if not math.isfinite(amount):
        raise InvalidBillingDataError(f"amount must be finite, got {amount!r}")
    if cycle is BillingCycle.ONE_TIME:
        return None
    return amount / _CYCLE_MONTHS[cycle]


# ── Subscription helpers ─────────────────────────────────

def anchor_for(subscription: Subscription) -> date:
    """
    First charge date of a subscription.

    Uses ``start_date`` (or the creation date when missing). For month-based
    cycles the anchor is moved to the first date on or after that base whose
    day is the clamped ``billing_day``.

    Raises:
        InvalidBillingDataError: If the record has no usable date or an
            invalid billing day.
    """
    cycle = parse_cycle(subscription.billing_cycle)
    validate_billing_day(subscription.billing_day)

    if subscription.start_date is not None:
        base = _to_date(subscription.start_date)
    elif subscription.created_at is not None:
        base = _to_date(subscription.created_at)
    else:
        raise InvalidBillingDataError(
            f"Subscription {subscription.id!r} has neither start_date nor created_at"
        )

    if not is_month_based(cycle):
        return base

    anchor = base + relativedelta(day=subscription.billing_day)
    if anchor < base:
        anchor = base + relativedelta(months=1, day=subscription.billing_day)
    return anchor


def _schedule(subscription: Subscription) -> tuple[BillingCycle, date, Optional[int]]:
    cycle = parse_cycle(subscription.billing_cycle)
    day = subscription.billing_day if is_month_based(cycle) else None
    return cycle, anchor_for(subscription), day


def iter_billing_dates(subscription: Subscription, start: DateLike) -> Iterator[date]:
    """Charge dates on or after ``start``, stopping at ``end_date`` if set."""
    cycle, anchor, day = _schedule(subscription)
    end = _to_date(subscription.end_date) if subscription.end_date else None
    for occurrence in iter_occurrences(cycle, anchor, start, day):
        if end is not None and occurrence > end:
            return
        yield occurrence


def billing_dates_between(subscription: Subscription, start: DateLike, end: DateLike) -> list[date]:
    """All charge dates within [start, end]."""
    last = _to_date(end)
    dates = []
    for occurrence in iter_billing_dates(subscription, start):
        if occurrence > last:
            break
        dates.append(occurrence)
    return dates


def next_billing_date(subscription: Subscription, as_of: DateLike) -> Optional[date]:
    """Next charge of a subscription, or None if it will not charge again."""
    return next(iter_billing_dates(subscription, as_of), None)


def payment_history(
    subscription: Subscription,
    as_of: DateLike,
    future_count: int = 6,
    max_past_count: int = 100,
) -> list[PaymentHistoryEntry]:
    """
    Past charges (most recent ``max_past_count``) followed by the next
    ``future_count`` upcoming ones.
    """
    cycle, anchor, _ = _schedule(subscription)
    today = _to_date(as_of)

    past: deque[PaymentHistoryEntry] = deque(maxlen=max_past_count)
    future: list[PaymentHistoryEntry] = []
    for occurrence in iter_billing_dates(subscription, anchor):
        is_past = occurrence <= today
        if not is_past and len(future) >= future_count:
            break
        entry = PaymentHistoryEntry(
            date=occurrence,
            amount=subscription.amount,
            currency=subscription.currency,
            is_past=is_past,
        )
        (past if is_past else future).append(entry)
    return list(past) + future


def count_payments_made(subscription: Subscription, as_of: DateLike) -> int:
    """Number of charges on or before ``as_of`` (and before ``end_date``)."""
    cycle, anchor, day = _schedule(subscription)
    cutoff = _to_date(as_of)
    if subscription.end_date is not None:
        cutoff = min(cutoff, _to_date(subscription.end_date))
    if anchor > cutoff:
        return 0
    if cycle is BillingCycle.ONE_TIME:
        return 1
    return _first_index(cycle, anchor, cutoff + timedelta(days=1), day)


def total_spent(subscription: Subscription, as_of: DateLike) -> float:
    return count_payments_made(subscription, as_of) * subscription.amount


def last_payment_date(subscription: Subscription, as_of: DateLike) -> Optional[date]:
    """Most recent charge on or before ``as_of``, None if nothing charged yet."""
    payments = count_payments_made(subscription, as_of)
    if payments == 0:
        return None
    cycle, anchor, day = _schedule(subscription)
    return occurrence_at(cycle, anchor, payments - 1, day)


def _plural(value: int, unit: str) -> str:
    return f"{value} {unit}" if value == 1 else f"{value} {unit}s"


def subscription_duration(subscription: Subscription, as_of: DateLike) -> SubscriptionDuration:
    """How long the subscription has been running as of ``as_of``."""
    started = subscription.start_date or subscription.created_at
    if started is None:
        raise InvalidBillingDataError(
            f"Subscription {subscription.id!r} has neither start_date nor created_at"
        )
    started = _to_date(started)
    today = _to_date(as_of)
    if started > today:
        return SubscriptionDuration(0, 0, 0, "Not started")

    delta = relativedelta(today, started)
    parts = []
    if delta.years:
        parts.append(_plural(delta.years, "year"))
    if delta.months:
        parts.append(_plural(delta.months, "month"))
    if delta.days or not parts:
        parts.append(_plural(delta.days, "day"))
    return SubscriptionDuration(delta.years, delta.months, delta.days, ", ".join(parts))
