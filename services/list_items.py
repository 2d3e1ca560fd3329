"""
services/list_items.py
----------------------
Builds the subscriptions list read-model shown to the user.
"""

from datetime import datetime
from typing import Iterable

from models.subscription import Subscription, SubscriptionListItem
from services.recurrence import days_until, monthly_equivalent, next_billing_date


def to_list_item(subscription: Subscription, as_of: datetime) -> SubscriptionListItem:
    """Combine raw fields with the next charge and the monthly equivalent."""
    upcoming = next_billing_date(subscription, as_of)
    return SubscriptionListItem(
        id=subscription.id,
        service_name=subscription.service_name,
        category=subscription.category,
        amount=subscription.amount,
        currency=subscription.currency,
        billing_cycle=subscription.billing_cycle,
        billing_day=subscription.billing_day,
        notes=subscription.notes,
        monthly_equivalent=monthly_equivalent(subscription.amount, subscription.billing_cycle),
        next_billing_date_iso=upcoming.isoformat() if upcoming else None,
        next_billing_in_days=days_until(upcoming, as_of) if upcoming else None,
    )


def _urgency(item: SubscriptionListItem) -> tuple[bool, int]:
    # Items with no further charge sink to the bottom.
    days = item.next_billing_in_days
    return days is None, days if days is not None else 0


def get_list_items(subscriptions: Iterable[Subscription], as_of: datetime) -> list[SubscriptionListItem]:
    """
    Non-archived subscriptions as list items, most urgent renewal first.

    The sort is stable: items renewing on the same day keep input order.
    """
    items = [to_list_item(sub, as_of) for sub in subscriptions if not sub.is_archived]
    return sorted(items, key=_urgency)


def monthly_totals(items: Iterable[SubscriptionListItem]) -> dict[str, float]:
    """Aggregate monthly spend per currency. One-time charges are left out."""
    totals: dict[str, float] = {}
    for item in items:
        if item.monthly_equivalent is None:
            continue
        totals[item.currency] = totals.get(item.currency, 0.0) + item.monthly_equivalent
    return totals
