"""
services/schedule_projector.py
------------------------------
Expands a subscription's infinite recurrence into a short, concrete list of
upcoming reminders.

Only a bounded window is projected because the notification store is finite
and shared by all subscriptions. The window is recomputed on every sync, so
the next occurrence after a fired reminder gets picked up automatically.
"""

from datetime import datetime, time, timedelta
from itertools import islice
from typing import Optional

from config import REMINDER_HORIZON
from models.subscription import ProjectedOccurrence, ReminderPreference, Subscription
from services.exceptions import InvalidBillingDataError
from services.recurrence import iter_billing_dates

# Occurrences whose reminder already passed are skipped; a 30-day lead on a
# weekly cycle skips at most five, so this bound is never the limiting one.
_MAX_SKIPPED = 32


def resolve_preference(subscription: Subscription, preference: ReminderPreference) -> ReminderPreference:
    """Apply the subscription's own hour / lead-time overrides to the user's preference."""
    hour = preference.hour if subscription.reminder_hour is None else subscription.reminder_hour
    days = preference.days_before if subscription.reminder_days is None else subscription.reminder_days
    return ReminderPreference(hour=hour, days_before=days, enabled=preference.enabled)


def validate_preference(preference: ReminderPreference) -> None:
    """
    Raises:
        InvalidBillingDataError: If the hour or lead time is out of range.
    """
    if isinstance(preference.hour, bool) or not isinstance(preference.hour, int) or not 0 <= preference.hour <= 23:
        raise InvalidBillingDataError(f"reminder hour must be in 0-23, got {preference.hour!r}")
    if isinstance(preference.days_before, bool) or not isinstance(preference.days_before, int) or preference.days_before < 0:
        raise InvalidBillingDataError(f"reminder lead time must be >= 0 days, got {preference.days_before!r}")


def reminder_instant(occurrence_date, hour: int, days_before: int) -> datetime:
    """Local wall-clock instant of the reminder for one occurrence."""
    return datetime.combine(occurrence_date - timedelta(days=days_before), time(hour=hour))


def _floor_to_hour(as_of: datetime) -> datetime:
    return as_of.replace(minute=0, second=0, microsecond=0)


def project(
    subscription: Subscription,
    preference: ReminderPreference,
    as_of: datetime,
    horizon: Optional[int] = None,
) -> list[ProjectedOccurrence]:
    """
    Upcoming reminders for one subscription, ascending by occurrence date.

    Reminders fire on whole hours, so the result depends only on ``as_of``
    floored to the hour: repeated calls within the same hour return equal
    lists. A reminder at or before ``as_of`` is dropped and the following
    occurrence is used instead.

    Args:
        subscription: Source record.
        preference: The user's global reminder preference.
        as_of: Current local wall-clock instant.
        horizon: Maximum number of occurrences (defaults to REMINDER_HORIZON).

    Returns:
        At most ``horizon`` ProjectedOccurrence objects. Empty for archived
        or muted subscriptions, disabled reminders, or a one-time charge that
        passed.

    Raises:
        InvalidBillingDataError: For out-of-range billing or reminder fields.
        UnknownBillingCycleError: For an unrecognized billing cycle.
    """
    horizon = REMINDER_HORIZON if horizon is None else horizon
    if subscription.is_archived or subscription.reminders_off or horizon <= 0:
        return []

    effective = resolve_preference(subscription, preference)
    validate_preference(effective)
    if not effective.enabled:
        return []

    now = _floor_to_hour(as_of)
    projected: list[ProjectedOccurrence] = []
    candidates = iter_billing_dates(subscription, now.date())
    for occurrence in islice(candidates, horizon + _MAX_SKIPPED):
        instant = reminder_instant(occurrence, effective.hour, effective.days_before)
        if instant <= now:
            continue
        projected.append(
            ProjectedOccurrence(
                subscription_id=subscription.id,
                occurrence_date=occurrence,
                reminder_instant=instant,
            )
        )
        if len(projected) >= horizon:
            break
    return projected
