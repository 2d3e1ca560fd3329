"""
services/validation.py
----------------------
Checks a Subscription before it is persisted, so bad data surfaces at the
point of entry instead of as a wrong reminder date later.
"""

import math

from models.subscription import (
    PAYMENT_METHODS,
    REMINDER_DAY_OPTIONS,
    SUBSCRIPTION_CATEGORIES,
    Subscription,
)
from services.exceptions import InvalidBillingDataError
from services.recurrence import parse_cycle, validate_billing_day


def validate_subscription(sub: Subscription) -> Subscription:
    """
    Validate every user-editable field. The billing cycle is normalized to
    the BillingCycle enum in place.

    Raises:
        InvalidBillingDataError: On the first invalid field.
        UnknownBillingCycleError: If the billing cycle is not recognized.
    """
    name = (sub.service_name or "").strip()
    if not name or len(name) > 100:
        raise InvalidBillingDataError("Service name must be 1-100 characters")
    sub.service_name = name

    if not isinstance(sub.amount, (int, float)) or not math.isfinite(sub.amount) or sub.amount < 0:
        raise InvalidBillingDataError(f"Amount must be a non-negative number, got {sub.amount!r}")

    sub.billing_cycle = parse_cycle(sub.billing_cycle)
    validate_billing_day(sub.billing_day)

    if not sub.currency or len(sub.currency) != 3 or not sub.currency.isalpha():
        raise InvalidBillingDataError(f"Currency must be a 3-letter code, got {sub.currency!r}")
    sub.currency = sub.currency.upper()

    if sub.category not in SUBSCRIPTION_CATEGORIES:
        raise InvalidBillingDataError(f"Unknown category {sub.category!r}")
    if sub.payment_method is not None and sub.payment_method not in PAYMENT_METHODS:
        raise InvalidBillingDataError(f"Unknown payment method {sub.payment_method!r}")

    if sub.start_date and sub.end_date and sub.end_date < sub.start_date:
        raise InvalidBillingDataError("End date is before the start date")

    if sub.reminder_days is not None and sub.reminder_days not in REMINDER_DAY_OPTIONS:
        raise InvalidBillingDataError(
            f"Reminder lead time must be one of {REMINDER_DAY_OPTIONS}, got {sub.reminder_days}"
        )
    if sub.reminder_hour is not None and not 0 <= sub.reminder_hour <= 23:
        raise InvalidBillingDataError(f"Reminder hour must be in 0-23, got {sub.reminder_hour}")
    return sub
