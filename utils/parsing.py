"""
utils/parsing.py
----------------
Parsers for the structured command arguments users type, e.g.

    /add Netflix | 15.99 | monthly
    /add Gym | 30 | monthly | 2026-03-01 | EUR
"""

import re
from datetime import date
from typing import Optional

from models.subscription import PAYMENT_METHODS, SUBSCRIPTION_CATEGORIES, BillingCycle

_CYCLE_WORDS: dict[str, BillingCycle] = {
    "once": BillingCycle.ONE_TIME,
    "one-time": BillingCycle.ONE_TIME,
    "onetime": BillingCycle.ONE_TIME,
    "weekly": BillingCycle.WEEKLY,
    "week": BillingCycle.WEEKLY,
    "biweekly": BillingCycle.BI_WEEKLY,
    "bi-weekly": BillingCycle.BI_WEEKLY,
    "fortnightly": BillingCycle.BI_WEEKLY,
    "monthly": BillingCycle.MONTHLY,
    "month": BillingCycle.MONTHLY,
    "quarterly": BillingCycle.QUARTERLY,
    "semiannual": BillingCycle.SEMIANNUAL,
    "half-yearly": BillingCycle.SEMIANNUAL,
    "yearly": BillingCycle.YEARLY,
    "annual": BillingCycle.YEARLY,
    "annually": BillingCycle.YEARLY,
    "year": BillingCycle.YEARLY,
}


def parse_cycle_word(word: str) -> Optional[BillingCycle]:
    """Map a user-typed cycle ('monthly', 'Bi-weekly', 'annual') to a BillingCycle."""
    cleaned = word.strip().lower()
    if cleaned in _CYCLE_WORDS:
        return _CYCLE_WORDS[cleaned]
    for cycle in BillingCycle:
        if cycle.value.lower() == cleaned:
            return cycle
    return None


def parse_amount(text: str) -> Optional[float]:
    """Extract a number from '15.99', '€15,99' or '15 EUR'."""
    cleaned = re.sub(r"[^\d.,]", "", text).replace(",", ".")
    if not cleaned or cleaned.count(".") > 1:
        return None
    try:
        return float(cleaned)
    except ValueError:
        return None


def parse_manual(text: str, today: date) -> Optional[dict]:
    """
    Parse ``name | amount | cycle [| start date] [| currency]``.

    The start date defaults to ``today`` and also fixes the billing day.

    Returns:
        Dict with service_name, amount, billing_cycle, start_date,
        billing_day and currency (None when not given), or None if the text
        is not in the structured form.
    """
    parts = [p.strip() for p in text.split("|")]
    if len(parts) < 3 or not parts[0]:
        return None

    amount = parse_amount(parts[1])
    cycle = parse_cycle_word(parts[2])
    if amount is None or cycle is None:
        return None

    start = today
    if len(parts) >= 4 and parts[3]:
        try:
            start = date.fromisoformat(parts[3])
        except ValueError:
            return None

    currency = None
    if len(parts) >= 5 and parts[4]:
        currency = parts[4].upper()

    return {
        "service_name": parts[0],
        "amount": amount,
        "billing_cycle": cycle,
        "start_date": start,
        "billing_day": start.day,
        "currency": currency,
    }


_CLEAR_WORDS = {"none", "-", "default", "clear"}

# /edit field name -> Subscription attribute
EDITABLE_FIELDS: dict[str, str] = {
    "name": "service_name",
    "amount": "amount",
    "cycle": "billing_cycle",
    "day": "billing_day",
    "start": "start_date",
    "end": "end_date",
    "currency": "currency",
    "category": "category",
    "method": "payment_method",
    "notes": "notes",
    "remind_days": "reminder_days",
    "remind_hour": "reminder_hour",
    "remind": "reminders_off",
}

_CLEARABLE = {"end_date", "payment_method", "notes", "reminder_days", "reminder_hour"}
_ON_WORDS = {"on", "yes", "true"}
_OFF_WORDS = {"off", "no", "false"}


def _match_choice(raw: str, choices: list[str]) -> Optional[str]:
    for choice in choices:
        if choice.lower() == raw.lower():
            return choice
    return None


def parse_field_value(field: str, raw: str) -> tuple[str, object]:
    """
    Convert an ``/edit <id> <field> <value>`` pair to (attribute, value).

    Optional fields accept 'none' to clear them; a cleared remind_days or
    remind_hour falls back to the user's default. 'remind off' (or
    'remind_days off') mutes the subscription. Range checks are left to
    validate_subscription; this only converts types.

    Raises:
        ValueError: Unknown field or a value of the wrong shape.
    """
    attr = EDITABLE_FIELDS.get(field.lower())
    if attr is None:
        raise ValueError(f"Unknown field '{field}'. Editable: {', '.join(EDITABLE_FIELDS)}")
    raw = raw.strip()

    if attr in _CLEARABLE and raw.lower() in _CLEAR_WORDS:
        return attr, None
    if attr == "reminder_days" and raw.lower() in _OFF_WORDS:
        return "reminders_off", True
    if attr == "reminders_off":
        word = raw.lower()
        if word in _OFF_WORDS:
            return attr, True
        if word in _ON_WORDS:
            return attr, False
        raise ValueError(f"Use 'on' or 'off', got '{raw}'")
    if attr == "service_name":
        return attr, raw
    if attr == "notes":
        return attr, raw
    if attr == "amount":
        amount = parse_amount(raw)
        if amount is None:
            raise ValueError(f"'{raw}' is not an amount")
        return attr, amount
    if attr == "billing_cycle":
        cycle = parse_cycle_word(raw)
        if cycle is None:
            raise ValueError(f"'{raw}' is not a billing cycle")
        return attr, cycle
    if attr in ("billing_day", "reminder_days", "reminder_hour"):
        if not raw.isdigit():
            raise ValueError(f"'{raw}' is not a whole number")
        return attr, int(raw)
    if attr in ("start_date", "end_date"):
        try:
            return attr, date.fromisoformat(raw)
        except ValueError:
            raise ValueError(f"'{raw}' is not a date (YYYY-MM-DD)")
    if attr == "currency":
        return attr, raw.upper()
    if attr == "category":
        choice = _match_choice(raw, SUBSCRIPTION_CATEGORIES)
        if choice is None:
            raise ValueError(f"Category must be one of: {', '.join(SUBSCRIPTION_CATEGORIES)}")
        return attr, choice
    choice = _match_choice(raw, PAYMENT_METHODS)
    if choice is None:
        raise ValueError(f"Payment method must be one of: {', '.join(PAYMENT_METHODS)}")
    return attr, choice
