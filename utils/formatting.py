"""
utils/formatting.py
-------------------
Display-only helpers for money, dates and reminder hours.
"""

from datetime import date
from typing import Optional

_SYMBOLS = {"EUR": "€", "USD": "$", "GBP": "£", "JPY": "¥", "INR": "₹"}


def format_money(amount: float, currency: str) -> str:
    symbol = _SYMBOLS.get(currency.upper())
    if symbol:
        return f"{amount:.2f}{symbol}"
    return f"{amount:.2f} {currency.upper()}"


def format_hour(hour: int, clock_24h: bool = True) -> str:
    """'09:00' or '9 AM'."""
    if clock_24h:
        return f"{hour:02d}:00"
    suffix = "AM" if hour < 12 else "PM"
    return f"{hour % 12 or 12} {suffix}"


def format_reminder_date(day: date) -> str:
    """Short weekday form used in reminder texts, e.g. 'Mon, Mar 04'."""
    return day.strftime("%a, %b %d")


def format_due(days: Optional[int]) -> str:
    if days is None:
        return "no upcoming charge"
    if days == 0:
        return "today"
    if days == 1:
        return "tomorrow"
    if days < 0:
        return f"{-days} days ago"
    return f"in {days} days"
