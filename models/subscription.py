"""
models/subscription.py
----------------------
Domain models for tracked subscriptions and the reminder schedule derived
from them.
"""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Optional


class BillingCycle(str, Enum):
    """Closed set of recurrence periods. Values are the persisted strings."""

    ONE_TIME = "One-Time"
    WEEKLY = "Weekly"
    BI_WEEKLY = "Bi-weekly"
    MONTHLY = "Monthly"
    QUARTERLY = "Quarterly"
    SEMIANNUAL = "Semiannual"
    YEARLY = "Yearly"


SUBSCRIPTION_CATEGORIES: list[str] = [
    "Streaming",
    "Music",
    "Software",
    "Utilities",
    "Health",
    "Food",
    "Education",
    "Shopping",
    "AI",
    "Other",
]

PAYMENT_METHODS: list[str] = [
    "Credit Card",
    "Debit Card",
    "PayPal",
    "Apple Pay",
    "Google Pay",
    "Bank Transfer",
    "Cash",
    "Other",
]

# Lead times offered to the user, in days before the charge (0 = same day).
REMINDER_DAY_OPTIONS: tuple[int, ...] = (0, 1, 2, 3, 7, 14, 30)


@dataclass
class Subscription:
    """
    A recurring (or one-time) paid subscription.

    Attributes:
        id: Database primary key (None for new records).
        user_id: Telegram user ID of the owner.
        service_name: Friendly name, e.g. 'Netflix'.
        amount: Charge amount in ``currency``.
        billing_cycle: Recurrence period.
        billing_day: Day-of-month anchor (1-31). Month-based cycles clamp it
            to the last valid day of shorter months.
        currency: ISO currency code.
        category: One of SUBSCRIPTION_CATEGORIES.
        start_date: Anchor date of the first charge. Falls back to
            ``created_at`` when missing.
        end_date: Last day the subscription can charge (None = open-ended).
        payment_method: Optional label from PAYMENT_METHODS.
        notes: Free text.
        is_archived: Archived subscriptions are neither listed nor reminded.
        reminder_days: Per-subscription lead time override (None = use the
            user's preference).
        reminder_hour: Per-subscription hour override (None = use the user's
            preference).
        reminders_off: True silences reminders for this subscription only.
        created_at: Set by the persistence layer.
        updated_at: Set by the persistence layer.
    """
    user_id: int
    service_name: str
    amount: float
    billing_cycle: BillingCycle
    billing_day: int
    currency: str = "EUR"
    category: str = "Other"
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    payment_method: Optional[str] = None
    notes: Optional[str] = None
    is_archived: bool = False
    reminder_days: Optional[int] = None
    reminder_hour: Optional[int] = None
    reminders_off: bool = False
    id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __str__(self) -> str:
        status = "🗄️" if self.is_archived else "✅"
        return (
            f"{status} {self.service_name}: {self.amount:.2f} {self.currency} "
            f"({self.billing_cycle.value})"
        )


@dataclass(frozen=True)
class ReminderPreference:
    """
    How and when a user wants to be reminded.

    Attributes:
        hour: Local hour of day for the reminder, 0-23.
        days_before: Lead time in days before the charge.
        enabled: Global switch; False means no reminders at all.
    """
    hour: int = 12
    days_before: int = 1
    enabled: bool = True


@dataclass(frozen=True)
class ProjectedOccurrence:
    """One upcoming charge together with the instant its reminder should fire."""
    subscription_id: int
    occurrence_date: date
    reminder_instant: datetime

    @property
    def key(self) -> tuple[int, date]:
        return self.subscription_id, self.occurrence_date


@dataclass(frozen=True)
class ScheduledTriggerRecord:
    """Local mirror of a trigger registered in the notification store."""
    subscription_id: int
    occurrence_date: date
    trigger_handle: str

    @property
    def key(self) -> tuple[int, date]:
        return self.subscription_id, self.occurrence_date


@dataclass(frozen=True)
class ReminderPayload:
    """Data carried by a trigger; enough to find the subscription when it fires."""
    subscription_id: int
    user_id: int
    occurrence_date: date


@dataclass
class SubscriptionListItem:
    """
    Read-model row for the subscriptions list.

    ``monthly_equivalent`` is None for one-time charges, and the next-billing
    fields are None once a subscription has no further charge.
    """
    id: Optional[int]
    service_name: str
    category: str
    amount: float
    currency: str
    billing_cycle: BillingCycle
    billing_day: int
    notes: Optional[str]
    monthly_equivalent: Optional[float]
    next_billing_date_iso: Optional[str]
    next_billing_in_days: Optional[int]


@dataclass(frozen=True)
class PaymentHistoryEntry:
    """A single past or future charge of a subscription."""
    date: date
    amount: float
    currency: str
    is_past: bool


@dataclass(frozen=True)
class SubscriptionDuration:
    """How long a subscription has been running."""
    years: int
    months: int
    days: int
    formatted: str
