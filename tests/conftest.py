"""
Pytest configuration and shared fixtures.
"""
import asyncio
from datetime import date, datetime
from typing import Optional

import pytest

from models.subscription import BillingCycle, ReminderPayload, ReminderPreference, Subscription
from services.notification_platform import trigger_name


class FakePlatform:
    """In-memory notification store that records every call."""

    def __init__(self, granted: bool = True, grant_on_request: bool = True):
        self.granted = granted
        self.grant_on_request = grant_on_request
        self.scheduled: dict[str, tuple[datetime, ReminderPayload]] = {}
        self.calls: list[tuple] = []
        self.permission_checks = 0
        self.permission_requests = 0
        self.fail_register: set[date] = set()
        self.fail_cancel: set[str] = set()
        self.hold: Optional[asyncio.Event] = None

    async def has_permission(self, user_id: int) -> bool:
        self.permission_checks += 1
        return self.granted

    async def request_permission(self, user_id: int) -> bool:
        self.permission_requests += 1
        self.granted = self.grant_on_request
        return self.granted

    async def schedule_one_shot(self, instant: datetime, payload: ReminderPayload) -> str:
        if self.hold is not None:
            await self.hold.wait()
        self.calls.append(("register", payload.subscription_id, payload.occurrence_date))
        if payload.occurrence_date in self.fail_register:
            raise RuntimeError("notification store full")
        handle = trigger_name(payload)
        self.scheduled[handle] = (instant, payload)
        return handle

    async def cancel(self, handle: str) -> None:
        self.calls.append(("cancel", handle))
        if handle in self.fail_cancel:
            raise RuntimeError("notification store unavailable")
        self.scheduled.pop(handle, None)

    def registered(self) -> list[tuple]:
        return [c for c in self.calls if c[0] == "register"]

    def cancelled(self) -> list[tuple]:
        return [c for c in self.calls if c[0] == "cancel"]


@pytest.fixture
def platform():
    return FakePlatform()


@pytest.fixture
def preference():
    """Reminder at 09:00, one day before the charge."""
    return ReminderPreference(hour=9, days_before=1, enabled=True)


@pytest.fixture
def make_subscription():
    """Factory for Subscription objects with sensible defaults."""
    def _make(**overrides) -> Subscription:
        fields = dict(
            id=1,
            user_id=7,
            service_name="Netflix",
            amount=15.99,
            billing_cycle=BillingCycle.MONTHLY,
            billing_day=15,
            currency="EUR",
            category="Streaming",
            start_date=date(2024, 1, 15),
        )
        fields.update(overrides)
        return Subscription(**fields)
    return _make


@pytest.fixture
def make_platform():
    """Factory for FakePlatform with custom permission behaviour."""
    return FakePlatform
