"""
services/reminder_scheduler.py
------------------------------
Keeps the notification store's pending reminders equal to the latest
projection, with minimal churn.

Reconciliation per subscription:
    1. Read the locally mirrored triggers for the subscription.
    2. Key the desired projection by (subscription_id, occurrence_date).
    3. Cancel mirrored triggers whose key is not desired.
    4. Register desired keys that are not mirrored.
    5. Leave keys present on both sides untouched.

Passes for one subscription are queued behind a FIFO lock and ordered by
snapshot: the moment the subscription data behind them was read. A pass
built from older data than a pass already requested for the same
subscription is skipped, so a sync that read a record before it was deleted
can never bring its reminders back. Every store call is made independently:
one failed cancel or registration is reported and the rest carry on.
"""

import asyncio
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Awaitable, Iterable, Iterator, Optional

from config import REMINDER_HORIZON
from models.subscription import (
    ProjectedOccurrence,
    ReminderPayload,
    ReminderPreference,
    ScheduledTriggerRecord,
    Subscription,
)
from services.exceptions import SchedulingError
from services.notification_platform import NotificationPlatform
from services.schedule_projector import project
from utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class TriggerFailure:
    """A store call (or projection) that failed for one key."""
    subscription_id: int
    occurrence_date: Optional[date]
    operation: str  # 'cancel' | 'register' | 'project'
    error: str


@dataclass
class SyncReport:
    """Outcome of one or more reconciliation passes."""
    cancelled: list[ScheduledTriggerRecord] = field(default_factory=list)
    registered: list[ScheduledTriggerRecord] = field(default_factory=list)
    failures: list[TriggerFailure] = field(default_factory=list)
    permission_denied: bool = False
    superseded: int = 0

    def merge(self, other: "SyncReport") -> None:
        self.cancelled.extend(other.cancelled)
        self.registered.extend(other.registered)
        self.failures.extend(other.failures)
        self.permission_denied = self.permission_denied or other.permission_denied
        self.superseded += other.superseded

    @property
    def has_problems(self) -> bool:
        return bool(self.failures) or self.permission_denied


class _PermissionGate:
    """
    Resolves notification permission for one user at most once per sync call.

    A permission request is only made for user-initiated syncs; background
    syncs just check the current state.
    """

    def __init__(self, platform: NotificationPlatform, user_id: int, user_initiated: bool):
        self._platform = platform
        self._user_id = user_id
        self._user_initiated = user_initiated
        self._lock = asyncio.Lock()
        self._granted: Optional[bool] = None

    async def allowed(self) -> bool:
        async with self._lock:
            if self._granted is None:
                granted = await self._platform.has_permission(self._user_id)
                if not granted and self._user_initiated:
                    granted = await self._platform.request_permission(self._user_id)
                self._granted = granted
            return self._granted


class ReminderScheduler:
    """
    Reconciles projected reminders against a NotificationPlatform.

    Only triggers this scheduler registered are ever cancelled; the store is
    never enumerated or cleared wholesale.
    """

    def __init__(self, platform: NotificationPlatform, horizon: Optional[int] = None):
        self.platform = platform
        self.horizon = REMINDER_HORIZON if horizon is None else horizon
        self._records: dict[int, dict[date, ScheduledTriggerRecord]] = {}
        self._owners: dict[int, int] = {}
        self._locks: defaultdict[int, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._queued: defaultdict[int, int] = defaultdict(int)
        self._latest: dict[int, int] = {}
        self._sequence = 0
        self._open: set[int] = set()
        self._denial_reported: set[int] = set()

    # ── Mirror ────────────────────────────────────────────

    def pending(self, subscription_id: int) -> list[ScheduledTriggerRecord]:
        """Mirrored triggers of one subscription, ascending by date."""
        records = self._records.get(subscription_id, {})
        return sorted(records.values(), key=lambda r: r.occurrence_date)

    def owned_subscriptions(self, user_id: int) -> list[int]:
        return [sid for sid, owner in self._owners.items() if owner == user_id]

    def known_users(self) -> set[int]:
        """Users that own at least one mirrored trigger."""
        return set(self._owners.values())

    def mark_fired(self, subscription_id: int, occurrence_date: date) -> None:
        """Forget a trigger the store already consumed."""
        records = self._records.get(subscription_id)
        if records is None:
            return
        records.pop(occurrence_date, None)
        if not records:
            self._records.pop(subscription_id, None)
            self._owners.pop(subscription_id, None)

    # ── Snapshots ─────────────────────────────────────────

    @contextmanager
    def snapshot(self) -> Iterator[int]:
        """
        Token to take right before reading subscriptions for a sync.

        Pass it to sync_reminders as ``snapshot``. Passes are ordered by
        token, not by when they reach the scheduler.

        Usage:
            with scheduler.snapshot() as token:
                subs = repo.list_subscriptions(user_id, include_archived=True)
                await scheduler.sync_reminders(subs, preference, now, snapshot=token)
        """
        token = self._open_snapshot()
        try:
            yield token
        finally:
            self._close_snapshot(token)

    def _open_snapshot(self) -> int:
        self._sequence += 1
        self._open.add(self._sequence)
        return self._sequence

    def _close_snapshot(self, token: int) -> None:
        self._open.discard(token)
        self._prune()

    def _prune(self) -> None:
        """Drop per-subscription ordering state nothing can still consult."""
        oldest = min(self._open, default=None)
        idle = [
            sid for sid, latest in self._latest.items()
            if not self._queued.get(sid) and (oldest is None or oldest > latest)
        ]
        for sid in idle:
            del self._latest[sid]
            self._queued.pop(sid, None)
            self._locks.pop(sid, None)

    # ── Entry points ──────────────────────────────────────

    def sync_reminders(
        self,
        subscriptions: Iterable[Subscription],
        preference: ReminderPreference,
        as_of: datetime,
        *,
        user_id: Optional[int] = None,
        user_initiated: bool = False,
        snapshot: Optional[int] = None,
    ) -> Awaitable[SyncReport]:
        """
        Project and reconcile every given subscription.

        Archived subscriptions reconcile to nothing. When ``user_id`` is
        given, subscriptions of that user that still own triggers but are
        missing from ``subscriptions`` (deleted elsewhere) are cancelled too.

        The snapshot is fixed when this is called, not when the returned
        awaitable starts running.

        Args:
            subscriptions: Latest snapshot, archived ones included.
            preference: The owner's global reminder preference.
            as_of: Current local wall-clock instant.
            user_id: Owner whose orphaned triggers should be cleaned up.
            user_initiated: True when the sync follows a user action; only
                then may a permission request be shown.
            snapshot: Token from snapshot() taken before ``subscriptions``
                was read. Defaults to the moment of this call.
        """
        owned = snapshot is None
        if owned:
            snapshot = self._open_snapshot()
        return self._sync(
            list(subscriptions), preference, as_of, user_id, user_initiated, snapshot, owned
        )

    async def _sync(
        self,
        subscriptions: list[Subscription],
        preference: ReminderPreference,
        as_of: datetime,
        user_id: Optional[int],
        user_initiated: bool,
        snapshot: int,
        owned: bool,
    ) -> SyncReport:
        report = SyncReport()
        gates: dict[int, _PermissionGate] = {}
        passes = []
        seen: set[int] = set()

        try:
            for subscription in subscriptions:
                seen.add(subscription.id)
                owner = subscription.user_id
                gate = gates.get(owner)
                if gate is None:
                    gate = gates[owner] = _PermissionGate(self.platform, owner, user_initiated)
                try:
                    desired = project(subscription, preference, as_of, self.horizon)
                except SchedulingError as e:
                    logger.error(f"Cannot project reminders for subscription #{subscription.id}: {e}")
                    report.failures.append(TriggerFailure(subscription.id, None, "project", str(e)))
                    desired = []
                passes.append(self.reconcile(subscription.id, owner, desired, gate=gate, snapshot=snapshot))

            if user_id is not None:
                for orphan in self.owned_subscriptions(user_id):
                    if orphan not in seen:
                        logger.info(f"Subscription #{orphan} disappeared, cancelling its reminders")
                        passes.append(self.reconcile(orphan, user_id, [], snapshot=snapshot))

            for result in await asyncio.gather(*passes):
                report.merge(result)
        finally:
            if owned:
                self._close_snapshot(snapshot)
        return report

    async def cancel_subscription(self, subscription_id: int) -> SyncReport:
        """
        Cancel every pending trigger of a subscription (delete / archive).

        Any pass built from data read before this call is skipped afterwards.
        """
        owner = self._owners.get(subscription_id)
        return await self.reconcile(subscription_id, owner, [])

    async def cancel_user(self, user_id: int) -> SyncReport:
        """Cancel every pending trigger owned by a user."""
        report = SyncReport()
        results = await asyncio.gather(
            *(self.cancel_subscription(sid) for sid in self.owned_subscriptions(user_id))
        )
        for result in results:
            report.merge(result)
        return report

    async def reconcile(
        self,
        subscription_id: int,
        user_id: Optional[int],
        desired: list[ProjectedOccurrence],
        *,
        gate: Optional[_PermissionGate] = None,
        user_initiated: bool = False,
        snapshot: Optional[int] = None,
    ) -> SyncReport:
        """
        Run one queued reconciliation pass for a single subscription.

        Without a ``snapshot`` the pass counts as built from data read now.
        """
        if snapshot is None:
            with self.snapshot() as token:
                return await self.reconcile(
                    subscription_id, user_id, desired,
                    gate=gate, user_initiated=user_initiated, snapshot=token,
                )

        report = SyncReport()
        if snapshot > self._latest.get(subscription_id, 0):
            self._latest[subscription_id] = snapshot
        if gate is None:
            gate = _PermissionGate(self.platform, user_id, user_initiated)

        self._queued[subscription_id] += 1
        try:
            async with self._locks[subscription_id]:
                if snapshot < self._latest[subscription_id]:
                    logger.debug(f"Pass from snapshot {snapshot} for subscription #{subscription_id} superseded")
                    report.superseded += 1
                    return report
                await self._apply(subscription_id, user_id, desired, gate, report)
        finally:
            self._queued[subscription_id] -= 1
            self._prune()
        return report

    # ── Internals ─────────────────────────────────────────

    async def _apply(
        self,
        subscription_id: int,
        user_id: Optional[int],
        desired: list[ProjectedOccurrence],
        gate: _PermissionGate,
        report: SyncReport,
    ) -> None:
        existing = self._records.setdefault(subscription_id, {})
        wanted = {occ.occurrence_date: occ for occ in desired}
        stale = [record for day, record in existing.items() if day not in wanted]
        missing = [occ for day, occ in wanted.items() if day not in existing]

        if stale:
            results = await asyncio.gather(
                *(self.platform.cancel(record.trigger_handle) for record in stale),
                return_exceptions=True,
            )
            for record, result in zip(stale, results):
                if isinstance(result, BaseException):
                    logger.error(f"Failed to cancel {record.trigger_handle}: {result}")
                    report.failures.append(
                        TriggerFailure(subscription_id, record.occurrence_date, "cancel", str(result))
                    )
                    continue
                del existing[record.occurrence_date]
                report.cancelled.append(record)
                logger.info(f"Cancelled reminder {record.trigger_handle}")

        if missing and user_id is not None:
            if await gate.allowed():
                self._denial_reported.discard(user_id)
                await self._register(subscription_id, user_id, missing, existing, report)
            else:
                report.permission_denied = True
                if user_id not in self._denial_reported:
                    self._denial_reported.add(user_id)
                    logger.warning(f"No notification permission for user {user_id}, reminders skipped")

        if existing:
            self._owners[subscription_id] = user_id
        else:
            self._records.pop(subscription_id, None)
            self._owners.pop(subscription_id, None)

    async def _register(
        self,
        subscription_id: int,
        user_id: int,
        missing: list[ProjectedOccurrence],
        existing: dict[date, ScheduledTriggerRecord],
        report: SyncReport,
    ) -> None:
        results = await asyncio.gather(
            *(
                self.platform.schedule_one_shot(
                    occ.reminder_instant,
                    ReminderPayload(subscription_id, user_id, occ.occurrence_date),
                )
                for occ in missing
            ),
            return_exceptions=True,
        )
        for occ, result in zip(missing, results):
            if isinstance(result, BaseException):
                logger.error(
                    f"Failed to register reminder for #{subscription_id} on {occ.occurrence_date}: {result}"
                )
                report.failures.append(
                    TriggerFailure(subscription_id, occ.occurrence_date, "register", str(result))
                )
                continue
            record = ScheduledTriggerRecord(subscription_id, occ.occurrence_date, result)
            existing[occ.occurrence_date] = record
            report.registered.append(record)
            logger.info(f"Registered reminder {result} at {occ.reminder_instant:%Y-%m-%d %H:%M}")
