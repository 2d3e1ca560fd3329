"""
Unit tests for the subscription service layer.

Tests focus on how user actions drive the reminder schedule:
- Adding and editing resync reminders
- Deleting cancels before the record is removed
- Turning reminders off
- Delivering a fired reminder
"""
import asyncio
from datetime import date, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from telegram.error import Forbidden

from models.subscription import ReminderPayload, ReminderPreference
from services.reminder_scheduler import ReminderScheduler, SyncReport
from services.subscription_service import SubscriptionService, sync_notice
from utils.parsing import parse_manual


class Clock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock():
    return Clock(datetime(2024, 3, 10, 10, 0))


@pytest.fixture
def stored():
    return []


@pytest.fixture
def repo(stored):
    repo = MagicMock()

    def _upsert(sub):
        if sub.id is None:
            sub.id = len(stored) + 1
            stored.append(sub)
        return sub

    repo.upsert.side_effect = _upsert
    repo.list_subscriptions.side_effect = lambda user_id, include_archived=False: [
        s for s in stored if include_archived or not s.is_archived
    ]
    repo.get.side_effect = lambda sid, user_id: next((s for s in stored if s.id == sid), None)
    repo.list_user_ids.return_value = [7]
    return repo


@pytest.fixture
def user_repo():
    user_repo = MagicMock()
    user_repo.get_preference.return_value = ReminderPreference(hour=9, days_before=1)
    user_repo.get_currency.return_value = "EUR"
    return user_repo


@pytest.fixture
def service(repo, user_repo, platform, clock):
    return SubscriptionService(
        repo=repo,
        user_repo=user_repo,
        scheduler=ReminderScheduler(platform, horizon=2),
        clock=clock,
    )


async def _add(service, text="Netflix | 15.99 | monthly | 2024-01-15"):
    return await service.add_manual(7, "Sam", parse_manual(text, date(2024, 3, 10)))


class TestAdd:
    """Tests for adding subscriptions"""

    @pytest.mark.asyncio
    async def test_add_registers_reminders(self, service, platform, user_repo):
        result = await _add(service)

        assert result["success"]
        assert "Next charge: 2024-03-15" in result["message"]
        user_repo.ensure_user.assert_called_once_with(7, "Sam")
        assert [p.occurrence_date for _, p in platform.scheduled.values()] == [
            date(2024, 3, 15), date(2024, 4, 15),
        ]

    @pytest.mark.asyncio
    async def test_invalid_input_is_not_saved(self, service, repo, platform):
        result = await _add(service, "Netflix | 15.99 | monthly | 2024-01-15 | EURO")
        assert not result["success"]
        repo.upsert.assert_not_called()
        assert platform.calls == []

    @pytest.mark.asyncio
    async def test_add_reports_blocked_bot(self, service, platform):
        platform.granted = False
        platform.grant_on_request = False
        result = await _add(service)
        assert result["success"]
        assert "Reminders are paused" in result["message"]


class TestEditAndArchive:
    """Edits, archive and delete keep reminders in step"""

    @pytest.mark.asyncio
    async def test_edit_moves_reminders(self, service, platform):
        await _add(service)
        msg = await service.update_field(7, 1, "day", "20")

        assert "updated" in msg
        assert sorted(p.occurrence_date for _, p in platform.scheduled.values()) == [
            date(2024, 3, 20), date(2024, 4, 20),
        ]

    @pytest.mark.asyncio
    async def test_invalid_edit_is_rejected(self, service, repo):
        await _add(service)
        repo.upsert.reset_mock()
        msg = await service.update_field(7, 1, "day", "40")
        assert msg.startswith("⚠️")
        repo.upsert.assert_not_called()

    @pytest.mark.asyncio
    async def test_archive_cancels(self, service, repo, stored, platform):
        await _add(service)

        def _archive(sid, user_id, archived):
            stored[0].is_archived = archived
            return True

        repo.set_archived.side_effect = _archive
        await service.archive(7, 1)
        assert platform.scheduled == {}

        await service.unarchive(7, 1)
        assert len(platform.scheduled) == 2

    @pytest.mark.asyncio
    async def test_delete_cancels_before_removing(self, service, repo, platform):
        await _add(service)
        remaining_at_delete = []
        repo.delete.side_effect = lambda sid, user_id: remaining_at_delete.append(len(platform.scheduled))

        msg = await service.delete(7, 1)

        assert "Deleted Netflix" in msg
        assert remaining_at_delete == [0]
        assert len(platform.cancelled()) == 2

    @pytest.mark.asyncio
    async def test_archive_cancels_before_archiving(self, service, repo, stored, platform):
        await _add(service)
        remaining_at_archive = []

        def _archive(sid, user_id, archived):
            remaining_at_archive.append(len(platform.scheduled))
            stored[0].is_archived = archived
            return True

        repo.set_archived.side_effect = _archive
        msg = await service.archive(7, 1)

        assert "archived" in msg
        assert remaining_at_archive == [0]

    @pytest.mark.asyncio
    async def test_resync_racing_a_delete_leaves_no_reminders(self, service, repo, stored, platform, user_repo, clock):
        """A background sync that read the row just before it was removed"""
        await _add(service)
        racing = []

        def _delete(sid, user_id):
            racing.append(asyncio.ensure_future(service.scheduler.sync_reminders(
                list(stored), user_repo.get_preference(7), clock(), user_id=7
            )))
            stored.clear()
            return True

        repo.delete.side_effect = _delete
        await service.delete(7, 1)
        await asyncio.gather(*racing)

        assert platform.scheduled == {}
        assert service.scheduler.pending(1) == []

    @pytest.mark.asyncio
    async def test_remind_off_mutes_one_subscription(self, service, platform, stored):
        await _add(service)
        await _add(service, "Spotify | 9.99 | monthly | 2024-01-20")

        msg = await service.update_field(7, 1, "remind", "off")

        assert "updated" in msg
        assert stored[0].reminders_off is True
        assert sorted(p.subscription_id for _, p in platform.scheduled.values()) == [2, 2]

        await service.update_field(7, 1, "remind_days", "3")
        assert stored[0].reminders_off is False
        assert sorted(p.subscription_id for _, p in platform.scheduled.values()) == [1, 1, 2, 2]

    @pytest.mark.asyncio
    async def test_delete_unknown(self, service, repo):
        msg = await service.delete(7, 99)
        assert "not found" in msg
        repo.delete.assert_not_called()


class TestReminderSettings:
    """Global reminder switch and preference"""

    @pytest.mark.asyncio
    async def test_turning_off_cancels_everything(self, service, platform, user_repo):
        await _add(service)
        await _add(service, "Spotify | 10.99 | monthly | 2024-01-20")
        assert len(platform.scheduled) == 4

        await service.set_reminders_enabled(7, False)

        user_repo.set_reminders_enabled.assert_called_once_with(7, False)
        assert platform.scheduled == {}

    @pytest.mark.asyncio
    async def test_invalid_hour(self, service, user_repo):
        msg = await service.set_reminder_hour(7, 25)
        assert msg.startswith("⚠️")
        user_repo.set_reminder_hour.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalid_lead_time(self, service, user_repo):
        msg = await service.set_reminder_days(7, 5)
        assert msg.startswith("⚠️")
        user_repo.set_reminder_days.assert_not_called()


class TestFired:
    """Delivering a fired reminder"""

    @pytest.mark.asyncio
    async def test_sends_and_schedules_next(self, service, platform, clock):
        await _add(service)
        platform.calls.clear()
        clock.now = datetime(2024, 3, 14, 9, 0)
        bot = MagicMock()
        bot.send_message = AsyncMock()

        await service.handle_fired(bot, ReminderPayload(1, 7, date(2024, 3, 15)))

        text = bot.send_message.call_args.kwargs["text"]
        assert "Netflix" in text and "tomorrow" in text
        assert platform.registered() == [("register", 1, date(2024, 5, 15))]
        assert [r.occurrence_date for r in service.scheduler.pending(1)] == [
            date(2024, 4, 15), date(2024, 5, 15),
        ]

    @pytest.mark.asyncio
    async def test_blocked_bot_stops_reminders(self, service, platform, user_repo):
        await _add(service)
        bot = MagicMock()
        bot.send_message = AsyncMock(side_effect=Forbidden("bot was blocked by the user"))

        await service.handle_fired(bot, ReminderPayload(1, 7, date(2024, 3, 15)))

        user_repo.set_permission.assert_called_with(7, "denied")
        # Only the trigger that just fired may remain in the store.
        assert all(p.occurrence_date == date(2024, 3, 15) for _, p in platform.scheduled.values())
        assert service.scheduler.pending(1) == []

    @pytest.mark.asyncio
    async def test_deleted_subscription_is_not_announced(self, service, stored):
        await _add(service)
        stored.clear()
        bot = MagicMock()
        bot.send_message = AsyncMock()

        await service.handle_fired(bot, ReminderPayload(1, 7, date(2024, 3, 15)))

        bot.send_message.assert_not_awaited()
        assert service.scheduler.pending(1) == []


class TestViewsAndSync:
    @pytest.mark.asyncio
    async def test_list_is_sorted_by_next_charge(self, service):
        await _add(service, "Gym | 30 | monthly | 2024-01-20")
        await _add(service, "Netflix | 15.99 | monthly | 2024-01-12")
        text = service.list_items(7)
        assert text.index("Netflix") < text.index("Gym")
        assert "Monthly total: 45.99€" in text

    @pytest.mark.asyncio
    async def test_sync_without_scheduler(self, repo, user_repo, clock):
        service = SubscriptionService(repo=repo, user_repo=user_repo, clock=clock)
        report = await service.sync_user(7)
        assert report == SyncReport()
        repo.list_subscriptions.assert_not_called()

    @pytest.mark.asyncio
    async def test_sync_everyone_survives_a_failing_user(self, service, repo, user_repo):
        repo.list_user_ids.return_value = [7, 8]
        user_repo.get_preference.side_effect = [RuntimeError("db down"), ReminderPreference()]
        report = await service.sync_everyone()
        assert isinstance(report, SyncReport)
        assert user_repo.get_preference.call_count == 2

    def test_notice(self):
        assert sync_notice(SyncReport()) == ""
        assert "paused" in sync_notice(SyncReport(permission_denied=True))
