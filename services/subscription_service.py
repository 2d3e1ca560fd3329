"""
services/subscription_service.py
--------------------------------
Business logic for tracked subscriptions: adding, editing, archiving and
deleting them, the list/detail views, and keeping the reminder schedule in
step with every change.
"""

from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from telegram import Bot
from telegram.error import Forbidden, TelegramError

from ai.gemini_parser import parse_subscription
from config import DEFAULT_CURRENCY, TIMEZONE
from models.subscription import REMINDER_DAY_OPTIONS, ReminderPayload, Subscription
from repositories.subscription_repo import SubscriptionRepository
from repositories.user_repo import UserRepository
from services.chart_service import ChartService
from services.exceptions import SchedulingError
from services.list_items import get_list_items, monthly_totals
from services.notification_platform import PERMISSION_DENIED
from services.recurrence import (
    billing_cycle_label,
    days_until,
    last_payment_date,
    monthly_equivalent,
    next_billing_date,
    payment_history,
    subscription_duration,
    total_spent,
)
from services.reminder_scheduler import ReminderScheduler, SyncReport
from services.spending_service import (
    Converter,
    date_range,
    primary_currency,
    spending_by_category,
    spending_by_month,
    total_spending,
)
from services.validation import validate_subscription
from utils.formatting import format_due, format_hour, format_money, format_reminder_date
from utils.logger import get_logger
from utils.parsing import parse_cycle_word, parse_field_value

logger = get_logger(__name__)


def local_now() -> datetime:
    """Current wall-clock time in the configured zone, as a naive datetime."""
    return datetime.now(ZoneInfo(TIMEZONE)).replace(tzinfo=None)


def sync_notice(report: SyncReport) -> str:
    """Short note appended to a reply when reminders could not be updated."""
    if report.permission_denied:
        return (
            "\n\n🔕 Reminders are paused: I can't message you. "
            "Unblock the bot and send /reminders on to turn them back on."
        )
    if report.failures:
        return "\n\n⚠️ Some reminders could not be updated. I'll retry on the next sync."
    return ""


class SubscriptionService:
    """
    Handles all business logic for subscriptions.

    Responsibilities:
        - Parse user input into validated subscriptions.
        - Build the list and detail views.
        - Keep pending reminders equal to the stored data after every change.
        - Deliver a reminder when its trigger fires.

    The ReminderScheduler needs the running bot, so it is attached after the
    application starts (see main.py). Until then, sync calls are no-ops.
    """

    def __init__(
        self,
        repo: Optional[SubscriptionRepository] = None,
        user_repo: Optional[UserRepository] = None,
        scheduler: Optional[ReminderScheduler] = None,
        convert: Optional[Converter] = None,
        clock=local_now,
    ):
        self.repo = repo or SubscriptionRepository()
        self.user_repo = user_repo or UserRepository()
        self.scheduler = scheduler
        self.convert = convert
        self.charts = ChartService()
        self._clock = clock

    def attach_scheduler(self, scheduler: ReminderScheduler) -> None:
        self.scheduler = scheduler

    # ── Adding ────────────────────────────────────────────

    async def add_manual(self, user_id: int, first_name: Optional[str], parsed: dict) -> dict:
        """
        Save a subscription from the structured ``/add`` form.

        Args:
            parsed: Output of utils.parsing.parse_manual.

        Returns:
            Dict with 'success' and 'message', or 'success' False and 'question'.
        """
        currency = parsed.get("currency") or self._default_currency(user_id)
        sub = Subscription(
            user_id=user_id,
            service_name=parsed["service_name"],
            amount=parsed["amount"],
            billing_cycle=parsed["billing_cycle"],
            billing_day=parsed["billing_day"],
            currency=currency,
            start_date=parsed["start_date"],
        )
        return await self._save_new(sub, first_name)

    async def add_from_text(self, user_id: int, first_name: Optional[str], text: str) -> dict:
        """
        Parse free text with Gemini and save it as a subscription.

        Returns:
            Dict with 'success' and 'message' or 'success' False and 'question'.
        """
        today = self._clock().date()
        parsed = parse_subscription(text, today, self._default_currency(user_id))

        if "error" in parsed:
            return {"success": False, "question": parsed.get("question", "Please try again.")}

        try:
            start = date.fromisoformat(parsed.get("start_date") or today.isoformat())
            cycle = parse_cycle_word(parsed.get("billing_cycle", "Monthly"))
            if cycle is None:
                raise ValueError(f"unknown cycle {parsed.get('billing_cycle')!r}")
            sub = Subscription(
                user_id=user_id,
                service_name=parsed["service_name"],
                amount=float(parsed["amount"]),
                billing_cycle=cycle,
                billing_day=start.day,
                currency=parsed.get("currency") or self._default_currency(user_id),
                category=parsed.get("category", "Other"),
                start_date=start,
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Unusable Gemini result: {e}, parsed: {parsed}")
            return {"success": False, "question": "Something was off. Try: name | amount | cycle"}

        return await self._save_new(sub, first_name)

    async def _save_new(self, sub: Subscription, first_name: Optional[str]) -> dict:
        try:
            validate_subscription(sub)
        except SchedulingError as e:
            return {"success": False, "question": f"{e}. Please fix it and try again."}

        self.user_repo.ensure_user(sub.user_id, first_name)
        saved = self.repo.upsert(sub)
        report = await self.sync_user(sub.user_id, user_initiated=True)

        upcoming = next_billing_date(saved, self._clock())
        msg = (
            f"✅ Subscription added:\n"
            f"  📌 {saved.service_name}\n"
            f"  💶 {format_money(saved.amount, saved.currency)} ({billing_cycle_label(saved.billing_cycle)})\n"
            f"  🏷️ {saved.category}\n"
            f"  📅 Next charge: {upcoming.isoformat() if upcoming else '-'}\n"
            f"  🔖 ID: #{saved.id}"
        )
        return {"success": True, "message": msg + sync_notice(report)}

    # ── Editing ───────────────────────────────────────────

    async def update_field(self, user_id: int, subscription_id: int, field: str, raw_value: str) -> str:
        """Change one field, validate the whole record and resync its reminders."""
        sub = self.repo.get(subscription_id, user_id)
        if sub is None:
            return f"⚠️ Subscription #{subscription_id} not found."

        try:
            attr, value = parse_field_value(field, raw_value)
            setattr(sub, attr, value)
            if attr == "reminder_days" and value is not None:
                sub.reminders_off = False
            validate_subscription(sub)
        except ValueError as e:
            return f"⚠️ {e}"

        self.repo.upsert(sub)
        logger.info(f"Updated subscription #{subscription_id}: {attr} = {value!r}")
        report = await self.sync_user(user_id, user_initiated=True)
        return f"✏️ #{subscription_id} {sub.service_name}: {field} updated." + sync_notice(report)

    async def archive(self, user_id: int, subscription_id: int) -> str:
        """Cancel the subscription's pending reminders, then archive it."""
        if self.repo.get(subscription_id, user_id) is None:
            return f"⚠️ Subscription #{subscription_id} not found."
        report = await self._cancel(subscription_id)
        self.repo.set_archived(subscription_id, user_id, True)
        report.merge(await self._cancel(subscription_id))
        return f"🗄️ Subscription #{subscription_id} archived. No more reminders for it." + sync_notice(report)

    async def unarchive(self, user_id: int, subscription_id: int) -> str:
        if not self.repo.set_archived(subscription_id, user_id, False):
            return f"⚠️ Subscription #{subscription_id} not found."
        report = await self.sync_user(user_id, user_initiated=True)
        return f"♻️ Subscription #{subscription_id} is active again." + sync_notice(report)

    async def delete(self, user_id: int, subscription_id: int) -> str:
        """Cancel the subscription's pending reminders, then delete the record."""
        sub = self.repo.get(subscription_id, user_id)
        if sub is None:
            return f"⚠️ Subscription #{subscription_id} not found."

        report = await self._cancel(subscription_id)
        self.repo.delete(subscription_id, user_id)
        # A sync that read the row before it was removed may have registered since.
        report.merge(await self._cancel(subscription_id))
        return f"🗑️ Deleted {sub.service_name} (#{subscription_id})." + sync_notice(report)

    async def _cancel(self, subscription_id: int) -> SyncReport:
        if self.scheduler is None:
            return SyncReport()
        return await self.scheduler.cancel_subscription(subscription_id)

    # ── Views ─────────────────────────────────────────────

    def list_items(self, user_id: int) -> str:
        """Active subscriptions, most urgent renewal first, with monthly totals."""
        now = self._clock()
        items = get_list_items(self.repo.list_subscriptions(user_id), now)
        if not items:
            return "📭 No subscriptions yet. Add one with /add."

        lines = ["📋 Your subscriptions:\n"]
        for item in items:
            due = item.next_billing_date_iso or "-"
            lines.append(
                f"  #{item.id} {item.service_name}: {format_money(item.amount, item.currency)} "
                f"({billing_cycle_label(item.billing_cycle)})\n"
                f"      next: {due}, {format_due(item.next_billing_in_days)}"
            )

        totals = monthly_totals(items)
        if totals:
            joined = " | ".join(format_money(v, c) for c, v in sorted(totals.items()))
            lines.append(f"\n💶 Monthly total: {joined}")
        return "\n".join(lines)

    def details(self, user_id: int, subscription_id: int) -> str:
        """Full view of one subscription: schedule, history and totals."""
        sub = self.repo.get(subscription_id, user_id)
        if sub is None:
            return f"⚠️ Subscription #{subscription_id} not found."

        now = self._clock()
        try:
            upcoming = next_billing_date(sub, now)
            history = payment_history(sub, now, future_count=3, max_past_count=5)
            spent = total_spent(sub, now)
            last = last_payment_date(sub, now)
            duration = subscription_duration(sub, now)
        except SchedulingError as e:
            logger.error(f"Cannot compute details for #{subscription_id}: {e}")
            return f"⚠️ Subscription #{subscription_id} has invalid billing data: {e}"

        monthly = monthly_equivalent(sub.amount, sub.billing_cycle)
        lines = [
            f"{'🗄️' if sub.is_archived else '📌'} *{sub.service_name}* (#{sub.id})",
            f"💶 {format_money(sub.amount, sub.currency)} {billing_cycle_label(sub.billing_cycle).lower()}",
        ]
        if monthly is not None:
            lines.append(f"📊 ≈ {format_money(monthly, sub.currency)} per month")
        lines.append(f"🏷️ {sub.category}" + (f" · {sub.payment_method}" if sub.payment_method else ""))
        if upcoming:
            lines.append(f"📅 Next charge: {upcoming.isoformat()} ({format_due(days_until(upcoming, now))})")
        if last:
            lines.append(f"🧾 Last charge: {last.isoformat()}")
        lines.append(f"⏳ Running for: {duration.formatted}")
        lines.append(f"💸 Spent so far: {format_money(spent, sub.currency)}")
        if sub.end_date:
            lines.append(f"🛑 Ends: {sub.end_date.isoformat()}")
        if sub.reminders_off:
            lines.append("🔕 Reminders off for this subscription")
        if sub.notes:
            lines.append(f"📝 {sub.notes}")

        if history:
            lines.append("\nPayments:")
            for entry in history:
                mark = "✔️" if entry.is_past else "⏳"
                lines.append(f"  {mark} {entry.date.isoformat()} {format_money(entry.amount, entry.currency)}")
        return "\n".join(lines)

    def insights(self, user_id: int, kind: str = "6months") -> tuple[str, list]:
        """
        Spending summary text and chart images for a named date range.

        Returns:
            (text, list of PNG BytesIO buffers). The list may be empty.
        """
        subs = self.repo.list_subscriptions(user_id)
        currency = primary_currency(subs, self._default_currency(user_id))
        rng = date_range(kind, self._clock())

        points = spending_by_month(subs, rng.start, rng.end, currency, self.convert)
        categories = spending_by_category(subs, rng.start, rng.end, currency, self.convert)
        total = total_spending(points)

        lines = [f"📈 Spending, {rng.label} ({rng.start.isoformat()} → {rng.end.isoformat()})"]
        lines.append(f"💶 Total: {format_money(total, currency)}")
        for cat in categories:
            lines.append(f"  • {cat.category}: {format_money(cat.amount, currency)} ({cat.percentage:.0f}%)")
        if self.convert is None and any(s.currency.upper() != currency for s in subs):
            lines.append(f"\nℹ️ Only charges in {currency} are counted.")

        charts = [
            chart for chart in (
                self.charts.spending_bar(points, currency, rng.label),
                self.charts.category_donut(categories, currency, rng.label),
            )
            if chart is not None
        ]
        return "\n".join(lines), charts

    # ── Reminder preference ───────────────────────────────

    def reminder_settings(self, user_id: int) -> str:
        pref = self.user_repo.get_preference(user_id)
        state = "on ✅" if pref.enabled else "off ❌"
        lead = "on the day" if pref.days_before == 0 else f"{pref.days_before} day(s) before"
        return (
            f"⏰ Reminders are {state}\n"
            f"  🕐 Time: {format_hour(pref.hour)}\n"
            f"  📆 Lead time: {lead}\n\n"
            f"Change with /reminders on|off|hour <0-23>|days <n>"
        )

    async def set_reminder_hour(self, user_id: int, hour: int) -> str:
        if not 0 <= hour <= 23:
            return "⚠️ The hour must be between 0 and 23."
        self.user_repo.ensure_user(user_id)
        self.user_repo.set_reminder_hour(user_id, hour)
        report = await self.sync_user(user_id, user_initiated=True)
        return f"🕐 Reminders will arrive at {format_hour(hour)}." + sync_notice(report)

    async def set_reminder_days(self, user_id: int, days: int) -> str:
        if days not in REMINDER_DAY_OPTIONS:
            options = ", ".join(str(d) for d in REMINDER_DAY_OPTIONS)
            return f"⚠️ Lead time must be one of: {options}."
        self.user_repo.ensure_user(user_id)
        self.user_repo.set_reminder_days(user_id, days)
        report = await self.sync_user(user_id, user_initiated=True)
        lead = "on the day of the charge" if days == 0 else f"{days} day(s) before each charge"
        return f"📆 You'll be reminded {lead}." + sync_notice(report)

    async def set_reminders_enabled(self, user_id: int, enabled: bool) -> str:
        """Global switch. Turning it off cancels every pending reminder of the user."""
        self.user_repo.ensure_user(user_id)
        self.user_repo.set_reminders_enabled(user_id, enabled)
        if not enabled:
            report = SyncReport()
            if self.scheduler is not None:
                report = await self.scheduler.cancel_user(user_id)
            return "🔕 Reminders turned off." + sync_notice(report)
        report = await self.sync_user(user_id, user_initiated=True)
        return "🔔 Reminders turned on." + sync_notice(report)

    # ── Reminder sync ─────────────────────────────────────

    async def sync_user(
        self,
        user_id: int,
        *,
        user_initiated: bool = False,
        as_of: Optional[datetime] = None,
    ) -> SyncReport:
        """
        Reconcile pending reminders of one user against the stored data.

        Only a sync that follows a user action may ask for notification
        permission.
        """
        if self.scheduler is None:
            logger.warning(f"Reminder sync for user {user_id} skipped: scheduler not attached")
            return SyncReport()
        with self.scheduler.snapshot() as token:
            subs = self.repo.list_subscriptions(user_id, include_archived=True)
            preference = self.user_repo.get_preference(user_id)
            report = await self.scheduler.sync_reminders(
                subs,
                preference,
                as_of or self._clock(),
                user_id=user_id,
                user_initiated=user_initiated,
                snapshot=token,
            )
        logger.info(
            f"Synced reminders for user {user_id}: +{len(report.registered)} "
            f"-{len(report.cancelled)} failures={len(report.failures)}"
        )
        return report

    async def sync_everyone(self) -> SyncReport:
        """
        Background resync for every known user (startup and daily job).
        One user's failure never stops the others.
        """
        total = SyncReport()
        if self.scheduler is None:
            return total
        user_ids = set(self.repo.list_user_ids()) | self.scheduler.known_users()
        for user_id in sorted(user_ids):
            try:
                total.merge(await self.sync_user(user_id))
            except Exception as e:
                logger.error(f"Reminder sync failed for user {user_id}: {e}")
        logger.info(f"Resynced reminders for {len(user_ids)} user(s)")
        return total

    async def handle_fired(self, bot: Bot, payload: ReminderPayload) -> None:
        """
        Job-queue callback of a reminder trigger: send the message, forget the
        consumed trigger and register the next occurrence.
        """
        if self.scheduler is not None:
            self.scheduler.mark_fired(payload.subscription_id, payload.occurrence_date)

        sub = self.repo.get(payload.subscription_id, payload.user_id)
        if sub is None or sub.is_archived:
            logger.info(f"Reminder for #{payload.subscription_id} dropped: subscription gone or archived")
        else:
            days = days_until(payload.occurrence_date, self._clock())
            msg = (
                f"⏰ *Upcoming charge*\n\n"
                f"📌 {sub.service_name}\n"
                f"💶 {format_money(sub.amount, sub.currency)}\n"
                f"📅 {format_reminder_date(payload.occurrence_date)} ({format_due(days)})"
            )
            try:
                await bot.send_message(chat_id=payload.user_id, text=msg, parse_mode="Markdown")
                logger.info(f"Sent reminder for '{sub.service_name}' to user {payload.user_id}")
            except Forbidden:
                logger.warning(f"User {payload.user_id} blocked the bot, cancelling reminders")
                self.user_repo.set_permission(payload.user_id, PERMISSION_DENIED)
                if self.scheduler is not None:
                    await self.scheduler.cancel_user(payload.user_id)
                return
            except TelegramError as e:
                logger.error(f"Failed to send reminder for '{sub.service_name}': {e}")

        await self.sync_user(payload.user_id)

    # ── HELPERS ───────────────────────────────────────────

    def _default_currency(self, user_id: int) -> str:
        return self.user_repo.get_currency(user_id) or DEFAULT_CURRENCY
