"""
services/notification_platform.py
---------------------------------
The notification store the reminder scheduler talks to.

`NotificationPlatform` is the interface; `JobQueuePlatform` implements it on
top of python-telegram-bot's JobQueue, where every reminder is a one-shot
``run_once`` job. The job queue is shared with other scheduled jobs, so this
adapter only ever touches jobs whose name starts with TRIGGER_PREFIX.
"""

from datetime import datetime
from typing import Awaitable, Callable, Optional, Protocol
from zoneinfo import ZoneInfo

from telegram import Bot
from telegram.constants import ChatAction
from telegram.error import Forbidden, TelegramError
from telegram.ext import Application, ContextTypes

from config import TIMEZONE
from models.subscription import ReminderPayload
from utils.logger import get_logger

logger = get_logger(__name__)

TRIGGER_PREFIX = "reminder:"

PERMISSION_GRANTED = "granted"
PERMISSION_DENIED = "denied"
PERMISSION_UNDETERMINED = "undetermined"


def trigger_name(payload: ReminderPayload) -> str:
    """Store key of a reminder: ``reminder:<subscription id>:<YYYY-MM-DD>``."""
    return f"{TRIGGER_PREFIX}{payload.subscription_id}:{payload.occurrence_date.isoformat()}"


class NotificationPlatform(Protocol):
    """Asynchronous one-shot notification store."""

    async def has_permission(self, user_id: int) -> bool:
        ...

    async def request_permission(self, user_id: int) -> bool:
        ...

    async def schedule_one_shot(self, instant: datetime, payload: ReminderPayload) -> str:
        ...

    async def cancel(self, handle: str) -> None:
        ...


FireCallback = Callable[[Bot, ReminderPayload], Awaitable[None]]


class JobQueuePlatform:
    """
    NotificationPlatform backed by the bot's JobQueue.

    Permission is the Telegram equivalent of an OS notification prompt: the
    bot may message a user unless the user blocked it. The answer is stored in
    the users table so background syncs never probe the chat.
    """

    def __init__(
        self,
        application: Application,
        user_repo,
        on_fire: FireCallback,
        timezone: Optional[str] = None,
    ):
        self._app = application
        self._user_repo = user_repo
        self._on_fire = on_fire
        self._tz = ZoneInfo(timezone or TIMEZONE)

    async def has_permission(self, user_id: int) -> bool:
        return self._user_repo.get_permission(user_id) == PERMISSION_GRANTED

    async def request_permission(self, user_id: int) -> bool:
        """Probe the chat once; a Forbidden error means the user blocked the bot."""
        try:
            await self._app.bot.send_chat_action(chat_id=user_id, action=ChatAction.TYPING)
        except Forbidden:
            logger.warning(f"User {user_id} blocked the bot, reminders disabled")
            self._user_repo.set_permission(user_id, PERMISSION_DENIED)
            return False
        except TelegramError as e:
            logger.error(f"Permission probe failed for user {user_id}: {e}")
            return False
        self._user_repo.set_permission(user_id, PERMISSION_GRANTED)
        logger.info(f"Notification permission granted for user {user_id}")
        return True

    async def schedule_one_shot(self, instant: datetime, payload: ReminderPayload) -> str:
        """
        Register a run_once job for a local wall-clock instant.

        Returns:
            The job name, used as the trigger handle.
        """
        job_queue = self._app.job_queue
        if job_queue is None:
            raise RuntimeError("JobQueue unavailable; install python-telegram-bot[job-queue]")
        name = trigger_name(payload)
        when = instant if instant.tzinfo else instant.replace(tzinfo=self._tz)
        job_queue.run_once(
            self._fire,
            when=when,
            data=payload,
            name=name,
            chat_id=payload.user_id,
            user_id=payload.user_id,
        )
        return name

    async def cancel(self, handle: str) -> None:
        """Remove the job with this name; a trigger that already fired is a no-op."""
        if not handle.startswith(TRIGGER_PREFIX):
            raise ValueError(f"Refusing to cancel a job outside the reminder namespace: {handle}")
        job_queue = self._app.job_queue
        if job_queue is None:
            return
        for job in job_queue.get_jobs_by_name(handle):
            job.schedule_removal()

    async def _fire(self, context: ContextTypes.DEFAULT_TYPE) -> None:
        payload: ReminderPayload = context.job.data
        await self._on_fire(context.bot, payload)
