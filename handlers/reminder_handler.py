"""
handlers/reminder_handler.py
----------------------------
Handles /reminders: show and change when reminders arrive.
"""

from telegram import Update
from telegram.ext import ContextTypes

from handlers.subscription_handler import subscription_service
from security.auth import authorized_only
from security.rate_limiter import rate_limited
from utils.logger import get_logger

logger = get_logger(__name__)

USAGE = (
    "⚠️ Usage:\n"
    "/reminders - show settings\n"
    "/reminders on | off\n"
    "/reminders hour <0-23>\n"
    "/reminders days <0, 1, 2, 3, 7, 14 or 30>"
)


@authorized_only
@rate_limited
async def reminders_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """
    Handle /reminders [on|off|hour <h>|days <n>].

    Examples:
        /reminders hour 9
        /reminders days 3
    """
    user = update.effective_user
    args = [a.lower() for a in context.args or []]

    if not args:
        await update.message.reply_text(subscription_service.reminder_settings(user.id))
        return

    action = args[0]
    if action in ("on", "off"):
        msg = await subscription_service.set_reminders_enabled(user.id, action == "on")
    elif action in ("hour", "days") and len(args) >= 2 and args[1].isdigit():
        value = int(args[1])
        if action == "hour":
            msg = await subscription_service.set_reminder_hour(user.id, value)
        else:
            msg = await subscription_service.set_reminder_days(user.id, value)
    else:
        msg = USAGE
    await update.message.reply_text(msg)
