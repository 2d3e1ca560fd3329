"""
handlers/start_handler.py
--------------------------
Handles /start, /help and /myid.
Registers the user and shows available commands.
"""

from telegram import Update
from telegram.ext import ContextTypes

from repositories.user_repo import UserRepository
from security.auth import authorized_only
from security.rate_limiter import rate_limited
from utils.logger import get_logger

logger = get_logger(__name__)
user_repo = UserRepository()

HELP_TEXT = """
🤖 *SubTrack*
Keeps track of your subscriptions and reminds you before every charge 💳

*➕ Adding:*
`/add Netflix | 15.99 | monthly`
or just write "spotify 10.99 every month"

*🔧 Commands:*
/subs - your subscriptions, next renewal first
/add - add a subscription
/edit - change a field (e.g. /edit 3 amount 17.99, /edit 3 remind off)
/details - history and totals (e.g. /details 3)
/archive - archive a subscription
/unarchive - restore an archived one
/delete - delete a subscription
/reminders - reminder time and lead time
/insights - spending charts
/export\\_csv - export as CSV
/export\\_excel - export as Excel
/export\\_md - export as Markdown
/myid - your Telegram ID
"""


@authorized_only
@rate_limited
async def start_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start command - register user and show welcome message."""
    user = update.effective_user
    user_repo.ensure_user(user.id, user.first_name)
    logger.info(f"User {user.id} ({user.first_name}) started the bot.")

    await update.message.reply_text(
        f"Hi {user.first_name}! 👋\n"
        f"I'll remember your subscriptions and remind you before they charge.\n\n"
        f"Send /help to see everything I can do.",
    )


@authorized_only
@rate_limited
async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /help command - show all available commands."""
    await update.message.reply_text(HELP_TEXT, parse_mode="Markdown")


@authorized_only
async def myid_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /myid command - show user's Telegram ID for whitelisting."""
    user = update.effective_user
    await update.message.reply_text(
        f"🆔 Your ID: `{user.id}`\n"
        f"Add it to `ALLOWED_USER_IDS` in `.env` to lock the bot to you.",
        parse_mode="Markdown",
    )
