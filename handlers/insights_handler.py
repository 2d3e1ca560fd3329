"""
handlers/insights_handler.py
----------------------------
Handles /insights: spending summary and charts over a date range.
"""

from telegram import Update
from telegram.ext import ContextTypes

from handlers.subscription_handler import subscription_service
from security.auth import authorized_only
from security.rate_limiter import rate_limited
from services.spending_service import RANGE_KINDS
from utils.logger import get_logger

logger = get_logger(__name__)


@authorized_only
@rate_limited
async def insights_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """
    Handle /insights [6months|ytd|year|alltime].

    Usage:
        /insights         → last 6 months
        /insights ytd     → this year so far
    """
    user = update.effective_user
    kind = context.args[0].lower() if context.args else "6months"
    if kind not in RANGE_KINDS:
        await update.message.reply_text(f"⚠️ Usage: /insights [{'|'.join(RANGE_KINDS)}]")
        return

    await update.message.reply_text("📊 Crunching the numbers...")

    text, charts = subscription_service.insights(user.id, kind)
    await update.message.reply_text(text)
    for chart in charts:
        await update.message.reply_photo(photo=chart)
    if not charts:
        await update.message.reply_text("📭 No charges in this period.")
