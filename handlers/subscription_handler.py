"""
handlers/subscription_handler.py
--------------------------------
Handles subscription commands: listing, adding, editing, archiving and
deleting. Supports both the structured ``/add`` form (no AI) and free text
parsed by Gemini.
"""

from telegram import Update
from telegram.ext import ContextTypes

from security.auth import authorized_only
from security.rate_limiter import rate_limited
from services.subscription_service import SubscriptionService, local_now
from utils.logger import get_logger
from utils.parsing import EDITABLE_FIELDS, parse_manual

logger = get_logger(__name__)

# Shared with the other handlers; main.py attaches the reminder scheduler.
subscription_service = SubscriptionService()

ADD_USAGE = (
    "📝 *Add a subscription*\n\n"
    "*Format:*\n"
    "`/add name | amount | cycle`\n"
    "`/add name | amount | cycle | first charge | currency`\n\n"
    "*Examples:*\n"
    "• `/add Netflix | 15.99 | monthly`\n"
    "• `/add Gym | 30 | monthly | 2026-03-01`\n"
    "• `/add Domain | 12 | yearly | 2026-07-14 | USD`\n\n"
    "*Cycles:* once, weekly, bi-weekly, monthly, quarterly, semiannual, yearly\n\n"
    "Or just describe it: `/add spotify 10.99 every month`"
)


async def _id_arg(update: Update, context: ContextTypes.DEFAULT_TYPE, usage: str) -> int | None:
    """Read the subscription ID from the first argument, replying with usage on failure."""
    if not context.args:
        await update.message.reply_text(usage)
        return None
    try:
        return int(context.args[0].lstrip("#"))
    except ValueError:
        await update.message.reply_text("⚠️ The subscription ID must be a number.")
        return None


async def _reply_result(update: Update, result: dict) -> None:
    if result.get("success"):
        await update.message.reply_text(result["message"])
    else:
        await update.message.reply_text(f"🤔 {result.get('question', 'Please try again.')}")


@authorized_only
@rate_limited
async def subs_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /subs - list active subscriptions, next renewal first."""
    user = update.effective_user
    await update.message.reply_text(subscription_service.list_items(user.id))


@authorized_only
@rate_limited
async def add_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """
    Handle /add - add a new subscription.

    Structured format (no AI):
        /add name | amount | cycle [| first charge] [| currency]
    Anything else is parsed by Gemini.
    """
    user = update.effective_user

    if not context.args:
        await update.message.reply_text(ADD_USAGE, parse_mode="Markdown")
        return

    text = " ".join(context.args)
    parsed = parse_manual(text, local_now().date())

    if parsed:
        result = await subscription_service.add_manual(user.id, user.first_name, parsed)
    else:
        result = await subscription_service.add_from_text(user.id, user.first_name, text)
    await _reply_result(update, result)


@authorized_only
@rate_limited
async def handle_text_message(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle plain text (not a command) as a free-text subscription."""
    user = update.effective_user
    text = update.message.text.strip()
    if not text:
        return

    result = await subscription_service.add_from_text(user.id, user.first_name, text)
    await _reply_result(update, result)


@authorized_only
@rate_limited
async def edit_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """
    Handle /edit <id> <field> <value>.

    Examples:
        /edit 3 amount 17.99
        /edit 3 cycle yearly
        /edit 3 end none
        /edit 3 remind off
    """
    user = update.effective_user

    if not context.args or len(context.args) < 3:
        await update.message.reply_text(
            "⚠️ Usage: /edit <id> <field> <value>\n"
            f"Fields: {', '.join(EDITABLE_FIELDS)}\n"
            "Example: /edit 3 amount 17.99"
        )
        return

    try:
        subscription_id = int(context.args[0].lstrip("#"))
    except ValueError:
        await update.message.reply_text("⚠️ The subscription ID must be a number.")
        return

    field = context.args[1]
    value = " ".join(context.args[2:])
    msg = await subscription_service.update_field(user.id, subscription_id, field, value)
    await update.message.reply_text(msg)


@authorized_only
@rate_limited
async def details_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /details <id> - schedule, payment history and totals."""
    subscription_id = await _id_arg(update, context, "⚠️ Usage: /details <id>\nExample: /details 3")
    if subscription_id is None:
        return
    msg = subscription_service.details(update.effective_user.id, subscription_id)
    await update.message.reply_text(msg, parse_mode="Markdown")


@authorized_only
@rate_limited
async def archive_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /archive <id> - hide a subscription and stop its reminders."""
    subscription_id = await _id_arg(update, context, "⚠️ Usage: /archive <id>")
    if subscription_id is None:
        return
    msg = await subscription_service.archive(update.effective_user.id, subscription_id)
    await update.message.reply_text(msg)


@authorized_only
@rate_limited
async def unarchive_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /unarchive <id>."""
    subscription_id = await _id_arg(update, context, "⚠️ Usage: /unarchive <id>")
    if subscription_id is None:
        return
    msg = await subscription_service.unarchive(update.effective_user.id, subscription_id)
    await update.message.reply_text(msg)


@authorized_only
@rate_limited
async def delete_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """
    Handle /delete <id> - delete a subscription and its pending reminders.
    Usage: /delete 3
    """
    subscription_id = await _id_arg(update, context, "⚠️ Usage: /delete <id>\nExample: /delete 3")
    if subscription_id is None:
        return
    msg = await subscription_service.delete(update.effective_user.id, subscription_id)
    await update.message.reply_text(msg)
