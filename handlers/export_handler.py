"""
handlers/export_handler.py
---------------------------
Handles data export commands (CSV, Excel, Markdown).
Delegates to ExportService.
"""

from telegram import Update
from telegram.ext import ContextTypes

from services.export_service import ExportService
from services.subscription_service import local_now
from security.auth import authorized_only
from security.rate_limiter import rate_limited
from utils.logger import get_logger

logger = get_logger(__name__)
export_service = ExportService()


def _include_archived(context: ContextTypes.DEFAULT_TYPE) -> bool:
    """'/export_csv all' also exports archived subscriptions."""
    return bool(context.args) and context.args[0].lower() == "all"


@authorized_only
@rate_limited
async def export_csv_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """
    Handle /export_csv command - send subscriptions as CSV.
    Optional: /export_csv all (include archived).
    """
    user = update.effective_user
    today = local_now().date()

    await update.message.reply_text("📄 Preparing CSV file...")

    try:
        buffer = export_service.export_csv(user.id, _include_archived(context))
        await update.message.reply_document(
            document=buffer,
            filename=f"subscriptions_{today.isoformat()}.csv",
            caption="📄 Subscriptions - CSV",
        )
    except Exception as e:
        logger.error(f"CSV export failed: {e}")
        await update.message.reply_text("❌ Export failed. Please try again.")


@authorized_only
@rate_limited
async def export_excel_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """
    Handle /export_excel command - send subscriptions as Excel.
    Optional: /export_excel all (include archived).
    """
    user = update.effective_user
    today = local_now().date()

    await update.message.reply_text("📊 Preparing Excel file...")

    try:
        buffer = export_service.export_excel(user.id, _include_archived(context))
        await update.message.reply_document(
            document=buffer,
            filename=f"subscriptions_{today.isoformat()}.xlsx",
            caption="📊 Subscriptions - Excel",
        )
    except Exception as e:
        logger.error(f"Excel export failed: {e}")
        await update.message.reply_text("❌ Export failed. Please try again.")


@authorized_only
@rate_limited
async def export_md_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /export_md command - send subscriptions as a Markdown table."""
    user = update.effective_user
    today = local_now().date()

    try:
        buffer = export_service.export_markdown(user.id, today, _include_archived(context))
        await update.message.reply_document(
            document=buffer,
            filename=f"subscriptions_{today.isoformat()}.md",
            caption="📝 Subscriptions - Markdown",
        )
    except Exception as e:
        logger.error(f"Markdown export failed: {e}")
        await update.message.reply_text("❌ Export failed. Please try again.")
