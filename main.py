"""
main.py
-------
Entry point for the SubTrack Telegram bot.

Responsibilities:
    - Initialize the database connection pool and schema.
    - Configure and start the Telegram bot with all handlers.
    - Wire the reminder scheduler to the bot's JobQueue and keep it in sync.
"""

from datetime import time as dt_time
from zoneinfo import ZoneInfo

from telegram import BotCommand
from telegram.ext import (
    Application,
    CommandHandler,
    MessageHandler,
    filters,
)

from config import RESYNC_HOUR, TELEGRAM_BOT_TOKEN, TIMEZONE
from db.connection import init_pool, close_pool
from db.init_db import create_tables
from handlers.export_handler import export_csv_command, export_excel_command, export_md_command
from handlers.insights_handler import insights_command
from handlers.reminder_handler import reminders_command
from handlers.start_handler import start_command, help_command, myid_command, user_repo
from handlers.subscription_handler import (
    add_command,
    archive_command,
    delete_command,
    details_command,
    edit_command,
    handle_text_message,
    subs_command,
    subscription_service,
    unarchive_command,
)
from services.notification_platform import JobQueuePlatform
from services.reminder_scheduler import ReminderScheduler
from utils.logger import get_logger

logger = get_logger(__name__)


async def resync_reminders(context) -> None:
    """
    Scheduled job: rebuild every user's reminder window.
    Runs daily at RESYNC_HOUR.
    """
    report = await subscription_service.sync_everyone()
    logger.info(
        f"Daily resync: +{len(report.registered)} -{len(report.cancelled)} "
        f"failures={len(report.failures)}"
    )


async def post_init(application: Application) -> None:
    """Register the commands menu, attach the reminder scheduler and resume reminders."""
    commands = [
        BotCommand("start", "🚀 Start the bot"),
        BotCommand("help", "📖 Show help"),
        BotCommand("subs", "📋 Your subscriptions"),
        BotCommand("add", "➕ Add a subscription"),
        BotCommand("edit", "✏️ Edit a subscription"),
        BotCommand("details", "🔎 Subscription details"),
        BotCommand("archive", "🗄️ Archive a subscription"),
        BotCommand("unarchive", "♻️ Restore a subscription"),
        BotCommand("delete", "🗑️ Delete a subscription"),
        BotCommand("reminders", "⏰ Reminder settings"),
        BotCommand("insights", "📈 Spending charts"),
        BotCommand("export_csv", "📄 Export CSV"),
        BotCommand("export_excel", "📊 Export Excel"),
        BotCommand("export_md", "📝 Export Markdown"),
        BotCommand("myid", "🆔 Your Telegram ID"),
    ]
    await application.bot.set_my_commands(commands)
    logger.info("Bot commands menu registered successfully.")

    platform = JobQueuePlatform(application, user_repo, on_fire=subscription_service.handle_fired)
    subscription_service.attach_scheduler(ReminderScheduler(platform))

    # Job-queue state does not survive a restart; rebuild it from the database.
    await subscription_service.sync_everyone()


def main() -> None:
    """Initialize and run the bot."""

    # ── 1. Database setup ─────────────────────────────────
    logger.info("Initializing database...")
    init_pool()
    create_tables()

    # ── 2. Build the Telegram application ─────────────────
    logger.info("Starting Telegram bot...")
    app = Application.builder().token(TELEGRAM_BOT_TOKEN).post_init(post_init).build()

    # ── 3. Register command handlers ──────────────────────
    app.add_handler(CommandHandler("start", start_command))
    app.add_handler(CommandHandler("help", help_command))
    app.add_handler(CommandHandler("myid", myid_command))
    app.add_handler(CommandHandler("subs", subs_command))
    app.add_handler(CommandHandler("add", add_command))
    app.add_handler(CommandHandler("edit", edit_command))
    app.add_handler(CommandHandler("details", details_command))
    app.add_handler(CommandHandler("archive", archive_command))
    app.add_handler(CommandHandler("unarchive", unarchive_command))
    app.add_handler(CommandHandler("delete", delete_command))
    app.add_handler(CommandHandler("reminders", reminders_command))
    app.add_handler(CommandHandler("insights", insights_command))
    app.add_handler(CommandHandler("export_csv", export_csv_command))
    app.add_handler(CommandHandler("export_excel", export_excel_command))
    app.add_handler(CommandHandler("export_md", export_md_command))

    # ── 4. Register text message handler (catch-all) ──────
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handle_text_message))

    # ── 5. Schedule jobs ──────────────────────────────────
    job_queue = app.job_queue
    if job_queue:
        job_queue.run_daily(
            resync_reminders,
            time=dt_time(hour=RESYNC_HOUR, minute=0, tzinfo=ZoneInfo(TIMEZONE)),
            name="daily_resync",
        )
        logger.info(f"Scheduled daily reminder resync ({RESYNC_HOUR:02d}:00 {TIMEZONE})")
    else:
        logger.warning("JobQueue unavailable, reminders are disabled")

    # ── 6. Start polling ──────────────────────────────────
    logger.info("🚀 SubTrack is running! Press Ctrl+C to stop.")
    app.run_polling(drop_pending_updates=True, allowed_updates=["message"])

    # ── 7. Cleanup on shutdown ────────────────────────────
    close_pool()
    logger.info("SubTrack stopped.")


if __name__ == "__main__":
    main()
