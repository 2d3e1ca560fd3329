"""
security/auth.py
-----------------
Whitelist guard for the Telegram handlers.
"""

from functools import wraps
from typing import Callable

from telegram import Update
from telegram.ext import ContextTypes

from config import ALLOWED_USER_IDS
from utils.logger import get_logger

logger = get_logger(__name__)


def is_allowed(user_id: int, allowed: list[int] = ALLOWED_USER_IDS) -> bool:
    """An empty whitelist admits everyone."""
    return not allowed or user_id in allowed


def authorized_only(func: Callable):
    """
    Restrict a handler to the users in ALLOWED_USER_IDS.

    Usage:
        @authorized_only
        async def my_handler(update, context):
            ...
    """
    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE, *args, **kwargs):
        user = update.effective_user
        if not user:
            return

        if not is_allowed(user.id, ALLOWED_USER_IDS):
            logger.warning(
                f"Unauthorized access attempt: user_id={user.id}, username={user.username}"
            )
            if update.effective_message:
                await update.effective_message.reply_text("⛔ Sorry, this is a private bot.")
            return

        return await func(update, context, *args, **kwargs)

    return wrapper
