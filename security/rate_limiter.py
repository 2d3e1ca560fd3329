"""
security/rate_limiter.py
-------------------------
Per-user sliding-window rate limit for the Telegram handlers.
"""

import time
from collections import defaultdict, deque
from functools import wraps
from typing import Callable

from telegram import Update
from telegram.ext import ContextTypes

from config import RATE_LIMIT_MESSAGES, RATE_LIMIT_WINDOW_SECONDS
from utils.logger import get_logger

logger = get_logger(__name__)


class RateLimiter:
    """Allows at most ``limit`` hits per user within ``window`` seconds."""

    def __init__(self, limit: int, window: float, clock: Callable[[], float] = time.monotonic):
        self.limit = limit
        self.window = window
        self._clock = clock
        self._hits: defaultdict[int, deque[float]] = defaultdict(deque)

    def hit(self, user_id: int) -> bool:
        """Record a hit; False when the user is over the limit."""
        now = self._clock()
        hits = self._hits[user_id]
        while hits and hits[0] <= now - self.window:
            hits.popleft()
        if len(hits) >= self.limit:
            return False
        hits.append(now)
        return True


_limiter = RateLimiter(RATE_LIMIT_MESSAGES, RATE_LIMIT_WINDOW_SECONDS)


def rate_limited(func: Callable):
    """
    Decorator enforcing RATE_LIMIT_MESSAGES per RATE_LIMIT_WINDOW_SECONDS.
    Over the limit, the handler is skipped and the user gets a warning.
    """
    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE, *args, **kwargs):
        user = update.effective_user
        if not user:
            return

        if not _limiter.hit(user.id):
            logger.warning(f"Rate limit hit for user {user.id}")
            await update.message.reply_text("⚠️ Slow down a little, then try again.")
            return

        return await func(update, context, *args, **kwargs)

    return wrapper
