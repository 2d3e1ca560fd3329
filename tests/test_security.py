"""
Unit tests for the handler guards.
"""
from unittest.mock import AsyncMock, MagicMock

import pytest

from security import auth
from security.auth import authorized_only, is_allowed
from security.rate_limiter import RateLimiter, rate_limited


class TestIsAllowed:
    def test_empty_whitelist_allows_everyone(self):
        assert is_allowed(42, [])

    def test_whitelist(self):
        assert is_allowed(42, [42, 43])
        assert not is_allowed(44, [42, 43])

    @pytest.mark.asyncio
    async def test_decorator_rejects_unlisted_user(self, monkeypatch):
        monkeypatch.setattr(auth, "ALLOWED_USER_IDS", [1])
        handler = AsyncMock()
        update = MagicMock()
        update.effective_user.id = 2
        update.effective_message.reply_text = AsyncMock()

        await authorized_only(handler)(update, MagicMock())

        handler.assert_not_awaited()
        update.effective_message.reply_text.assert_awaited_once()


class TestRateLimiter:
    """Sliding window per user"""

    def test_blocks_over_limit_then_recovers(self):
        now = [0.0]
        limiter = RateLimiter(limit=2, window=60, clock=lambda: now[0])
        assert limiter.hit(1)
        assert limiter.hit(1)
        assert not limiter.hit(1)
        assert limiter.hit(2)

        now[0] = 60.0
        assert limiter.hit(1)

    @pytest.mark.asyncio
    async def test_decorator_calls_handler(self):
        handler = AsyncMock(return_value="ok")
        update = MagicMock()
        update.effective_user.id = 12345

        assert await rate_limited(handler)(update, MagicMock()) == "ok"
        handler.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_decorator_ignores_updates_without_user(self):
        handler = AsyncMock()
        update = MagicMock()
        update.effective_user = None

        await rate_limited(handler)(update, MagicMock())
        handler.assert_not_awaited()
