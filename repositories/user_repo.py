"""
repositories/user_repo.py
--------------------------
Data access layer for user records, reminder preferences and the stored
notification permission state.
"""

from typing import Optional

from config import DEFAULT_REMINDER_DAYS, DEFAULT_REMINDER_HOUR
from db.connection import transaction
from models.subscription import ReminderPreference
from utils.logger import get_logger

logger = get_logger(__name__)


class UserRepository:
    """Repository for CRUD operations on the users table."""

    def ensure_user(self, telegram_id: int, first_name: Optional[str] = None) -> dict:
        """
        Insert a user if they don't exist, or return the existing record.
        Uses PostgreSQL's ON CONFLICT (upsert) for atomicity.

        Returns:
            Dict with user data: {'id', 'telegram_id', 'first_name', 'currency'}.
        """
        sql = """
            INSERT INTO users (telegram_id, first_name, reminder_hour, reminder_days)
            VALUES (%s, %s, %s, %s)
            ON CONFLICT (telegram_id)
            DO UPDATE SET first_name = COALESCE(EXCLUDED.first_name, users.first_name)
            RETURNING id, telegram_id, first_name, currency;
        """
        with transaction() as cur:
            cur.execute(sql, (telegram_id, first_name, DEFAULT_REMINDER_HOUR, DEFAULT_REMINDER_DAYS))
            row = cur.fetchone()
        return {
            "id": row[0],
            "telegram_id": row[1],
            "first_name": row[2],
            "currency": row[3],
        }

    def get_currency(self, telegram_id: int) -> Optional[str]:
        sql = "SELECT currency FROM users WHERE telegram_id = %s;"
        with transaction() as cur:
            cur.execute(sql, (telegram_id,))
            row = cur.fetchone()
        return row[0] if row else None

    # ── Reminder preference ───────────────────────────────

    def get_preference(self, telegram_id: int) -> ReminderPreference:
        """Reminder preference of a user; defaults when the user is unknown."""
        sql = "SELECT reminder_hour, reminder_days, reminders_enabled FROM users WHERE telegram_id = %s;"
        with transaction() as cur:
            cur.execute(sql, (telegram_id,))
            row = cur.fetchone()
        if row is None:
            return ReminderPreference(hour=DEFAULT_REMINDER_HOUR, days_before=DEFAULT_REMINDER_DAYS)
        return ReminderPreference(hour=row[0], days_before=row[1], enabled=row[2])

    def set_reminder_hour(self, telegram_id: int, hour: int) -> bool:
        return self._update(telegram_id, "reminder_hour", hour)

    def set_reminder_days(self, telegram_id: int, days: int) -> bool:
        return self._update(telegram_id, "reminder_days", days)

    def set_reminders_enabled(self, telegram_id: int, enabled: bool) -> bool:
        return self._update(telegram_id, "reminders_enabled", enabled)

    # ── Notification permission ───────────────────────────

    def get_permission(self, telegram_id: int) -> str:
        """'undetermined', 'granted' or 'denied'."""
        sql = "SELECT notification_permission FROM users WHERE telegram_id = %s;"
        with transaction() as cur:
            cur.execute(sql, (telegram_id,))
            row = cur.fetchone()
        return row[0] if row else "undetermined"

    def set_permission(self, telegram_id: int, state: str) -> bool:
        return self._update(telegram_id, "notification_permission", state)

    # ── HELPERS ───────────────────────────────────────────

    # Whitelist: column names are interpolated into SQL.
    _UPDATABLE = {"reminder_hour", "reminder_days", "reminders_enabled", "notification_permission"}

    def _update(self, telegram_id: int, column: str, value) -> bool:
        if column not in self._UPDATABLE:
            raise ValueError(f"Column {column!r} cannot be updated")
        sql = f"UPDATE users SET {column} = %s WHERE telegram_id = %s;"
        with transaction() as cur:
            cur.execute(sql, (value, telegram_id))
            updated = cur.rowcount > 0
        if updated:
            logger.info(f"User {telegram_id}: {column} = {value}")
        return updated
