"""
repositories/subscription_repo.py
---------------------------------
Data access layer for subscriptions.
All SQL queries related to the `subscriptions` table live here.
"""

from typing import Optional

from db.connection import transaction
from models.subscription import BillingCycle, Subscription
from utils.logger import get_logger

logger = get_logger(__name__)

_COLUMNS = (
    "id, user_id, service_name, category, amount, currency, billing_cycle, billing_day, "
    "start_date, end_date, payment_method, notes, is_archived, reminder_days, reminder_hour, "
    "reminders_off, created_at, updated_at"
)


class SubscriptionRepository:
    """Repository for CRUD operations on the subscriptions table."""

    # ── CREATE / UPDATE ───────────────────────────────────

    def upsert(self, sub: Subscription) -> Optional[Subscription]:
        """
        Insert a new subscription (``id`` is None) or update an existing one.

        Args:
            sub: The Subscription to persist. Must already be validated.

        Returns:
            The same object with ``id``/timestamps populated, or None when
            updating a row that does not exist for this user.
        """
        values = (
            sub.service_name, sub.category, sub.amount, sub.currency,
            sub.billing_cycle.value, sub.billing_day, sub.start_date, sub.end_date,
            sub.payment_method, sub.notes, sub.is_archived, sub.reminder_days,
            sub.reminder_hour, sub.reminders_off,
        )
        if sub.id is None:
            sql = """
                INSERT INTO subscriptions
                    (service_name, category, amount, currency, billing_cycle, billing_day,
                     start_date, end_date, payment_method, notes, is_archived,
                     reminder_days, reminder_hour, reminders_off, user_id)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING id, created_at, updated_at;
            """
            params = values + (sub.user_id,)
        else:
            sql = """
                UPDATE subscriptions SET
                    service_name = %s, category = %s, amount = %s, currency = %s,
                    billing_cycle = %s, billing_day = %s, start_date = %s, end_date = %s,
                    payment_method = %s, notes = %s, is_archived = %s,
                    reminder_days = %s, reminder_hour = %s, reminders_off = %s,
                    updated_at = NOW()
                WHERE id = %s AND user_id = %s
                RETURNING id, created_at, updated_at;
            """
            params = values + (sub.id, sub.user_id)

        with transaction() as cur:
            cur.execute(sql, params)
            row = cur.fetchone()
        if row is None:
            return None
        sub.id, sub.created_at, sub.updated_at = row
        logger.info(f"Saved subscription '{sub.service_name}' #{sub.id}")
        return sub

    def set_archived(self, subscription_id: int, user_id: int, archived: bool) -> bool:
        """Archive or restore a subscription."""
        sql = """
            UPDATE subscriptions SET is_archived = %s, updated_at = NOW()
            WHERE id = %s AND user_id = %s;
        """
        with transaction() as cur:
            cur.execute(sql, (archived, subscription_id, user_id))
            return cur.rowcount > 0

    # ── READ ──────────────────────────────────────────────

    def list_subscriptions(self, user_id: int, include_archived: bool = False) -> list[Subscription]:
        """
        Get all subscriptions of a user, oldest first.

        Args:
            user_id: Telegram user ID.
            include_archived: Also return archived rows.
        """
        sql = f"SELECT {_COLUMNS} FROM subscriptions WHERE user_id = %s"
        if not include_archived:
            sql += " AND is_archived = FALSE"
        sql += " ORDER BY id ASC;"
        with transaction() as cur:
            cur.execute(sql, (user_id,))
            return [self._row_to_subscription(r) for r in cur.fetchall()]

    def get(self, subscription_id: int, user_id: int) -> Optional[Subscription]:
        """Fetch a single subscription by ID, scoped to user."""
        sql = f"SELECT {_COLUMNS} FROM subscriptions WHERE id = %s AND user_id = %s;"
        with transaction() as cur:
            cur.execute(sql, (subscription_id, user_id))
            row = cur.fetchone()
        return self._row_to_subscription(row) if row else None

    def list_user_ids(self) -> list[int]:
        """Users that own at least one non-archived subscription."""
        sql = "SELECT DISTINCT user_id FROM subscriptions WHERE is_archived = FALSE ORDER BY user_id;"
        with transaction() as cur:
            cur.execute(sql)
            return [r[0] for r in cur.fetchall()]

    # ── DELETE ────────────────────────────────────────────

    def delete(self, subscription_id: int, user_id: int) -> bool:
        """Delete a subscription by ID, scoped to user."""
        sql = "DELETE FROM subscriptions WHERE id = %s AND user_id = %s;"
        with transaction() as cur:
            cur.execute(sql, (subscription_id, user_id))
            deleted = cur.rowcount > 0
        if deleted:
            logger.info(f"Deleted subscription #{subscription_id}")
        return deleted

    # ── HELPERS ───────────────────────────────────────────

    @staticmethod
    def _row_to_subscription(row: tuple) -> Subscription:
        """Convert a database row tuple to a Subscription domain object."""
        return Subscription(
            id=row[0],
            user_id=row[1],
            service_name=row[2],
            category=row[3],
            amount=float(row[4]),
            currency=row[5],
            billing_cycle=BillingCycle(row[6]),
            billing_day=row[7],
            start_date=row[8],
            end_date=row[9],
            payment_method=row[10],
            notes=row[11],
            is_archived=row[12],
            reminder_days=row[13],
            reminder_hour=row[14],
            reminders_off=row[15],
            created_at=row[16],
            updated_at=row[17],
        )
