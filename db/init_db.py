"""
db/init_db.py
-------------
Creates the database schema (tables) if they do not already exist.
Run this module directly to initialize a fresh database:
    python -m db.init_db
"""

from db.connection import transaction
from utils.logger import get_logger

logger = get_logger(__name__)

SCHEMA_SQL = """
-- Users table: Telegram users, their reminder preference and permission state
CREATE TABLE IF NOT EXISTS users (
    id                      SERIAL PRIMARY KEY,
    telegram_id             BIGINT UNIQUE NOT NULL,
    first_name              VARCHAR(100),
    currency                VARCHAR(5) DEFAULT 'EUR',
    reminder_hour           INT DEFAULT 12 CHECK (reminder_hour BETWEEN 0 AND 23),
    reminder_days           INT DEFAULT 1 CHECK (reminder_days >= 0),
    reminders_enabled       BOOLEAN DEFAULT TRUE,
    notification_permission VARCHAR(12) DEFAULT 'undetermined'
        CHECK (notification_permission IN ('undetermined', 'granted', 'denied')),
    created_at              TIMESTAMPTZ DEFAULT NOW()
);

-- Subscriptions table: one row per tracked subscription
CREATE TABLE IF NOT EXISTS subscriptions (
    id              SERIAL PRIMARY KEY,
    user_id         BIGINT NOT NULL REFERENCES users(telegram_id) ON DELETE CASCADE,
    service_name    VARCHAR(100) NOT NULL,
    category        VARCHAR(30) DEFAULT 'Other',
    amount          NUMERIC(12,2) NOT NULL CHECK (amount >= 0),
    currency        VARCHAR(5) DEFAULT 'EUR',
    billing_cycle   VARCHAR(20) NOT NULL CHECK (billing_cycle IN
        ('One-Time', 'Weekly', 'Bi-weekly', 'Monthly', 'Quarterly', 'Semiannual', 'Yearly')),
    billing_day     INT NOT NULL CHECK (billing_day BETWEEN 1 AND 31),
    start_date      DATE,
    end_date        DATE,
    payment_method  VARCHAR(30),
    notes           TEXT,
    is_archived     BOOLEAN DEFAULT FALSE,
    reminder_days   INT CHECK (reminder_days >= 0),
    reminder_hour   INT CHECK (reminder_hour BETWEEN 0 AND 23),
    reminders_off   BOOLEAN NOT NULL DEFAULT FALSE,
    created_at      TIMESTAMPTZ DEFAULT NOW(),
    updated_at      TIMESTAMPTZ DEFAULT NOW()
);

-- Tables created before per-subscription muting
ALTER TABLE subscriptions ADD COLUMN IF NOT EXISTS reminders_off BOOLEAN NOT NULL DEFAULT FALSE;

-- Indexes for faster queries
CREATE INDEX IF NOT EXISTS idx_subscriptions_user ON subscriptions(user_id);
CREATE INDEX IF NOT EXISTS idx_subscriptions_active ON subscriptions(user_id) WHERE is_archived = FALSE;
"""


def create_tables() -> None:
    """
    Execute the schema SQL to create all tables.
    Safe to call multiple times (uses IF NOT EXISTS).
    """
    with transaction() as cur:
        cur.execute(SCHEMA_SQL)
    logger.info("Database schema initialized successfully.")


if __name__ == "__main__":
    from db.connection import init_pool
    init_pool()
    create_tables()
    print("Database schema created successfully.")
