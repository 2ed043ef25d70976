"""
Postgres storage adapter for Drip Check.

Users, payments and usage logs. Every function takes an asyncpg connection
so callers control pooling and transactions.
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import asyncpg


# ==================== Schema ====================

CREATE_USERS_TABLE = """
CREATE TABLE IF NOT EXISTS users (
    id VARCHAR(255) PRIMARY KEY,
    email VARCHAR(255),
    subscription_status VARCHAR(50) DEFAULT 'free',
    subscription_id VARCHAR(255),
    subscription_period_end TIMESTAMPTZ,
    created_at TIMESTAMPTZ DEFAULT NOW(),
    updated_at TIMESTAMPTZ DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_users_email ON users(email);
"""

CREATE_PAYMENTS_TABLE = """
CREATE TABLE IF NOT EXISTS payments (
    id SERIAL PRIMARY KEY,
    user_id VARCHAR(255) REFERENCES users(id),
    amount INTEGER,
    currency VARCHAR(10),
    status VARCHAR(50),
    extensionpay_payment_id VARCHAR(255),
    created_at TIMESTAMPTZ DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_payments_user ON payments(user_id);
"""

CREATE_USAGE_LOGS_TABLE = """
CREATE TABLE IF NOT EXISTS usage_logs (
    id SERIAL PRIMARY KEY,
    user_id VARCHAR(255) REFERENCES users(id),
    action VARCHAR(100),
    metadata JSONB,
    created_at TIMESTAMPTZ DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_usage_logs_user_created ON usage_logs(user_id, created_at DESC);
"""


async def init_schema(conn: asyncpg.Connection) -> None:
    """Initialize database schema.

    Designed to be idempotent and safe on startup.
    """
    await conn.execute(CREATE_USERS_TABLE)
    await conn.execute(CREATE_PAYMENTS_TABLE)
    await conn.execute(CREATE_USAGE_LOGS_TABLE)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _parse_dt(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str) and value.strip():
        try:
            dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
        return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)
    return None


def normalize_status(status: Optional[str]) -> str:
    """Map provider status strings onto free | active | cancelled."""
    s = (status or "").strip().lower()
    if s in ("active", "trialing", "trial", "past_due", "paid"):
        return "active"
    if s in ("cancelled", "canceled"):
        return "cancelled"
    return "free"


def is_active_subscription(user: Optional[Dict[str, Any]], now: Optional[datetime] = None) -> bool:
    """True for active users, and for cancelled users still inside their paid period."""
    if not user:
        return False
    status = normalize_status(user.get("subscription_status"))
    if status == "active":
        return True
    if status == "cancelled":
        ends_at = _parse_dt(user.get("subscription_period_end"))
        if ends_at is None:
            return False
        return ends_at > (now or _now_utc())
    return False


# ==================== Users ====================

async def upsert_user(
    conn: asyncpg.Connection,
    user_id: str,
    *,
    email: Optional[str] = None,
    subscription_status: str = "free",
    subscription_id: Optional[str] = None,
    subscription_period_end: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Insert or update a user. Missing email/subscription fields keep their stored value."""
    row = await conn.fetchrow(
        """
        INSERT INTO users (id, email, subscription_status, subscription_id, subscription_period_end, updated_at)
        VALUES ($1, $2, $3, $4, $5, NOW())
        ON CONFLICT (id) DO UPDATE SET
            email = COALESCE(EXCLUDED.email, users.email),
            subscription_status = EXCLUDED.subscription_status,
            subscription_id = COALESCE(EXCLUDED.subscription_id, users.subscription_id),
            subscription_period_end = COALESCE(EXCLUDED.subscription_period_end, users.subscription_period_end),
            updated_at = NOW()
        RETURNING *
        """,
        user_id, email, normalize_status(subscription_status), subscription_id, subscription_period_end,
    )
    return dict(row)


async def ensure_user(conn: asyncpg.Connection, user_id: str, email: Optional[str] = None) -> None:
    """Create a free user row if none exists (usage logs reference users)."""
    await conn.execute(
        """
        INSERT INTO users (id, email, subscription_status)
        VALUES ($1, $2, 'free')
        ON CONFLICT (id) DO UPDATE SET
            email = COALESCE(EXCLUDED.email, users.email)
        """,
        user_id, email,
    )


async def get_user(conn: asyncpg.Connection, user_id: str) -> Optional[Dict[str, Any]]:
    """Get user by ID."""
    row = await conn.fetchrow("SELECT * FROM users WHERE id = $1", user_id)
    return dict(row) if row else None


async def find_user_by_email(conn: asyncpg.Connection, email: str) -> Optional[Dict[str, Any]]:
    row = await conn.fetchrow(
        "SELECT * FROM users WHERE email = $1 ORDER BY updated_at DESC LIMIT 1",
        email,
    )
    return dict(row) if row else None


async def find_user_by_subscription(conn: asyncpg.Connection, subscription_id: str) -> Optional[Dict[str, Any]]:
    row = await conn.fetchrow(
        "SELECT * FROM users WHERE subscription_id = $1 LIMIT 1",
        subscription_id,
    )
    return dict(row) if row else None


# ==================== Payments ====================

async def create_payment(
    conn: asyncpg.Connection,
    user_id: str,
    *,
    amount: Optional[int],
    currency: Optional[str],
    status: str,
    extensionpay_payment_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Append a payment row."""
    row = await conn.fetchrow(
        """
        INSERT INTO payments (user_id, amount, currency, status, extensionpay_payment_id)
        VALUES ($1, $2, $3, $4, $5)
        RETURNING *
        """,
        user_id, amount, currency, status, extensionpay_payment_id,
    )
    return dict(row)


async def payment_exists(conn: asyncpg.Connection, extensionpay_payment_id: str) -> bool:
    """True if a payment with this ExtensionPay id was already recorded."""
    value = await conn.fetchval(
        "SELECT 1 FROM payments WHERE extensionpay_payment_id = $1 LIMIT 1",
        extensionpay_payment_id,
    )
    return value is not None


# ==================== Usage ====================

async def log_usage(
    conn: asyncpg.Connection,
    user_id: str,
    action: str,
    metadata: Optional[Dict[str, Any]] = None,
) -> None:
    """Append a usage log row."""
    await conn.execute(
        "INSERT INTO usage_logs (user_id, action, metadata) VALUES ($1, $2, $3::jsonb)",
        user_id, action, json.dumps(metadata or {}, default=str),
    )

