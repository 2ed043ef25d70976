"""
Best-effort usage tracking and subscription lookups against Postgres.

Nothing here raises to the caller: telemetry must never break a request.
When no database is configured every function is a no-op.
"""

import logging
from typing import Any, Dict, Optional

from backend.app.core.database import db
from backend.app.storage import postgres

logger = logging.getLogger(__name__)

ACTION_HUMANIZE = "humanize"
ACTION_TRACK_USER = "track_user"


async def record_usage(user_id: str, action: str, metadata: Optional[Dict[str, Any]] = None) -> None:
    """Append a usage row for ``user_id``. Logs and discards any failure."""
    if not db.enabled:
        return
    try:
        async with db.connection() as conn:
            await postgres.ensure_user(conn, user_id)
            await postgres.log_usage(conn, user_id, action, metadata or {})
    except Exception as e:
        logger.warning("Usage logging failed for %s (%s): %s", user_id, action, e)


async def track_user(user_id: str, *, email: Optional[str] = None, is_premium: Optional[bool] = None) -> None:
    """Make sure a user row exists and note the client's claimed premium state.

    The claim is only logged; subscription status is owned by webhooks.
    """
    if not db.enabled:
        return
    try:
        async with db.connection() as conn:
            await postgres.ensure_user(conn, user_id, email=email)
            await postgres.log_usage(conn, user_id, ACTION_TRACK_USER, {"isPremium": bool(is_premium)})
    except Exception as e:
        logger.warning("User tracking failed for %s: %s", user_id, e)


async def lookup_subscription(user_id: str) -> Optional[bool]:
    """
    Stored subscription state for the premium gate.

    Returns True/False when a user row exists, None when there is no row,
    no database, or the lookup failed.
    """
    if not db.enabled:
        return None
    try:
        async with db.connection() as conn:
            user = await postgres.get_user(conn, user_id)
    except Exception as e:
        logger.error("Premium status lookup failed for %s: %s", user_id, e)
        return None
    if user is None:
        return None
    return postgres.is_active_subscription(user)
