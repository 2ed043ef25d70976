"""
In-memory daily rate limiting for the humanize endpoint.

Counters live in process memory and are keyed by (user id, UTC day), so they
reset naturally at the day boundary and are lost on restart. This is a basic
implementation suitable for single-instance deployments; for multi-instance
deployments swap the dict for a shared store with native TTLs (e.g. Redis).

All reads and writes are synchronous, so under asyncio a check-and-increment
never interleaves with another request or with the sweep job.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Dict, Optional, Tuple

from fastapi import HTTPException


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def day_key(now: Optional[datetime] = None) -> str:
    """Calendar-day component of a counter key (UTC, ISO format)."""
    return (now or _utc_now()).astimezone(timezone.utc).date().isoformat()


class DailyRateLimiter:
    """
    Per-user, per-day request counter.

    A request is allowed while the user's count for today is below
    ``daily_limit``. A denied request does not change the count.
    """

    def __init__(self, daily_limit: int = 50):
        self.daily_limit = daily_limit
        self._counts: Dict[Tuple[str, str], int] = {}

    def try_consume(self, user_id: str, now: Optional[datetime] = None) -> bool:
        """
        Check if request is allowed for user and count it.
        Returns True if allowed, False if the daily quota is used up.
        """
        key = (user_id, day_key(now))
        current = self._counts.get(key, 0)
        if current >= self.daily_limit:
            return False
        self._counts[key] = current + 1
        return True

    def used(self, user_id: str, now: Optional[datetime] = None) -> int:
        return self._counts.get((user_id, day_key(now)), 0)

    def get_retry_after(self, now: Optional[datetime] = None) -> int:
        """Seconds until the next UTC day starts (when quotas reset)."""
        now = (now or _utc_now()).astimezone(timezone.utc)
        tomorrow = datetime.combine(now.date() + timedelta(days=1), datetime.min.time(), tzinfo=timezone.utc)
        return max(1, int((tomorrow - now).total_seconds()))

    def sweep(self, now: Optional[datetime] = None) -> int:
        """
        Drop counters for any day before today. Returns the number removed.

        Keys for today are never touched.
        """
        today = date.fromisoformat(day_key(now))
        stale = [key for key in self._counts if date.fromisoformat(key[1]) < today]
        for key in stale:
            del self._counts[key]
        return len(stale)

    def clear(self) -> None:
        self._counts.clear()

    def __len__(self) -> int:
        return len(self._counts)


def check_rate_limit(user_id: str, limiter: DailyRateLimiter) -> None:
    """
    Consume one request from the user's daily quota or raise 429.

    Usage in endpoint:
        check_rate_limit(body.userId, limiter)
    """
    if not limiter.try_consume(user_id):
        retry_after = limiter.get_retry_after()
        raise HTTPException(
            status_code=429,
            detail=f"Daily limit reached ({limiter.daily_limit} humanizations)",
            headers={"Retry-After": str(retry_after)},
        )
