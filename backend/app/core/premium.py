"""
Premium gating: status cache, token freshness and the store-first gate.

Policy (one source of truth, checked in order):
1. A non-expired cache entry.
2. The stored subscription (ExtensionPay webhooks keep it current).
3. The client's premium token, if it was issued recently enough.

Every resolved answer, positive or negative, is cached for a fixed TTL so a
user costs at most one store lookup per TTL window.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)

# Epoch values above this are milliseconds (JS Date.now()), below are seconds.
_MS_THRESHOLD = 100_000_000_000

SubscriptionLookup = Callable[[str], Awaitable[Optional[bool]]]


def parse_token_instant(token: Optional[str]) -> Optional[float]:
    """
    Extract the instant embedded in a premium token as epoch seconds.

    Accepts epoch milliseconds, epoch seconds and ISO-8601 strings.
    Returns None for anything else.
    """
    if token is None:
        return None
    raw = str(token).strip()
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError:
        value = None
    if value is not None:
        if value != value or value <= 0:
            return None
        return value / 1000.0 if value >= _MS_THRESHOLD else value
    try:
        dt = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        return None
    return dt.timestamp()


def is_token_fresh(
    token: Optional[str],
    *,
    max_age_seconds: float,
    clock_skew_seconds: float = 0,
    now: Optional[float] = None,
) -> bool:
    """True if the token's instant is no older than ``max_age_seconds``.

    Instants in the future are accepted only within ``clock_skew_seconds``.
    """
    issued_at = parse_token_instant(token)
    if issued_at is None:
        return False
    elapsed = (time.time() if now is None else now) - issued_at
    if elapsed < -clock_skew_seconds:
        return False
    return elapsed <= max_age_seconds


@dataclass(frozen=True)
class _CacheEntry:
    premium: bool
    expires_at: float


class PremiumStatusCache:
    """user id -> (premium flag, expiry). Expired entries read as absent."""

    def __init__(self, ttl_seconds: float = 300, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, _CacheEntry] = {}

    def get(self, user_id: str) -> Optional[bool]:
        entry = self._entries.get(user_id)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            del self._entries[user_id]
            return None
        return entry.premium

    def set(self, user_id: str, premium: bool) -> None:
        self._entries[user_id] = _CacheEntry(premium=premium, expires_at=self._clock() + self.ttl_seconds)

    def invalidate(self, user_id: str) -> None:
        self._entries.pop(user_id, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class PremiumGate:
    """Store-first, token-fallback premium check."""

    def __init__(
        self,
        cache: PremiumStatusCache,
        lookup_subscription: Optional[SubscriptionLookup] = None,
        *,
        token_max_age_seconds: float = 24 * 60 * 60,
        token_clock_skew_seconds: float = 5 * 60,
        dev_bypass: bool = False,
    ):
        self.cache = cache
        self.lookup_subscription = lookup_subscription
        self.token_max_age_seconds = token_max_age_seconds
        self.token_clock_skew_seconds = token_clock_skew_seconds
        self.dev_bypass = dev_bypass

    async def is_premium(self, user_id: str, premium_token: Optional[str] = None) -> bool:
        if not isinstance(user_id, str) or not user_id.strip():
            return False

        if self.dev_bypass:
            return True

        cached = self.cache.get(user_id)
        if cached is not None:
            return cached

        stored = None
        if self.lookup_subscription is not None:
            stored = await self.lookup_subscription(user_id)

        if stored:
            premium = True
        else:
            premium = is_token_fresh(
                premium_token,
                max_age_seconds=self.token_max_age_seconds,
                clock_skew_seconds=self.token_clock_skew_seconds,
            )

        self.cache.set(user_id, premium)
        logger.debug("Premium status for %s resolved to %s (store=%s)", user_id, premium, stored)
        return premium
