"""
Background jobs run by the in-process scheduler.
"""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from backend.app.core.rate_limit import DailyRateLimiter

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "rate_limit_sweep"


async def sweep_rate_limits(limiter: DailyRateLimiter) -> int:
    """Drop rate counters from previous days."""
    removed = limiter.sweep()
    if removed:
        logger.info("[Sweep] Removed %d stale rate counters (%d remain)", removed, len(limiter))
    return removed


def create_scheduler(limiter: DailyRateLimiter, interval_minutes: int = 60) -> AsyncIOScheduler:
    """
    Build the scheduler for periodic jobs.

    The sweep is a coroutine so it runs on the event loop, never in a
    worker thread next to request handlers.
    """
    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        sweep_rate_limits,
        "interval",
        minutes=interval_minutes,
        args=[limiter],
        id=SWEEP_JOB_ID,
        coalesce=True,
        max_instances=1,
    )
    return scheduler
