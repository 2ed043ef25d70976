"""
Database connection and session management.

Postgres via asyncpg. The store is optional: with no database URL the
pool is never created and callers check ``db.enabled``.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import asyncpg

from backend.app.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


class Database:
    """Async database connection pool."""

    def __init__(self):
        self.pool: Optional[asyncpg.Pool] = None

    @property
    def enabled(self) -> bool:
        return self.pool is not None

    async def connect(self, settings: Optional[Settings] = None) -> None:
        """Create connection pool."""
        settings = settings or get_settings()
        if not settings.database_url:
            logger.info("No database URL configured; persistence disabled")
            return

        self.pool = await asyncpg.create_pool(
            settings.database_url,
            min_size=settings.database_min_pool_size,
            max_size=settings.database_max_pool_size,
            command_timeout=60,
            ssl="require" if settings.environment == "production" else None,
        )

    async def disconnect(self) -> None:
        """Close connection pool."""
        if self.pool:
            await self.pool.close()
            self.pool = None

    @asynccontextmanager
    async def connection(self):
        """Get a connection from the pool."""
        if self.pool is None:
            raise RuntimeError("Database is not connected")
        async with self.pool.acquire() as conn:
            yield conn


# Global database instance
db = Database()
