"""Database writer for persisting events to PostgreSQL."""

import asyncio
import logging
from datetime import datetime
from typing import Optional
import asyncpg
from asyncpg import Pool

from ....common.config.settings import DatabaseConfig
from ....common.database import create_pool
from ....common.errors import PersistError, StartupError
from ....common.events import Event


logger = logging.getLogger(__name__)


INSERT_EVENT_SQL = """
    INSERT INTO events (site_id, event_type, path, user_id, timestamp)
    VALUES ($1, $2, $3, $4, $5)
"""

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS events (
        id SERIAL PRIMARY KEY,
        site_id VARCHAR(255) NOT NULL,
        event_type VARCHAR(100) NOT NULL,
        path VARCHAR(1000),
        user_id VARCHAR(255),
        timestamp TIMESTAMPTZ NOT NULL,
        created_at TIMESTAMPTZ DEFAULT NOW()
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_events_site_timestamp
    ON events(site_id, timestamp DESC)
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_events_site_date
    ON events(site_id, DATE(timestamp AT TIME ZONE 'UTC'))
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_events_user_id
    ON events(user_id)
    """,
)

# Failures that mean "this insert did not happen"; anything else is a bug
PERSIST_FAILURES = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError)


class EventWriter:
    """Inserts events one row at a time through a bounded connection pool."""

    def __init__(self, config: DatabaseConfig, pool: Optional[Pool] = None):
        self.config = config
        self.pool: Optional[Pool] = pool

        # Statistics
        self.stats = {
            "records_written": 0,
            "write_errors": 0,
            "last_write_time": None
        }

        logger.info("EventWriter initialized")

    async def initialize(self):
        """Initialize database connection pool."""
        if self.pool is None:
            self.pool = await create_pool(self.config)

        if self.config.create_schema:
            try:
                await self.ensure_schema()
            except PERSIST_FAILURES as e:
                logger.error(f"Failed to initialize database schema: {e}", exc_info=True)
                raise StartupError(f"Could not create events schema: {e}") from e

    async def close(self):
        """Close database connection pool."""
        if self.pool:
            logger.info("Closing database connection pool")
            pool, self.pool = self.pool, None
            await pool.close()

    async def ensure_schema(self):
        """Create the events table and its indexes if they don't exist."""

        async with self.pool.acquire() as conn:
            for statement in SCHEMA_STATEMENTS:
                await conn.execute(statement)

        logger.info("Database schema initialized successfully")

    async def insert(self, event: Event) -> None:
        """
        Insert a single event.

        The connection goes back to the pool on every exit path. Failures are
        raised as PersistError and are never retried here.
        """
        if not self.pool:
            raise PersistError("Database pool not initialized")

        try:
            async with self.pool.acquire(timeout=self.config.connect_timeout_seconds) as conn:
                await conn.execute(
                    INSERT_EVENT_SQL,
                    event.site_id,
                    event.event_type,
                    event.path,
                    event.user_id,
                    event.occurred_at
                )
        except PERSIST_FAILURES as e:
            self.stats["write_errors"] += 1
            raise PersistError(f"Failed to insert event for site {event.site_id}: {e}") from e

        self.stats["records_written"] += 1
        self.stats["last_write_time"] = datetime.now().isoformat()
