"""PostgreSQL connection pool creation."""

import asyncio
import logging
import asyncpg
from asyncpg import Pool

from .config.settings import DatabaseConfig
from .errors import StartupError


logger = logging.getLogger(__name__)


async def create_pool(config: DatabaseConfig) -> Pool:
    """Create the bounded connection pool, raising StartupError if Postgres is unreachable."""

    logger.info(
        f"Initializing database connection pool for {config.host}:{config.port}/{config.name} "
        f"(max_size={config.pool_max_size})"
    )

    try:
        pool = await asyncpg.create_pool(
            host=config.host,
            port=config.port,
            user=config.user,
            password=config.password,
            database=config.name,
            min_size=config.pool_min_size,
            max_size=config.pool_max_size,
            max_inactive_connection_lifetime=config.max_inactive_connection_lifetime,
            command_timeout=config.command_timeout_seconds,
            timeout=config.connect_timeout_seconds
        )
    except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError) as e:
        logger.error(f"Failed to initialize database: {e}", exc_info=True)
        raise StartupError(f"PostgreSQL unavailable at startup: {e}") from e

    logger.info("Database connection pool initialized successfully")
    return pool
