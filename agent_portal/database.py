"""Postgres pool for the agents, agent_sessions and auth_audit_log tables.

The tables are provisioned outside this service. Lock and session expiry
checks compare against aware UTC datetimes, so every connection runs in
UTC and timestamps read back without a zone are treated as UTC.
"""

from datetime import datetime, timezone
from typing import Optional

import asyncpg
import structlog

from agent_portal.config import get_settings

logger = structlog.get_logger(__name__)

_pool: Optional[asyncpg.Pool] = None


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to a naive timestamp column value."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


async def _configure_connection(conn: asyncpg.Connection) -> None:
    await conn.execute("SET TIME ZONE 'UTC'")


async def get_pool() -> asyncpg.Pool:
    """Return the pool created at startup.

    Raises:
        RuntimeError: If init_database() has not run (or failed)
    """
    if _pool is None:
        raise RuntimeError("Database pool not initialized. Call init_database() first.")
    return _pool


async def init_database() -> asyncpg.Pool:
    """Create the credential-store pool from settings.

    Pool bounds and the per-statement timeout come from Settings; every
    new connection is switched to UTC before use.

    Returns:
        asyncpg connection pool
    """
    global _pool

    if _pool is not None:
        return _pool

    settings = get_settings()

    try:
        _pool = await asyncpg.create_pool(
            settings.postgres_url,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
            command_timeout=settings.db_command_timeout,
            init=_configure_connection,
        )
    except (OSError, asyncpg.PostgresError) as e:
        logger.error("database_pool_creation_failed", error=str(e))
        raise

    logger.info(
        "database_pool_created",
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
        command_timeout=settings.db_command_timeout,
    )
    return _pool


async def close_database() -> None:
    global _pool

    if _pool is None:
        return

    pool, _pool = _pool, None
    await pool.close()
    logger.info("database_pool_closed")


async def health_check() -> bool:
    """Whether the credential store answers a trivial query."""
    try:
        pool = await get_pool()
        async with pool.acquire() as conn:
            return await conn.fetchval("SELECT 1") == 1
    except (RuntimeError, OSError, asyncpg.PostgresError) as e:
        logger.error("database_health_check_failed", error=str(e))
        return False
