"""Database connection and migration management."""

from pathlib import Path

import asyncpg
import structlog

logger = structlog.get_logger(__name__)

MIGRATIONS_DIR = Path(__file__).parent.parent / "migrations"


async def init_database(postgres_url: str, min_size: int = 2, max_size: int = 10) -> asyncpg.Pool:
    """Create the database connection pool.

    Args:
        postgres_url: asyncpg connection URL
        min_size: Minimum pooled connections
        max_size: Maximum pooled connections

    Returns:
        asyncpg connection pool
    """
    try:
        pool = await asyncpg.create_pool(
            postgres_url,
            min_size=min_size,
            max_size=max_size,
            command_timeout=60,
        )
    except Exception as e:
        logger.error("database_pool_creation_failed", error=str(e))
        raise

    logger.info("database_pool_created", min_size=min_size, max_size=max_size)
    return pool


async def close_database(pool: asyncpg.Pool) -> None:
    """Close the database connection pool."""
    await pool.close()
    logger.info("database_pool_closed")


async def run_migrations(pool: asyncpg.Pool, migrations_dir: Path = MIGRATIONS_DIR) -> None:
    """Run all SQL migrations in order.

    Migrations are idempotent (IF NOT EXISTS) and can be re-run safely.
    """
    if not migrations_dir.exists():
        logger.warning("migrations_directory_not_found", path=str(migrations_dir))
        return

    migration_files = sorted(migrations_dir.glob("*.sql"))

    if not migration_files:
        logger.info("no_migrations_found")
        return

    async with pool.acquire() as conn:
        for migration_file in migration_files:
            try:
                await conn.execute(migration_file.read_text())
                logger.info("migration_applied", file=migration_file.name)
            except Exception as e:
                logger.error(
                    "migration_failed",
                    file=migration_file.name,
                    error=str(e),
                )
                raise


async def health_check(pool: asyncpg.Pool) -> bool:
    """Check database connectivity.

    Returns:
        True if database is healthy, False otherwise
    """
    try:
        async with pool.acquire() as conn:
            result = await conn.fetchval("SELECT 1")
            return result == 1
    except Exception as e:
        logger.error("database_health_check_failed", error=str(e))
        return False
