"""Redis-backed token revocation list (logout blacklist)."""

from datetime import timedelta
from typing import Protocol

import redis.asyncio as redis
import structlog
from redis.exceptions import RedisError

from algocollab.exceptions import StoreUnavailableError

logger = structlog.get_logger(__name__)

BLACKLIST_KEY_PREFIX = "jwt:blacklist:"


class RevocationStore(Protocol):
    """TTL-keyed set of revoked token ids."""

    async def revoke(self, jti: str, ttl: timedelta) -> None:
        ...

    async def is_revoked(self, jti: str) -> bool:
        ...


async def create_redis(redis_url: str, pool_size: int = 10) -> redis.Redis:
    """Create a Redis client and verify connectivity.

    Args:
        redis_url: Connection URL (redis://host:port/db)
        pool_size: Maximum pooled connections

    Returns:
        Connected Redis client

    Raises:
        StoreUnavailableError: If the server does not answer PING
    """
    client = redis.from_url(
        redis_url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=pool_size,
        socket_connect_timeout=5,
        socket_timeout=3,
    )
    try:
        await client.ping()
    except RedisError as e:
        await client.aclose()
        logger.error("redis_connection_failed", error=str(e))
        raise StoreUnavailableError(f"Redis connection failed: {e}") from e

    logger.info("redis_connected", url=redis_url.split("@")[-1])
    return client


class RedisRevocationStore:
    """Revocation list stored as one expiring Redis key per revoked JTI.

    Each entry lives exactly as long as the token it revokes, so the store
    cleans itself up. SET and EXISTS are atomic per key on the server; no
    in-process locking is needed.
    """

    def __init__(self, client: redis.Redis, key_prefix: str = BLACKLIST_KEY_PREFIX):
        self._client = client
        self._key_prefix = key_prefix

    def _key(self, jti: str) -> str:
        return f"{self._key_prefix}{jti}"

    async def revoke(self, jti: str, ttl: timedelta) -> None:
        """Record jti as revoked for ttl. No-op if ttl is not positive.

        Raises:
            StoreUnavailableError: If the write fails
        """
        ttl_ms = int(ttl.total_seconds() * 1000)
        if ttl_ms <= 0:
            return

        try:
            await self._client.set(self._key(jti), "1", px=ttl_ms)
        except RedisError as e:
            logger.error("revocation_write_failed", jti=jti, error=str(e))
            raise StoreUnavailableError(f"Failed to record revocation: {e}") from e

        logger.info("token_revoked", jti=jti, ttl_seconds=ttl_ms // 1000)

    async def is_revoked(self, jti: str) -> bool:
        """Return True if jti is on the revocation list.

        Raises:
            StoreUnavailableError: If the lookup fails
        """
        try:
            count = await self._client.exists(self._key(jti))
        except RedisError as e:
            logger.error("revocation_check_failed", jti=jti, error=str(e))
            raise StoreUnavailableError(f"Failed to check revocation: {e}") from e
        return count > 0
