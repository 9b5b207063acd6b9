"""Service health endpoint."""

from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Request
from redis.exceptions import RedisError

from algocollab.database import health_check as db_health_check

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check(request: Request) -> dict:
    """Health check endpoint.

    Reports the identity store and revocation store separately; the
    endpoint itself always answers 200 so load balancers can read the body.

    Returns:
        Status, timestamp in ISO8601 format, and per-store health
    """
    health_status = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    pool = getattr(request.app.state, "db_pool", None)
    if pool is None:
        health_status["database"] = "unavailable"
    else:
        db_healthy = await db_health_check(pool)
        health_status["database"] = "healthy" if db_healthy else "unhealthy"

    redis_client = getattr(request.app.state, "redis", None)
    if redis_client is None:
        health_status["redis"] = "unavailable"
    else:
        try:
            await redis_client.ping()
            health_status["redis"] = "healthy"
        except RedisError as e:
            logger.error("redis_health_check_failed", error=str(e))
            health_status["redis"] = "unhealthy"

    if health_status["database"] != "healthy" or health_status["redis"] != "healthy":
        health_status["status"] = "degraded"

    return health_status
