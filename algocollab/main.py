"""FastAPI application initialization."""

from contextlib import asynccontextmanager
from datetime import timedelta
from uuid import uuid4

from dotenv import load_dotenv

# Load environment variables before anything else
load_dotenv()

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from algocollab.api.auth import router as auth_router
from algocollab.api.middleware import RequestLoggingMiddleware
from algocollab.api.routes import router
from algocollab.config import Settings, get_settings
from algocollab.database import close_database, init_database, run_migrations
from algocollab.services.auth_service import AuthService
from algocollab.services.credentials import CredentialValidator
from algocollab.services.logging_service import configure_logging, get_logger
from algocollab.services.revocation_store import RedisRevocationStore, create_redis
from algocollab.services.token_codec import TokenCodec
from algocollab.services.user_repository import PostgresUserRepository


def build_auth_service(settings: Settings, pool, redis_client) -> AuthService:
    """Wire an AuthService from settings and live store clients."""
    return AuthService(
        users=PostgresUserRepository(pool),
        revocations=RedisRevocationStore(redis_client),
        codec=TokenCodec(secret=settings.jwt_secret, issuer=settings.jwt_issuer),
        credentials=CredentialValidator(),
        access_token_ttl=timedelta(seconds=settings.access_token_ttl_seconds),
        refresh_token_ttl=timedelta(seconds=settings.refresh_token_ttl_seconds),
        store_timeout_seconds=settings.store_timeout_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    settings = get_settings()
    configure_logging(settings.log_level)
    logger = get_logger("main")

    pool = await init_database(settings.postgres_url)
    try:
        await run_migrations(pool)
        redis_client = await create_redis(settings.redis_url, settings.redis_pool_size)
    except Exception:
        await close_database(pool)
        raise

    app.state.db_pool = pool
    app.state.redis = redis_client
    app.state.auth_service = build_auth_service(settings, pool, redis_client)
    await app.state.auth_service.warm_up()
    logger.info(
        "application_started",
        log_level=settings.log_level,
        access_token_ttl_seconds=settings.access_token_ttl_seconds,
    )

    yield

    await redis_client.aclose()
    logger.info("redis_connection_closed")
    await close_database(pool)
    logger.info("application_shutdown")


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors with a 400 and a readable message."""
    correlation_id = getattr(request.state, "correlation_id", None) or str(uuid4())
    logger = structlog.get_logger()

    errors = exc.errors()
    if errors:
        first_error = errors[0]
        field = ".".join(str(loc) for loc in first_error.get("loc", ["unknown"]))
        message = first_error.get("msg", "Validation failed")
        detail = f"Field '{field}': {message}"
    else:
        detail = "Request validation failed"

    logger.warning("validation_error", correlation_id=correlation_id, detail=detail)

    return JSONResponse(
        status_code=400,
        content={
            "detail": {"code": "validation_error", "message": detail},
            "correlation_id": correlation_id,
        },
        headers={"X-Correlation-Id": correlation_id},
    )


def create_app() -> FastAPI:
    """Build the FastAPI application."""
    app = FastAPI(
        title="AlgoCollab Auth",
        description="Registration, login, token refresh and logout",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_middleware(RequestLoggingMiddleware)
    app.include_router(router)
    app.include_router(auth_router)
    return app


app = create_app()
