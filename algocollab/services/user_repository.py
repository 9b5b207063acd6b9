"""Identity persistence: the repository contract and its asyncpg implementation."""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Optional, Protocol
from uuid import UUID

import asyncpg
import structlog

from algocollab.exceptions import DuplicateKeyError, StoreUnavailableError
from algocollab.models.user import Identity, Metadata, Role, UserStatus

logger = structlog.get_logger(__name__)

_COLUMNS = """
    id, uuid, username, email, password_hash, avatar, bio, role, status,
    last_login_at, created_at, updated_at, deleted_at
"""


class UserRepository(Protocol):
    """Identity store used by AuthService.

    Lookups return None when nothing matches. Transient failures raise
    StoreUnavailableError; create raises DuplicateKeyError on a unique
    constraint violation.
    """

    async def exists_by_email(self, email: str) -> bool:
        ...

    async def exists_by_username(self, username: str) -> bool:
        ...

    async def find_by_email(self, email: str) -> Optional[Identity]:
        ...

    async def find_by_uuid(self, user_uuid: UUID) -> Optional[Identity]:
        ...

    async def create(self, identity: Identity) -> Identity:
        ...

    async def update(self, identity: Identity) -> Identity:
        ...


def _row_to_identity(row) -> Identity:
    """Map a users row to an Identity."""
    return Identity(
        id=row["id"],
        uuid=row["uuid"],
        username=row["username"],
        email=row["email"],
        password_hash=row["password_hash"],
        avatar=row["avatar"] or "",
        bio=row["bio"] or "",
        role=Role(row["role"]),
        status=UserStatus(row["status"]),
        last_login_at=row["last_login_at"],
        metadata=Metadata(
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            deleted_at=row["deleted_at"],
        ),
    )


def _violated_field(error: asyncpg.UniqueViolationError) -> str:
    """Work out which unique column a violation refers to."""
    constraint = (getattr(error, "constraint_name", None) or "").lower()
    if "username" in constraint:
        return "username"
    if "email" in constraint:
        return "email"
    detail = (getattr(error, "detail", None) or str(error)).lower()
    return "username" if "username" in detail else "email"


class PostgresUserRepository:
    """UserRepository over an asyncpg pool.

    Usage:
        pool = await init_database(settings.postgres_url)
        repo = PostgresUserRepository(pool)
        identity = await repo.find_by_email("alice@example.com")
    """

    def __init__(self, pool: asyncpg.Pool):
        self._pool = pool

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[asyncpg.Connection]:
        """Acquire a connection, translating driver failures to StoreUnavailableError."""
        try:
            async with self._pool.acquire() as conn:
                yield conn
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            logger.error("identity_store_error", error=str(e), error_type=type(e).__name__)
            raise StoreUnavailableError(f"Identity store error: {e}") from e

    async def exists_by_email(self, email: str) -> bool:
        # Includes soft-deleted rows, matching the unique constraint
        async with self._connection() as conn:
            return await conn.fetchval(
                "SELECT EXISTS(SELECT 1 FROM users WHERE email = $1)",
                email,
            )

    async def exists_by_username(self, username: str) -> bool:
        async with self._connection() as conn:
            return await conn.fetchval(
                "SELECT EXISTS(SELECT 1 FROM users WHERE username = $1)",
                username,
            )

    async def find_by_email(self, email: str) -> Optional[Identity]:
        """Get a live (not soft-deleted) identity by email."""
        async with self._connection() as conn:
            row = await conn.fetchrow(
                f"SELECT {_COLUMNS} FROM users WHERE email = $1 AND deleted_at IS NULL",
                email,
            )
        return _row_to_identity(row) if row is not None else None

    async def find_by_uuid(self, user_uuid: UUID) -> Optional[Identity]:
        """Get a live (not soft-deleted) identity by its external UUID."""
        async with self._connection() as conn:
            row = await conn.fetchrow(
                f"SELECT {_COLUMNS} FROM users WHERE uuid = $1 AND deleted_at IS NULL",
                user_uuid,
            )
        return _row_to_identity(row) if row is not None else None

    async def create(self, identity: Identity) -> Identity:
        """Insert a new identity and return it with its assigned id.

        Raises:
            DuplicateKeyError: If the email or username already exists
            StoreUnavailableError: On any other database failure
        """
        async with self._connection() as conn:
            try:
                row = await conn.fetchrow(
                    f"""
                    INSERT INTO users (uuid, username, email, password_hash, avatar, bio,
                                       role, status, created_at, updated_at)
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
                    RETURNING {_COLUMNS}
                    """,
                    identity.uuid,
                    identity.username,
                    identity.email,
                    identity.password_hash,
                    identity.avatar,
                    identity.bio,
                    identity.role.value,
                    identity.status.value,
                    identity.metadata.created_at,
                    identity.metadata.updated_at,
                )
            except asyncpg.UniqueViolationError as e:
                field = _violated_field(e)
                logger.info("user_create_conflict", field=field)
                raise DuplicateKeyError(field) from e

        created = _row_to_identity(row)
        logger.info(
            "user_created",
            user_id=created.id,
            user_uuid=str(created.uuid),
            username=created.username,
        )
        return created

    async def update(self, identity: Identity) -> Identity:
        """Persist the mutable fields of an existing identity.

        Raises:
            StoreUnavailableError: On database failure, or if the row is gone
        """
        now = datetime.now(timezone.utc)
        async with self._connection() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE users
                SET avatar = $1, bio = $2, role = $3, status = $4,
                    last_login_at = $5, updated_at = $6
                WHERE uuid = $7 AND deleted_at IS NULL
                RETURNING {_COLUMNS}
                """,
                identity.avatar,
                identity.bio,
                identity.role.value,
                identity.status.value,
                identity.last_login_at,
                now,
                identity.uuid,
            )

        if row is None:
            raise StoreUnavailableError(f"User {identity.uuid} no longer exists")

        return _row_to_identity(row)
