"""Unit tests for PostgresUserRepository.

Uses a mock asyncpg pool; SQL is not executed.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock
from uuid import uuid4

import asyncpg
import pytest

from algocollab.exceptions import DuplicateKeyError, StoreUnavailableError
from algocollab.models.user import Identity, Role, UserStatus
from algocollab.services.user_repository import PostgresUserRepository


class MockConnection:
    """Mock asyncpg connection with common query methods."""

    def __init__(self):
        self.execute = AsyncMock()
        self.fetchrow = AsyncMock()
        self.fetchval = AsyncMock()


class MockPool:
    """Mock asyncpg pool with acquire() context manager."""

    def __init__(self, conn: MockConnection):
        self._conn = conn
        self.acquire_error = None

    def acquire(self):
        return _MockPoolAcquire(self._conn, self.acquire_error)


class _MockPoolAcquire:
    def __init__(self, conn, error):
        self._conn = conn
        self._error = error

    async def __aenter__(self):
        if self._error is not None:
            raise self._error
        return self._conn

    async def __aexit__(self, *args):
        pass


def _make_row(**overrides):
    now = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)
    row = {
        "id": 7,
        "uuid": uuid4(),
        "username": "alice",
        "email": "alice@example.com",
        "password_hash": "$2b$12$abcdefghijklmnopqrstuv",
        "avatar": None,
        "bio": None,
        "role": "user",
        "status": "active",
        "last_login_at": None,
        "created_at": now,
        "updated_at": now,
        "deleted_at": None,
    }
    row.update(overrides)
    return row


def _unique_violation(constraint_name=None, detail=None):
    error = asyncpg.UniqueViolationError("duplicate key value violates unique constraint")
    error.constraint_name = constraint_name
    error.detail = detail
    return error


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_conn():
    return MockConnection()


@pytest.fixture
def mock_pool(mock_conn):
    return MockPool(mock_conn)


@pytest.fixture
def repo(mock_pool):
    return PostgresUserRepository(mock_pool)


@pytest.fixture
def identity():
    return Identity(username="alice", email="alice@example.com", password_hash="$2b$12$hash")


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

class TestExists:
    """Tests for exists_by_email / exists_by_username."""

    async def test_exists_by_email(self, repo, mock_conn):
        mock_conn.fetchval.return_value = True
        assert await repo.exists_by_email("alice@example.com") is True
        query, email = mock_conn.fetchval.call_args.args
        assert "email = $1" in query
        assert email == "alice@example.com"

    async def test_exists_includes_soft_deleted_rows(self, repo, mock_conn):
        mock_conn.fetchval.return_value = False
        await repo.exists_by_username("alice")
        query = mock_conn.fetchval.call_args.args[0]
        assert "deleted_at" not in query


class TestFind:
    """Tests for find_by_email / find_by_uuid."""

    async def test_find_by_email_maps_row(self, repo, mock_conn):
        row = _make_row(role="moderator", last_login_at=datetime(2025, 1, 1, tzinfo=timezone.utc))
        mock_conn.fetchrow.return_value = row

        identity = await repo.find_by_email("alice@example.com")

        assert identity.id == 7
        assert identity.uuid == row["uuid"]
        assert identity.role == Role.MODERATOR
        assert identity.status == UserStatus.ACTIVE
        assert identity.avatar == ""
        assert identity.password_hash == row["password_hash"]
        assert identity.metadata.created_at == row["created_at"]
        assert identity.last_login_at == row["last_login_at"]

    async def test_find_excludes_soft_deleted_rows(self, repo, mock_conn):
        mock_conn.fetchrow.return_value = None
        await repo.find_by_uuid(uuid4())
        query = mock_conn.fetchrow.call_args.args[0]
        assert "deleted_at IS NULL" in query

    async def test_find_returns_none_when_missing(self, repo, mock_conn):
        mock_conn.fetchrow.return_value = None
        assert await repo.find_by_email("ghost@example.com") is None

    async def test_query_error_is_store_unavailable(self, repo, mock_conn):
        mock_conn.fetchrow.side_effect = asyncpg.PostgresError("connection reset")
        with pytest.raises(StoreUnavailableError):
            await repo.find_by_email("alice@example.com")

    async def test_acquire_failure_is_store_unavailable(self, repo, mock_pool):
        mock_pool.acquire_error = OSError("connection refused")
        with pytest.raises(StoreUnavailableError):
            await repo.find_by_uuid(uuid4())


# ---------------------------------------------------------------------------
# create / update
# ---------------------------------------------------------------------------

class TestCreate:
    """Tests for create."""

    async def test_create_returns_assigned_id(self, repo, mock_conn, identity):
        mock_conn.fetchrow.return_value = _make_row(uuid=identity.uuid, id=99)

        created = await repo.create(identity)

        assert created.id == 99
        assert created.uuid == identity.uuid
        args = mock_conn.fetchrow.call_args.args
        assert "INSERT INTO users" in args[0]
        assert args[1] == identity.uuid
        assert args[4] == "$2b$12$hash"
        assert args[7] == "user"

    @pytest.mark.parametrize(
        "constraint,field",
        [("uq_users_email", "email"), ("uq_users_username", "username")],
    )
    async def test_unique_violation_by_constraint(self, repo, mock_conn, identity, constraint, field):
        mock_conn.fetchrow.side_effect = _unique_violation(constraint_name=constraint)
        with pytest.raises(DuplicateKeyError) as exc_info:
            await repo.create(identity)
        assert exc_info.value.field == field

    async def test_unique_violation_falls_back_to_detail(self, repo, mock_conn, identity):
        mock_conn.fetchrow.side_effect = _unique_violation(
            detail="Key (username)=(alice) already exists."
        )
        with pytest.raises(DuplicateKeyError) as exc_info:
            await repo.create(identity)
        assert exc_info.value.field == "username"

    async def test_other_database_error_is_store_unavailable(self, repo, mock_conn, identity):
        mock_conn.fetchrow.side_effect = asyncpg.InterfaceError("pool is closing")
        with pytest.raises(StoreUnavailableError):
            await repo.create(identity)


class TestUpdate:
    """Tests for update."""

    async def test_update_writes_mutable_fields(self, repo, mock_conn, identity):
        login_at = datetime(2025, 2, 1, tzinfo=timezone.utc)
        identity = identity.model_copy(update={"last_login_at": login_at})
        mock_conn.fetchrow.return_value = _make_row(uuid=identity.uuid, last_login_at=login_at)

        updated = await repo.update(identity)

        assert updated.last_login_at == login_at
        args = mock_conn.fetchrow.call_args.args
        assert "UPDATE users" in args[0]
        assert args[5] == login_at
        assert args[7] == identity.uuid

    async def test_update_missing_row_raises(self, repo, mock_conn, identity):
        mock_conn.fetchrow.return_value = None
        with pytest.raises(StoreUnavailableError):
            await repo.update(identity)
