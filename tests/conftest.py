"""Pytest configuration and fixtures."""

import asyncio
import os
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

import pytest

# Set test environment variables before importing the app
os.environ.setdefault("ALGOCOLLAB_JWT_SECRET", "test-secret-key-for-jwt-unit-tests-0123456789")

from algocollab.exceptions import DuplicateKeyError, StoreUnavailableError
from algocollab.models.user import Identity, UserStatus
from algocollab.services.auth_service import AuthService
from algocollab.services.credentials import CredentialValidator
from algocollab.services.token_codec import TokenCodec

JWT_SECRET = "test-secret-key-for-jwt-unit-tests-0123456789"
DEFAULT_PASSWORD = "Valid123x"


class FakeClock:
    """Controllable UTC clock shared by the codec and the service."""

    def __init__(self, now: Optional[datetime] = None):
        self.now = now or datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class InMemoryUserRepository:
    """UserRepository double enforcing unique email/username on create."""

    def __init__(self):
        self.by_uuid: dict[UUID, Identity] = {}
        self._next_id = 1
        self.unavailable = False
        self.fail_updates = False
        self.update_calls = 0

    def _check(self) -> None:
        if self.unavailable:
            raise StoreUnavailableError("identity store down")

    async def exists_by_email(self, email: str) -> bool:
        self._check()
        await asyncio.sleep(0)
        return any(u.email == email for u in self.by_uuid.values())

    async def exists_by_username(self, username: str) -> bool:
        self._check()
        await asyncio.sleep(0)
        return any(u.username == username for u in self.by_uuid.values())

    async def find_by_email(self, email: str) -> Optional[Identity]:
        self._check()
        return next((u for u in self.by_uuid.values() if u.email == email), None)

    async def find_by_uuid(self, user_uuid: UUID) -> Optional[Identity]:
        self._check()
        return self.by_uuid.get(user_uuid)

    async def create(self, identity: Identity) -> Identity:
        self._check()
        if any(u.email == identity.email for u in self.by_uuid.values()):
            raise DuplicateKeyError("email")
        if any(u.username == identity.username for u in self.by_uuid.values()):
            raise DuplicateKeyError("username")
        created = identity.model_copy(update={"id": self._next_id})
        self._next_id += 1
        self.by_uuid[created.uuid] = created
        return created

    async def update(self, identity: Identity) -> Identity:
        self.update_calls += 1
        self._check()
        if self.fail_updates:
            raise StoreUnavailableError("update failed")
        self.by_uuid[identity.uuid] = identity
        return identity


class InMemoryRevocationStore:
    """RevocationStore double with clock-driven expiry and write accounting."""

    def __init__(self, clock: FakeClock):
        self._clock = clock
        self.entries: dict[str, datetime] = {}
        self.writes: list[tuple[str, timedelta]] = []
        self.fail_writes = False
        self.fail_reads = False

    async def revoke(self, jti: str, ttl: timedelta) -> None:
        if self.fail_writes:
            raise StoreUnavailableError("redis write failed")
        if ttl <= timedelta(0):
            return
        self.writes.append((jti, ttl))
        self.entries[jti] = self._clock() + ttl

    async def is_revoked(self, jti: str) -> bool:
        if self.fail_reads:
            raise StoreUnavailableError("redis read failed")
        expires_at = self.entries.get(jti)
        return expires_at is not None and self._clock() < expires_at


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    """Use the minimum bcrypt cost so hashing does not dominate test time."""
    monkeypatch.setattr("algocollab.services.credentials.BCRYPT_ROUNDS", 4)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def codec(clock) -> TokenCodec:
    return TokenCodec(secret=JWT_SECRET, clock=clock)


@pytest.fixture
def credentials() -> CredentialValidator:
    return CredentialValidator()


@pytest.fixture
def users() -> InMemoryUserRepository:
    return InMemoryUserRepository()


@pytest.fixture
def revocations(clock) -> InMemoryRevocationStore:
    return InMemoryRevocationStore(clock)


@pytest.fixture
def auth_service(users, revocations, codec, credentials, clock) -> AuthService:
    """AuthService over in-memory collaborators and a fake clock."""
    return AuthService(
        users=users,
        revocations=revocations,
        codec=codec,
        credentials=credentials,
        access_token_ttl=timedelta(hours=1),
        refresh_token_ttl=timedelta(days=7),
        store_timeout_seconds=1.0,
        clock=clock,
    )


@pytest.fixture
def make_identity(users, credentials):
    """Factory that stores an Identity with a real bcrypt hash."""

    async def _make(
        username: str = "alice",
        email: str = "alice@example.com",
        password: str = DEFAULT_PASSWORD,
        status: UserStatus = UserStatus.ACTIVE,
    ) -> Identity:
        identity = Identity(
            username=username,
            email=email,
            password_hash=credentials.hash_password(password),
            status=status,
        )
        return await users.create(identity)

    return _make
