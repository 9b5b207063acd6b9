"""Authentication service: registration, login, token refresh, logout."""

import asyncio
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Awaitable, Callable, Optional, TypeVar
from uuid import UUID

import structlog

from algocollab.exceptions import DuplicateKeyError, StoreUnavailableError
from algocollab.models.auth import AuthResult, Claims
from algocollab.models.result import AuthFailure, ErrorKind, Result
from algocollab.models.user import Identity, Role, UserStatus
from algocollab.services.credentials import CredentialValidator
from algocollab.services.revocation_store import RevocationStore
from algocollab.services.token_codec import TokenCodec
from algocollab.services.user_repository import UserRepository

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Constants
ACCESS_TOKEN_EXPIRE_HOURS = 24
REFRESH_TOKEN_EXPIRE_HOURS = 168
STORE_TIMEOUT_SECONDS = 5.0

INVALID_CREDENTIALS_MESSAGE = "Invalid email or password"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    """Hash compared against when the email is unknown, to equalize login timing."""
    return CredentialValidator().hash_password("algocollab-timing-dummy")


def _verify_dummy(credentials: CredentialValidator, password: str) -> bool:
    """Run a full bcrypt check against the dummy hash. Call from a worker thread."""
    return credentials.verify_password(password, _dummy_hash())


class AuthService:
    """Service for authentication and the token lifecycle.

    A token is Active while nbf <= now < exp and its jti is not revoked. It
    ends either Expired (now >= exp) or Revoked (jti recorded by logout).
    Access tokens are not checked against the revocation list on every
    request; only refresh_token and logout consult it.

    Every public method returns a Result. Collaborator calls run under a
    deadline; a timeout or StoreUnavailableError becomes a STORE_UNAVAILABLE
    failure. Task cancellation propagates to the caller.
    """

    def __init__(
        self,
        users: UserRepository,
        revocations: RevocationStore,
        codec: TokenCodec,
        credentials: Optional[CredentialValidator] = None,
        access_token_ttl: timedelta = timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS),
        refresh_token_ttl: timedelta = timedelta(hours=REFRESH_TOKEN_EXPIRE_HOURS),
        store_timeout_seconds: float = STORE_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.users = users
        self.revocations = revocations
        self.codec = codec
        self.credentials = credentials or CredentialValidator()
        self.access_token_ttl = access_token_ttl
        self.refresh_token_ttl = refresh_token_ttl
        self.store_timeout_seconds = store_timeout_seconds
        self._clock = clock

    @property
    def access_token_expires_in(self) -> int:
        """Access token lifetime in whole seconds."""
        return int(self.access_token_ttl.total_seconds())

    async def warm_up(self) -> None:
        """Compute the login dummy hash off the event loop before serving traffic."""
        await asyncio.to_thread(_dummy_hash)

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> T:
        """Await a collaborator call under the configured deadline."""
        try:
            return await asyncio.wait_for(awaitable, timeout=self.store_timeout_seconds)
        except asyncio.TimeoutError as e:
            raise StoreUnavailableError(
                f"{operation} timed out after {self.store_timeout_seconds}s"
            ) from e

    def _unavailable(self, event: str, error: Exception, **context) -> AuthFailure:
        logger.error(event, error=str(error), error_type=type(error).__name__, **context)
        return AuthFailure.unavailable(str(error))

    def _issue_tokens(self, identity: Identity) -> AuthResult:
        """Create an AuthResult with a fresh access and refresh token."""
        return AuthResult(
            access_token=self.codec.issue_access_token(identity, self.access_token_ttl),
            refresh_token=self.codec.issue_refresh_token(identity, self.refresh_token_ttl),
            token_type="bearer",
            expires_in=self.access_token_expires_in,
            user=identity.to_public(),
        )

    async def register(self, username: str, email: str, password: str) -> Result[AuthResult]:
        """Create an account and log it in.

        Args:
            username: Unique username
            email: Unique email address
            password: Plain-text password (hashed before storage)

        Returns:
            Result with an AuthResult, or one of INVALID_EMAIL, WEAK_PASSWORD,
            EMAIL_TAKEN, USERNAME_TAKEN, STORE_UNAVAILABLE
        """
        if not self.credentials.validate_email_format(email):
            return Result.fail(
                AuthFailure(kind=ErrorKind.INVALID_EMAIL, message="Invalid email format")
            )

        weak = self.credentials.validate_password_strength(password)
        if weak is not None:
            return Result.fail(weak)

        try:
            # Pre-checks only fail fast; the unique constraint on create is authoritative
            if await self._call("exists_by_email", self.users.exists_by_email(email)):
                return Result.fail(_conflict("email"))
            if await self._call("exists_by_username", self.users.exists_by_username(username)):
                return Result.fail(_conflict("username"))

            password_hash = await asyncio.to_thread(self.credentials.hash_password, password)
            identity = Identity(
                username=username,
                email=email,
                password_hash=password_hash,
                role=Role.USER,
                status=UserStatus.ACTIVE,
            )
            created = await self._call("create", self.users.create(identity))
        except DuplicateKeyError as e:
            logger.info("register_conflict", field=e.field, username=username)
            return Result.fail(_conflict(e.field))
        except StoreUnavailableError as e:
            return Result.fail(self._unavailable("register_store_unavailable", e, username=username))

        logger.info(
            "user_registered",
            user_id=created.id,
            user_uuid=str(created.uuid),
            username=created.username,
        )
        return Result.ok(self._issue_tokens(created))

    async def login(self, email: str, password: str) -> Result[AuthResult]:
        """Authenticate with email and password.

        Unknown email and wrong password produce the same INVALID_CREDENTIALS
        failure, and both run a bcrypt check so timing does not tell them
        apart.

        Returns:
            Result with an AuthResult, or one of INVALID_CREDENTIALS,
            ACCOUNT_DISABLED, STORE_UNAVAILABLE
        """
        try:
            identity = await self._call("find_by_email", self.users.find_by_email(email))
        except StoreUnavailableError as e:
            return Result.fail(self._unavailable("login_store_unavailable", e))

        if identity is None:
            await asyncio.to_thread(_verify_dummy, self.credentials, password)
            logger.warning("login_failed", reason="unknown_email", email=email)
            return Result.fail(
                AuthFailure(kind=ErrorKind.INVALID_CREDENTIALS, message=INVALID_CREDENTIALS_MESSAGE)
            )

        verified = await asyncio.to_thread(
            self.credentials.verify_password, password, identity.password_hash
        )
        if not verified:
            logger.warning("login_failed", reason="wrong_password", user_uuid=str(identity.uuid))
            return Result.fail(
                AuthFailure(kind=ErrorKind.INVALID_CREDENTIALS, message=INVALID_CREDENTIALS_MESSAGE)
            )

        if not identity.is_active:
            logger.warning(
                "login_failed",
                reason="account_disabled",
                user_uuid=str(identity.uuid),
                status=identity.status.value,
            )
            return Result.fail(
                AuthFailure(kind=ErrorKind.ACCOUNT_DISABLED, message="Account is disabled")
            )

        # Best-effort: the login stands even if last_login_at cannot be saved
        identity = identity.model_copy(update={"last_login_at": self._clock()})
        try:
            identity = await self._call("update", self.users.update(identity))
        except StoreUnavailableError as e:
            logger.warning(
                "last_login_update_failed",
                user_uuid=str(identity.uuid),
                error=str(e),
            )

        logger.info("user_logged_in", user_id=identity.id, username=identity.username)
        return Result.ok(self._issue_tokens(identity))

    async def refresh_token(self, refresh_token: str) -> Result[AuthResult]:
        """Exchange a refresh token for a new access token.

        The refresh token itself is returned unchanged (no rotation).

        Returns:
            Result with an AuthResult, or one of INVALID_REFRESH_TOKEN,
            TOKEN_REVOKED, USER_NOT_FOUND, ACCOUNT_DISABLED, STORE_UNAVAILABLE
        """
        parsed = self.codec.parse_and_verify(refresh_token)
        if not parsed.is_ok:
            logger.warning(
                "refresh_token_rejected",
                reason=parsed.error.kind.value,
                detail=parsed.error.detail,
            )
            return Result.fail(
                AuthFailure.token(
                    ErrorKind.INVALID_REFRESH_TOKEN,
                    f"{parsed.error.kind.value}: {parsed.error.detail}",
                )
            )
        claims = parsed.value

        try:
            if await self._call("is_revoked", self.revocations.is_revoked(claims.jti)):
                logger.warning("refresh_token_rejected", reason="revoked", jti=claims.jti)
                return Result.fail(
                    AuthFailure.token(ErrorKind.TOKEN_REVOKED, f"jti {claims.jti} is revoked")
                )
            identity = await self._find_subject(claims)
        except StoreUnavailableError as e:
            return Result.fail(self._unavailable("refresh_store_unavailable", e, jti=claims.jti))

        if identity is None:
            logger.warning("refresh_user_not_found", user_uuid=claims.subject)
            return Result.fail(
                AuthFailure(kind=ErrorKind.USER_NOT_FOUND, message="User not found")
            )

        if not identity.is_active:
            logger.warning(
                "refresh_account_disabled",
                user_uuid=str(identity.uuid),
                status=identity.status.value,
            )
            return Result.fail(
                AuthFailure(kind=ErrorKind.ACCOUNT_DISABLED, message="Account is disabled")
            )

        access_token = self.codec.issue_access_token(identity, self.access_token_ttl)
        logger.info("token_refreshed", user_uuid=str(identity.uuid), username=identity.username)

        return Result.ok(
            AuthResult(
                access_token=access_token,
                refresh_token=refresh_token,
                token_type="bearer",
                expires_in=self.access_token_expires_in,
                user=identity.to_public(),
            )
        )

    async def _find_subject(self, claims: Claims) -> Optional[Identity]:
        try:
            user_uuid = UUID(claims.subject)
        except ValueError:
            return None
        return await self._call("find_by_uuid", self.users.find_by_uuid(user_uuid))

    async def logout(self, token: str) -> Result[None]:
        """Revoke a token until its natural expiry.

        A token that cannot be parsed (malformed, expired, wrong signature)
        needs no revocation, so logout succeeds without writing anything.
        A failed revocation write is reported, never swallowed.

        Returns:
            Empty Result, or STORE_UNAVAILABLE
        """
        parsed = self.codec.parse_and_verify(token)
        if not parsed.is_ok:
            logger.info(
                "logout_parse_failed",
                reason=parsed.error.kind.value,
                detail=parsed.error.detail,
            )
            return Result.ok()
        claims = parsed.value

        ttl = claims.expires_at - self._clock()
        if ttl <= timedelta(0):
            return Result.ok()

        try:
            await self._call("revoke", self.revocations.revoke(claims.jti, ttl))
        except StoreUnavailableError as e:
            return Result.fail(self._unavailable("logout_revocation_failed", e, jti=claims.jti))

        logger.info(
            "user_logged_out",
            user_id=claims.user_id,
            username=claims.username,
            jti=claims.jti,
        )
        return Result.ok()

    def validate_token(self, token: str) -> Result[Claims]:
        """Verify a bearer token for request authentication.

        Does not consult the revocation list.
        """
        parsed = self.codec.parse_and_verify(token)
        if not parsed.is_ok:
            logger.debug(
                "token_validation_failed",
                reason=parsed.error.kind.value,
                detail=parsed.error.detail,
            )
        return parsed


def _conflict(field: str) -> AuthFailure:
    if field == "username":
        return AuthFailure(kind=ErrorKind.USERNAME_TAKEN, message="Username is already taken")
    return AuthFailure(kind=ErrorKind.EMAIL_TAKEN, message="Email is already registered")
