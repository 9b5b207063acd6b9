"""JWT access/refresh token issuing and verification."""

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional
from uuid import uuid4

import jwt
import structlog
from pydantic import ValidationError

from algocollab.models.auth import Claims
from algocollab.models.result import AuthFailure, ErrorKind, Result
from algocollab.models.user import Identity

logger = structlog.get_logger(__name__)

# Constants
JWT_ALGORITHM = "HS256"
DEFAULT_ISSUER = "AlgoCollab"

_REQUIRED_CLAIMS = ["sub", "jti", "iat", "exp"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _from_timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


class TokenCodec:
    """Signs and verifies HS256 bearer tokens.

    Holds only configuration (secret, issuer, clock); every method is safe to
    call concurrently.

    Example:
        codec = TokenCodec(secret=settings.jwt_secret)
        token = codec.issue_access_token(identity, timedelta(hours=24))
        result = codec.parse_and_verify(token)
    """

    def __init__(
        self,
        secret: str,
        issuer: str = DEFAULT_ISSUER,
        clock: Callable[[], datetime] = _utcnow,
    ):
        if not secret:
            raise ValueError("Signing secret must not be empty")
        self._secret = secret
        self.issuer = issuer
        self._clock = clock

    def _window(self, ttl: timedelta) -> tuple[int, int]:
        """Return (issued_at, expires_at) as whole-second timestamps."""
        seconds = int(ttl.total_seconds())
        if seconds < 1:
            raise ValueError(f"Token TTL must be at least one second, got {ttl}")
        issued_at = int(self._clock().timestamp())
        return issued_at, issued_at + seconds

    def issue_access_token(self, identity: Identity, ttl: timedelta) -> str:
        """Create a signed access token carrying the full claim set.

        Args:
            identity: The authenticated identity
            ttl: Token lifetime (whole seconds, at least one)

        Returns:
            Encoded JWT string
        """
        issued_at, expires_at = self._window(ttl)
        jti = str(uuid4())
        payload = {
            "sub": str(identity.uuid),
            "user_id": identity.id,
            "username": identity.username,
            "email": identity.email,
            "role": identity.role.value,
            "iss": self.issuer,
            "iat": issued_at,
            "nbf": issued_at,
            "exp": expires_at,
            "jti": jti,
        }
        token = jwt.encode(payload, self._secret, algorithm=JWT_ALGORITHM)
        logger.debug(
            "access_token_issued",
            user_uuid=str(identity.uuid),
            jti=jti,
            expires_in=expires_at - issued_at,
        )
        return token

    def issue_refresh_token(self, identity: Identity, ttl: timedelta) -> str:
        """Create a signed refresh token.

        Only subject, jti, iat and exp are included so that a long-lived
        refresh token never carries role or email data.
        """
        issued_at, expires_at = self._window(ttl)
        jti = str(uuid4())
        payload = {
            "sub": str(identity.uuid),
            "iat": issued_at,
            "exp": expires_at,
            "jti": jti,
        }
        token = jwt.encode(payload, self._secret, algorithm=JWT_ALGORITHM)
        logger.debug(
            "refresh_token_issued",
            user_uuid=str(identity.uuid),
            jti=jti,
            expires_in=expires_at - issued_at,
        )
        return token

    def parse_and_verify(self, token: str) -> Result[Claims]:
        """Decode a token and check algorithm, signature and validity window.

        Failure kinds, in the order they are checked:
            MALFORMED_TOKEN: undecodable, or required claims missing/ill-typed
            UNEXPECTED_SIGNING_METHOD: header alg is not HS256
            INVALID_SIGNATURE: signature does not match the secret
            EXPIRED: now >= exp
            NOT_YET_VALID: now < nbf
        """
        try:
            header = jwt.get_unverified_header(token)
        except jwt.InvalidTokenError as e:
            return Result.fail(AuthFailure.token(ErrorKind.MALFORMED_TOKEN, str(e)))

        algorithm = header.get("alg")
        if algorithm != JWT_ALGORITHM:
            return Result.fail(
                AuthFailure.token(
                    ErrorKind.UNEXPECTED_SIGNING_METHOD,
                    f"unexpected signing method: {algorithm!r}",
                )
            )

        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[JWT_ALGORITHM],
                options={
                    "require": _REQUIRED_CLAIMS,
                    # Time checks are done below against the injected clock
                    "verify_exp": False,
                    "verify_nbf": False,
                    "verify_iat": False,
                    "verify_iss": False,
                    "verify_aud": False,
                },
            )
        except jwt.InvalidSignatureError as e:
            return Result.fail(AuthFailure.token(ErrorKind.INVALID_SIGNATURE, str(e)))
        except jwt.InvalidTokenError as e:
            return Result.fail(AuthFailure.token(ErrorKind.MALFORMED_TOKEN, str(e)))

        issued_at = _from_timestamp(payload["iat"])
        expires_at = _from_timestamp(payload["exp"])
        not_before = _from_timestamp(payload["nbf"]) if "nbf" in payload else None
        if issued_at is None or expires_at is None or ("nbf" in payload and not_before is None):
            return Result.fail(
                AuthFailure.token(ErrorKind.MALFORMED_TOKEN, "non-numeric time claim")
            )

        now = self._clock()
        if now >= expires_at:
            return Result.fail(
                AuthFailure.token(ErrorKind.EXPIRED, f"token expired at {expires_at.isoformat()}")
            )
        if not_before is not None and now < not_before:
            return Result.fail(
                AuthFailure.token(
                    ErrorKind.NOT_YET_VALID, f"token not valid before {not_before.isoformat()}"
                )
            )

        try:
            claims = Claims(
                subject=payload["sub"],
                jti=payload["jti"],
                issued_at=issued_at,
                expires_at=expires_at,
                not_before=not_before,
                issuer=payload.get("iss"),
                user_id=payload.get("user_id"),
                username=payload.get("username"),
                email=payload.get("email"),
                role=payload.get("role"),
            )
        except ValidationError as e:
            return Result.fail(AuthFailure.token(ErrorKind.MALFORMED_TOKEN, str(e)))

        return Result.ok(claims)
