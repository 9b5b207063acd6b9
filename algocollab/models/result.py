"""Result type and error kinds for authentication outcomes.

Expected failures (bad input, wrong password, expired token, store outage)
travel as values. Every ErrorKind belongs to exactly one ErrorCategory, and
the category decides how the failure is presented outward:

- validation / conflict / authentication: the message is user-facing.
- token: the outward message is always generic; the kind and detail stay
  available for audit logging.
- infrastructure: generic outward message, full detail only in logs; the
  only retryable category.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")

GENERIC_TOKEN_MESSAGE = "Invalid or expired token"
GENERIC_INFRASTRUCTURE_MESSAGE = "Service temporarily unavailable, please try again later"


class ErrorCategory(str, Enum):
    """Coarse error classes that drive outward presentation."""

    VALIDATION = "validation"
    CONFLICT = "conflict"
    AUTHENTICATION = "authentication"
    TOKEN = "token"
    INFRASTRUCTURE = "infrastructure"


class ErrorKind(str, Enum):
    """Specific failure reasons."""

    INVALID_EMAIL = "invalid_email"
    WEAK_PASSWORD = "weak_password"
    EMAIL_TAKEN = "email_taken"
    USERNAME_TAKEN = "username_taken"
    INVALID_CREDENTIALS = "invalid_credentials"
    ACCOUNT_DISABLED = "account_disabled"
    USER_NOT_FOUND = "user_not_found"
    MALFORMED_TOKEN = "malformed_token"
    UNEXPECTED_SIGNING_METHOD = "unexpected_signing_method"
    INVALID_SIGNATURE = "invalid_signature"
    EXPIRED = "expired"
    NOT_YET_VALID = "not_yet_valid"
    INVALID_REFRESH_TOKEN = "invalid_refresh_token"
    TOKEN_REVOKED = "token_revoked"
    STORE_UNAVAILABLE = "store_unavailable"

    @property
    def category(self) -> ErrorCategory:
        return _CATEGORIES[self]


_CATEGORIES = {
    ErrorKind.INVALID_EMAIL: ErrorCategory.VALIDATION,
    ErrorKind.WEAK_PASSWORD: ErrorCategory.VALIDATION,
    ErrorKind.EMAIL_TAKEN: ErrorCategory.CONFLICT,
    ErrorKind.USERNAME_TAKEN: ErrorCategory.CONFLICT,
    ErrorKind.INVALID_CREDENTIALS: ErrorCategory.AUTHENTICATION,
    ErrorKind.ACCOUNT_DISABLED: ErrorCategory.AUTHENTICATION,
    ErrorKind.USER_NOT_FOUND: ErrorCategory.AUTHENTICATION,
    ErrorKind.MALFORMED_TOKEN: ErrorCategory.TOKEN,
    ErrorKind.UNEXPECTED_SIGNING_METHOD: ErrorCategory.TOKEN,
    ErrorKind.INVALID_SIGNATURE: ErrorCategory.TOKEN,
    ErrorKind.EXPIRED: ErrorCategory.TOKEN,
    ErrorKind.NOT_YET_VALID: ErrorCategory.TOKEN,
    ErrorKind.INVALID_REFRESH_TOKEN: ErrorCategory.TOKEN,
    ErrorKind.TOKEN_REVOKED: ErrorCategory.TOKEN,
    ErrorKind.STORE_UNAVAILABLE: ErrorCategory.INFRASTRUCTURE,
}


@dataclass(frozen=True)
class AuthFailure:
    """A single expected failure.

    Attributes:
        kind: Specific failure reason
        message: Text that may be shown to the caller
        detail: Internal description for logs, never returned outward
    """

    kind: ErrorKind
    message: str
    detail: str = ""

    @property
    def category(self) -> ErrorCategory:
        return self.kind.category

    @property
    def retryable(self) -> bool:
        return self.category == ErrorCategory.INFRASTRUCTURE

    @property
    def public_message(self) -> str:
        """Message safe to return across the service boundary."""
        if self.category == ErrorCategory.TOKEN:
            return GENERIC_TOKEN_MESSAGE
        if self.category == ErrorCategory.INFRASTRUCTURE:
            return GENERIC_INFRASTRUCTURE_MESSAGE
        return self.message

    @classmethod
    def token(cls, kind: ErrorKind, detail: str = "") -> "AuthFailure":
        return cls(kind=kind, message=GENERIC_TOKEN_MESSAGE, detail=detail)

    @classmethod
    def unavailable(cls, detail: str) -> "AuthFailure":
        return cls(
            kind=ErrorKind.STORE_UNAVAILABLE,
            message=GENERIC_INFRASTRUCTURE_MESSAGE,
            detail=detail,
        )


@dataclass(frozen=True)
class Result(Generic[T]):
    """Either a value or an AuthFailure."""

    value: Optional[T] = None
    error: Optional[AuthFailure] = None

    @property
    def is_ok(self) -> bool:
        return self.error is None

    @classmethod
    def ok(cls, value: T = None) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def fail(cls, error: AuthFailure) -> "Result[T]":
        return cls(error=error)
