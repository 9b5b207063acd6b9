"""Email/password validation and bcrypt password hashing."""

import re
from typing import Optional

import bcrypt

from algocollab.models.result import AuthFailure, ErrorKind

BCRYPT_ROUNDS = 12

# bcrypt only looks at the first 72 bytes; bcrypt>=5 raises instead of truncating
_BCRYPT_MAX_BYTES = 72

_EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")

MIN_PASSWORD_LENGTH = 8


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


class CredentialValidator:
    """Stateless credential checks. Safe to share between concurrent requests."""

    def validate_email_format(self, email: str) -> bool:
        """Return True if email looks like local@domain.tld."""
        return _EMAIL_RE.fullmatch(email) is not None

    def validate_password_strength(self, password: str) -> Optional[AuthFailure]:
        """Check password length and composition.

        Args:
            password: Plain-text candidate password

        Returns:
            None if the password is acceptable, otherwise a WEAK_PASSWORD failure
        """
        if len(password) < MIN_PASSWORD_LENGTH:
            return AuthFailure(
                kind=ErrorKind.WEAK_PASSWORD,
                message=f"Password must be at least {MIN_PASSWORD_LENGTH} characters long",
            )

        has_upper = any("A" <= ch <= "Z" for ch in password)
        has_lower = any("a" <= ch <= "z" for ch in password)
        has_digit = any("0" <= ch <= "9" for ch in password)

        if not (has_upper and has_lower and has_digit):
            return AuthFailure(
                kind=ErrorKind.WEAK_PASSWORD,
                message="Password must contain uppercase and lowercase letters and a digit",
            )
        return None

    def hash_password(self, password: str) -> str:
        """Hash a password using bcrypt.

        Args:
            password: Plain-text password to hash

        Returns:
            Bcrypt hash string (salt and cost embedded)
        """
        salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
        return bcrypt.hashpw(_encode(password), salt).decode("utf-8")

    def verify_password(self, password: str, password_hash: str) -> bool:
        """Verify a password against a bcrypt hash.

        Returns False on mismatch and on a hash bcrypt cannot parse.
        """
        try:
            return bcrypt.checkpw(_encode(password), password_hash.encode("utf-8"))
        except ValueError:
            return False
