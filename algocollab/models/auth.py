"""Auth request and response models."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from algocollab.models.user import PublicIdentity, Role


class RegisterRequest(BaseModel):
    """Registration input.

    Attributes:
        username: Unique username (3-20 chars)
        email: Email address, format checked by the service
        password: Plain-text password, strength checked by the service
    """

    username: str = Field(..., min_length=3, max_length=20)
    email: str = Field(..., max_length=100)
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("username", "email")
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        """Trim surrounding whitespace."""
        return v.strip()


class LoginRequest(BaseModel):
    """Login credentials."""

    email: str = Field(..., max_length=100)
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        """Trim surrounding whitespace, as on registration."""
        return v.strip()


class RefreshRequest(BaseModel):
    """Refresh token exchange request."""

    refresh_token: str = Field(..., min_length=1)


class Claims(BaseModel):
    """Verified token payload.

    Access tokens populate every field. Refresh tokens carry only subject,
    jti, issued_at and expires_at; the rest are None.
    """

    subject: str
    jti: str
    issued_at: datetime
    expires_at: datetime
    not_before: Optional[datetime] = None
    issuer: Optional[str] = None
    user_id: Optional[int] = None
    username: Optional[str] = None
    email: Optional[str] = None
    role: Optional[Role] = None


class AuthResult(BaseModel):
    """Successful authentication response with token pair.

    Attributes:
        access_token: Short-lived JWT for API access
        refresh_token: Long-lived JWT for obtaining new access tokens
        token_type: Always "bearer"
        expires_in: Access token lifetime in seconds
        user: Public view of the authenticated identity
    """

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = Field(ge=1, description="Access token lifetime in seconds")
    user: PublicIdentity
