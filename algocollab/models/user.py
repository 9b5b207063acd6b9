"""User identity models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    """Role claim carried by access tokens."""

    USER = "user"
    ADMIN = "admin"
    MODERATOR = "moderator"


class UserStatus(str, Enum):
    """Account status. Only ACTIVE accounts may log in or refresh."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    BANNED = "banned"


class Metadata(BaseModel):
    """Bookkeeping timestamps shared by every persisted entity."""

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    deleted_at: Optional[datetime] = None  # soft-delete marker


class Identity(BaseModel):
    """A registered user.

    id is assigned by the identity store on create; uuid is generated here and
    is the external handle placed in the token subject. password_hash is
    excluded from every serialization.
    """

    id: Optional[int] = Field(None, frozen=True)
    uuid: UUID = Field(default_factory=uuid4, frozen=True)
    username: str
    email: str
    password_hash: str = Field(..., exclude=True, repr=False)
    avatar: str = ""
    bio: str = ""
    role: Role = Role.USER
    status: UserStatus = UserStatus.ACTIVE
    last_login_at: Optional[datetime] = None
    metadata: Metadata = Field(default_factory=Metadata)

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE

    def to_public(self) -> "PublicIdentity":
        """Return the outward view of this identity."""
        return PublicIdentity(
            id=self.id,
            uuid=self.uuid,
            username=self.username,
            email=self.email,
            avatar=self.avatar,
            bio=self.bio,
            role=self.role,
            status=self.status,
            last_login_at=self.last_login_at,
            created_at=self.metadata.created_at,
        )


class PublicIdentity(BaseModel):
    """Identity as returned to API clients."""

    id: Optional[int] = None
    uuid: UUID
    username: str
    email: str
    avatar: str = ""
    bio: str = ""
    role: Role
    status: UserStatus
    last_login_at: Optional[datetime] = None
    created_at: datetime
