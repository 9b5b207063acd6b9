"""Models package exports."""

from algocollab.models.auth import AuthResult, Claims, LoginRequest, RefreshRequest, RegisterRequest
from algocollab.models.result import AuthFailure, ErrorCategory, ErrorKind, Result
from algocollab.models.user import Identity, Metadata, PublicIdentity, Role, UserStatus

__all__ = [
    "AuthFailure",
    "AuthResult",
    "Claims",
    "ErrorCategory",
    "ErrorKind",
    "Identity",
    "LoginRequest",
    "Metadata",
    "PublicIdentity",
    "RefreshRequest",
    "RegisterRequest",
    "Result",
    "Role",
    "UserStatus",
]
