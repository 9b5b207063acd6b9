"""Services package exports."""

from algocollab.services.auth_service import AuthService
from algocollab.services.credentials import CredentialValidator
from algocollab.services.logging_service import configure_logging, get_logger
from algocollab.services.revocation_store import RedisRevocationStore, RevocationStore
from algocollab.services.token_codec import TokenCodec
from algocollab.services.user_repository import PostgresUserRepository, UserRepository

__all__ = [
    "AuthService",
    "CredentialValidator",
    "PostgresUserRepository",
    "RedisRevocationStore",
    "RevocationStore",
    "TokenCodec",
    "UserRepository",
    "configure_logging",
    "get_logger",
]
