"""Exceptions raised by the identity and revocation store adapters.

These are collaborator signals, not authentication outcomes: AuthService
catches them and turns them into failures at its boundary.
"""


class StoreUnavailableError(Exception):
    """A backing store (Postgres or Redis) could not be reached or timed out."""


class DuplicateKeyError(Exception):
    """A unique constraint was violated on create.

    Attributes:
        field: The violated column, "email" or "username".
    """

    def __init__(self, field: str, message: str | None = None):
        self.field = field
        super().__init__(message or f"Duplicate value for unique field '{field}'")
