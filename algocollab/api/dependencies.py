"""FastAPI dependencies for authentication."""

from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from algocollab.models.auth import Claims
from algocollab.models.result import GENERIC_TOKEN_MESSAGE
from algocollab.services.auth_service import AuthService

bearer_scheme = HTTPBearer(auto_error=False)


def get_auth_service(request: Request) -> AuthService:
    """Return the AuthService wired into the application at startup."""
    return request.app.state.auth_service


def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    """Extract the raw token from the Authorization: Bearer header.

    Raises:
        HTTPException 401: If the header is missing or not a bearer token
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "unauthorized", "message": "Authentication required"},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return credentials.credentials


def get_current_claims(
    token: str = Depends(get_bearer_token),
    auth_service: AuthService = Depends(get_auth_service),
) -> Claims:
    """Validate the bearer token and return its claims.

    The revocation list is not consulted here.

    Raises:
        HTTPException 401: If the token is invalid, expired, or tampered with
    """
    result = auth_service.validate_token(token)
    if not result.is_ok:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "invalid_token", "message": GENERIC_TOKEN_MESSAGE},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return result.value
