"""Authentication API endpoints."""

from fastapi import APIRouter, Depends, HTTPException, status

from algocollab.api.dependencies import get_auth_service, get_bearer_token, get_current_claims
from algocollab.models.auth import AuthResult, Claims, LoginRequest, RefreshRequest, RegisterRequest
from algocollab.models.result import AuthFailure, ErrorCategory, ErrorKind
from algocollab.services.auth_service import AuthService

router = APIRouter(prefix="/auth", tags=["Auth"])

_STATUS_BY_CATEGORY = {
    ErrorCategory.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorCategory.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCategory.AUTHENTICATION: status.HTTP_401_UNAUTHORIZED,
    ErrorCategory.TOKEN: status.HTTP_401_UNAUTHORIZED,
    ErrorCategory.INFRASTRUCTURE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _http_error(failure: AuthFailure) -> HTTPException:
    """Translate a service failure into an HTTPException.

    Token and infrastructure failures only expose a generic message; the
    specific kind was already logged by the service.
    """
    code = failure.kind.value
    if failure.category == ErrorCategory.TOKEN:
        code = "invalid_token"
    elif failure.category == ErrorCategory.INFRASTRUCTURE:
        code = ErrorKind.STORE_UNAVAILABLE.value

    headers = None
    if failure.category == ErrorCategory.TOKEN:
        headers = {"WWW-Authenticate": "Bearer"}

    return HTTPException(
        status_code=_STATUS_BY_CATEGORY[failure.category],
        detail={"code": code, "message": failure.public_message},
        headers=headers,
    )


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> AuthResult:
    """Register a new account.

    Raises:
        HTTPException 400: Invalid email or weak password
        HTTPException 409: Email or username already taken
        HTTPException 503: Identity store unavailable
    """
    result = await auth_service.register(request.username, request.email, request.password)
    if not result.is_ok:
        raise _http_error(result.error)
    return result.value


@router.post("/login")
async def login(
    request: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> AuthResult:
    """Login with email and password.

    Raises:
        HTTPException 401: If credentials are invalid or the account is disabled
    """
    result = await auth_service.login(request.email, request.password)
    if not result.is_ok:
        raise _http_error(result.error)
    return result.value


@router.post("/refresh")
async def refresh(
    request: RefreshRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> AuthResult:
    """Get a new access token. The refresh token is returned unchanged.

    Raises:
        HTTPException 401: If the refresh token is invalid, expired, or revoked
    """
    result = await auth_service.refresh_token(request.refresh_token)
    if not result.is_ok:
        raise _http_error(result.error)
    return result.value


@router.post("/logout")
async def logout(
    token: str = Depends(get_bearer_token),
    auth_service: AuthService = Depends(get_auth_service),
) -> dict:
    """Revoke the presented token.

    Succeeds for tokens that are already unusable.

    Raises:
        HTTPException 503: If the revocation could not be recorded
    """
    result = await auth_service.logout(token)
    if not result.is_ok:
        raise _http_error(result.error)
    return {"message": "Logged out"}


@router.get("/me")
async def get_me(claims: Claims = Depends(get_current_claims)) -> Claims:
    """Return the claims of the current access token."""
    return claims
