"""Authentication routes (cookie-based wrapper around ``IdentityService``).

The same operations are reachable through ``/api/services/IdentityService``;
these routes additionally set or clear the ``accessToken`` cookie so browser
clients do not have to manage the bearer header themselves.
"""

from fastapi import APIRouter
from fastapi import Depends
from fastapi import HTTPException
from fastapi import Request
from fastapi import Response
from fastapi import status

from smarttask.auth.backend import ACCESS_TOKEN_COOKIE
from smarttask.dependencies.services import get_service_scope
from smarttask.dispatch.binder import resolve_client_ip
from smarttask.dispatch.registry import ServiceScope
from smarttask.schemas.schemas import AuthResponse
from smarttask.schemas.schemas import LoginRequest
from smarttask.schemas.schemas import RefreshTokenRequest
from smarttask.schemas.schemas import RegisterRequest
from smarttask.services.interfaces import IIdentityService

router = APIRouter(prefix="/api/auth", tags=["auth"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _set_access_cookie(request: Request, response: Response, auth: AuthResponse) -> None:
    settings = request.app.state.settings
    response.set_cookie(
        ACCESS_TOKEN_COOKIE,
        auth.token,
        max_age=settings.access_token_expiration_minutes * 60,
        httponly=True,
        secure=settings.environment == "production",
        samesite="lax",
    )


def _identity(scope: ServiceScope) -> IIdentityService:
    return scope.get(IIdentityService)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.post("/login", response_model=AuthResponse)
def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    scope: ServiceScope = Depends(get_service_scope),
):
    auth = _identity(scope).login(body, resolve_client_ip(request))
    if auth is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")

    _set_access_cookie(request, response, auth)
    return auth


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(
    body: RegisterRequest,
    request: Request,
    response: Response,
    scope: ServiceScope = Depends(get_service_scope),
):
    auth = _identity(scope).register(body, resolve_client_ip(request))
    if auth is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User with this email or username already exists",
        )

    _set_access_cookie(request, response, auth)
    return auth


@router.post("/refresh-token", response_model=AuthResponse)
def refresh_token(
    body: RefreshTokenRequest,
    request: Request,
    response: Response,
    scope: ServiceScope = Depends(get_service_scope),
):
    auth = _identity(scope).refresh_token(body.refresh_token, resolve_client_ip(request))
    if auth is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired refresh token")

    _set_access_cookie(request, response, auth)
    return auth


@router.post("/logout")
def logout(
    body: RefreshTokenRequest,
    response: Response,
    scope: ServiceScope = Depends(get_service_scope),
):
    revoked = _identity(scope).logout(body.refresh_token)
    response.delete_cookie(ACCESS_TOKEN_COOKIE)
    return {"success": revoked}
