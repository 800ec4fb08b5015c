"""Auth routes (register, login, refresh, logout, me) and auth dependencies (get_current_user, require_admin)."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.database import get_db
from app.core.errors import InvalidToken, PermissionDenied
from app.schemas.auth import (
    CurrentUser,
    LoginRequest,
    LoginResponse,
    LogoutRequest,
    MessageResponse,
    RefreshRequest,
    RefreshResponse,
    RegisterRequest,
    RegisterResponse,
    UserPublic,
)
from app.services.auth import AuthService

router = APIRouter()
security = HTTPBearer(auto_error=False)


def get_auth_service(
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> AuthService:
    """Dependency: per-request auth service bound to the request's DB session."""
    return AuthService(db, settings)


def _client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None


def _set_auth_cookies(
    response: Response,
    settings: Settings,
    access_token: str,
    refresh_token: str,
) -> None:
    response.set_cookie(
        settings.ACCESS_COOKIE_NAME,
        access_token,
        max_age=settings.JWT_ACCESS_EXPIRE_MINUTES * 60,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="strict",
    )
    response.set_cookie(
        settings.REFRESH_COOKIE_NAME,
        refresh_token,
        max_age=settings.JWT_REFRESH_EXPIRE_DAYS * 24 * 60 * 60,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="strict",
        path=f"{settings.API_V1_PREFIX}/auth",
    )


def get_current_user(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    auth: Annotated[AuthService, Depends(get_auth_service)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> CurrentUser:
    """Dependency: require a valid access token (Bearer header or access cookie). Raises 401 otherwise."""
    token = credentials.credentials if credentials else request.cookies.get(settings.ACCESS_COOKIE_NAME)
    if not token:
        raise InvalidToken("Not authenticated")
    payload = auth.verify_access_token(token)
    return CurrentUser(id=payload.subject_id, username=payload.username, roles=payload.roles)


def require_admin(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
) -> CurrentUser:
    """Dependency: require authenticated user with role 'admin'. Raises 403 for non-admin."""
    if not current_user.is_admin():
        raise PermissionDenied()
    return current_user


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def register(
    body: RegisterRequest,
    auth: Annotated[AuthService, Depends(get_auth_service)],
) -> RegisterResponse:
    """Create an account with the default 'user' role."""
    user = auth.register(body.username, body.email, body.password)
    return RegisterResponse(user=user)


@router.post("/login", response_model=LoginResponse)
def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    auth: Annotated[AuthService, Depends(get_auth_service)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> LoginResponse:
    """
    Authenticate with a username or email and password.
    The access token is returned in the body and as a cookie; the refresh token
    is set as an HTTP-only cookie scoped to the auth routes.
    """
    result = auth.login(
        body.identifier,
        body.password,
        ip_address=_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    _set_auth_cookies(response, settings, result.access_token, result.refresh_token)
    return LoginResponse(access_token=result.access_token, user=result.user)


@router.post("/refresh", response_model=RefreshResponse)
def refresh(
    request: Request,
    response: Response,
    auth: Annotated[AuthService, Depends(get_auth_service)],
    settings: Annotated[Settings, Depends(get_settings)],
    body: RefreshRequest | None = None,
) -> RefreshResponse:
    """Rotate the refresh token (cookie or body) and issue a new access token."""
    token = (body.refresh_token if body else None) or request.cookies.get(settings.REFRESH_COOKIE_NAME)
    pair = auth.refresh(
        token,
        ip_address=_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    _set_auth_cookies(response, settings, pair.access_token, pair.refresh_token)
    return RefreshResponse(access_token=pair.access_token)


@router.post("/logout", response_model=MessageResponse)
def logout(
    request: Request,
    response: Response,
    auth: Annotated[AuthService, Depends(get_auth_service)],
    settings: Annotated[Settings, Depends(get_settings)],
    body: LogoutRequest | None = None,
) -> MessageResponse:
    """Revoke the refresh token if present and clear auth cookies. Always succeeds."""
    token = (body.refresh_token if body else None) or request.cookies.get(settings.REFRESH_COOKIE_NAME)
    auth.logout(token)
    response.delete_cookie(settings.ACCESS_COOKIE_NAME)
    response.delete_cookie(settings.REFRESH_COOKIE_NAME, path=f"{settings.API_V1_PREFIX}/auth")
    return MessageResponse(message="Logout successful")


@router.get("/me", response_model=UserPublic)
def me(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    auth: Annotated[AuthService, Depends(get_auth_service)],
) -> UserPublic:
    """Profile of the authenticated user."""
    return auth.get_profile(current_user.id)
