"""User administration routes (admin only)."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from app.api.v1.auth import require_admin
from app.core.config import Settings, get_settings
from app.core.database import get_db
from app.schemas.auth import (
    ActiveSessionsSummary,
    AdminCreateUserRequest,
    CurrentUser,
    LoginAttemptItem,
    LoginAttemptsListResponse,
    RoleRequest,
    StatusChangeRequest,
    UserDetail,
    UsersListResponse,
    UserUpdateRequest,
)
from app.services.users import UserAdminService

router = APIRouter()


def get_admin_service(
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> UserAdminService:
    return UserAdminService(db, settings)


AdminService = Annotated[UserAdminService, Depends(get_admin_service)]
Admin = Annotated[CurrentUser, Depends(require_admin)]


@router.get("", response_model=UsersListResponse)
def list_users(
    _admin: Admin,
    service: AdminService,
    offset: Annotated[int, Query(ge=0)] = 0,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
) -> UsersListResponse:
    """List users ordered by creation time."""
    users, total = service.list_users(offset=offset, limit=limit)
    return UsersListResponse(
        users=[UserDetail.model_validate(u) for u in users],
        total=total,
        offset=offset,
        limit=limit,
    )


@router.post("", response_model=UserDetail, status_code=status.HTTP_201_CREATED)
def create_user(body: AdminCreateUserRequest, _admin: Admin, service: AdminService) -> UserDetail:
    """Create a user with chosen roles and status (same validation as registration)."""
    user = service.create_user(
        body.username,
        body.email,
        body.password,
        roles=body.roles,
        status=body.status,
    )
    return UserDetail.model_validate(user)


@router.get("/active-sessions", response_model=ActiveSessionsSummary)
def active_sessions(_admin: Admin, service: AdminService) -> ActiveSessionsSummary:
    return service.active_sessions()


@router.get("/login-attempts", response_model=LoginAttemptsListResponse)
def list_login_attempts(
    _admin: Admin,
    service: AdminService,
    user_id: str | None = None,
    offset: Annotated[int, Query(ge=0)] = 0,
    limit: Annotated[int, Query(ge=1, le=500)] = 50,
) -> LoginAttemptsListResponse:
    """Login attempt audit log, newest first."""
    attempts, total = service.list_login_attempts(user_id=user_id, offset=offset, limit=limit)
    return LoginAttemptsListResponse(
        attempts=[LoginAttemptItem.model_validate(a) for a in attempts],
        total=total,
        offset=offset,
        limit=limit,
    )


@router.get("/{user_id}", response_model=UserDetail)
def get_user(user_id: str, _admin: Admin, service: AdminService) -> UserDetail:
    return UserDetail.model_validate(service.get_user(user_id))


@router.patch("/{user_id}", response_model=UserDetail)
def update_user(
    user_id: str,
    body: UserUpdateRequest,
    _admin: Admin,
    service: AdminService,
) -> UserDetail:
    """Change username, email, or the role set. Taken usernames or emails are 409."""
    user = service.update_user(user_id, username=body.username, email=body.email, roles=body.roles)
    return UserDetail.model_validate(user)


@router.patch("/{user_id}/status", response_model=UserDetail)
def change_status(
    user_id: str,
    body: StatusChangeRequest,
    _admin: Admin,
    service: AdminService,
) -> UserDetail:
    """Activate, suspend, or deactivate a user. Leaving ACTIVE revokes their refresh tokens."""
    return UserDetail.model_validate(service.change_status(user_id, body.status))


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(user_id: str, _admin: Admin, service: AdminService) -> Response:
    service.delete_user(user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{user_id}/roles", response_model=UserDetail)
def add_role(
    user_id: str,
    body: RoleRequest,
    _admin: Admin,
    service: AdminService,
) -> UserDetail:
    return UserDetail.model_validate(service.add_role(user_id, body.role))


@router.delete("/{user_id}/roles/{role}", response_model=UserDetail)
def remove_role(user_id: str, role: str, _admin: Admin, service: AdminService) -> UserDetail:
    return UserDetail.model_validate(service.remove_role(user_id, role))
