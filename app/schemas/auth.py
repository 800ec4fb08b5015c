"""Request/response schemas for auth and user administration endpoints."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.models.user import UserStatus


class TokenPayload(BaseModel):
    """Identity asserted by an access token."""

    subject_id: str
    username: str
    roles: list[str]


class TokenPair(BaseModel):
    """Access and refresh token issued together."""

    access_token: str
    refresh_token: str


class UserPublic(BaseModel):
    """Public-safe projection of a user (never includes the password hash)."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
    email: str
    roles: list[str]
    status: UserStatus


class UserDetail(UserPublic):
    """User projection with timestamps, for admin views."""

    created_at: datetime
    updated_at: datetime


class LoginResult(BaseModel):
    """Outcome of a successful login."""

    access_token: str
    refresh_token: str
    user: UserPublic


class CurrentUser(BaseModel):
    """Authenticated caller resolved from the access token."""

    id: str
    username: str
    roles: list[str]

    def is_admin(self) -> bool:
        return "admin" in self.roles


class RegisterRequest(BaseModel):
    """Body for self-registration."""

    username: str = Field(..., min_length=1, max_length=255, description="Username")
    email: str = Field(..., min_length=1, max_length=254, description="Email address")
    password: str = Field(..., max_length=1024, description="Password (8-128 chars, letters and digits)")


class LoginRequest(BaseModel):
    """Credentials for login: identifier is a username or an email."""

    identifier: str = Field(..., min_length=1, max_length=255, description="Username or email")
    password: str = Field(..., min_length=1, max_length=1024, description="Password")


class RefreshRequest(BaseModel):
    """Refresh token in the body; the refresh cookie is used when omitted."""

    refresh_token: str | None = Field(default=None, description="Refresh token")


class LogoutRequest(BaseModel):
    refresh_token: str | None = Field(default=None, description="Refresh token to revoke")


class LoginResponse(BaseModel):
    """Returned after login; the refresh token is only delivered as an HTTP-only cookie."""

    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    user: UserPublic


class RefreshResponse(BaseModel):
    access_token: str = Field(..., description="New JWT access token")
    token_type: str = Field(default="bearer", description="Token type")


class RegisterResponse(BaseModel):
    message: str = "User registered successfully"
    user: UserPublic


class MessageResponse(BaseModel):
    message: str


class StatusChangeRequest(BaseModel):
    status: UserStatus


class AdminCreateUserRequest(BaseModel):
    """Body for admin user creation; roles and status are chosen by the admin."""

    username: str = Field(..., min_length=1, max_length=255, description="Username")
    email: str = Field(..., min_length=1, max_length=254, description="Email address")
    password: str = Field(..., max_length=1024, description="Password (8-128 chars, letters and digits)")
    roles: list[str] | None = Field(default=None, description="Roles; defaults to ['user']")
    status: UserStatus = Field(default=UserStatus.ACTIVE, description="Initial status")


class UserUpdateRequest(BaseModel):
    """Partial update; omitted fields are left unchanged. roles replaces the whole set."""

    username: str | None = Field(default=None, min_length=1, max_length=255)
    email: str | None = Field(default=None, min_length=1, max_length=254)
    roles: list[str] | None = Field(default=None, min_length=1)


class RoleRequest(BaseModel):
    role: str = Field(..., min_length=1, max_length=64, description="Role label")


class UsersListResponse(BaseModel):
    """Paginated user list (admin only)."""

    users: list[UserDetail]
    total: int
    offset: int
    limit: int


class ActiveSessionsSummary(BaseModel):
    """Live (unrevoked, unexpired) refresh tokens across all users."""

    total_active_sessions: int
    users_with_active_sessions: int


class LoginAttemptItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str | None
    identifier: str
    success: bool
    ip_address: str | None
    user_agent: str | None
    reason: str | None
    timestamp: datetime


class LoginAttemptsListResponse(BaseModel):
    attempts: list[LoginAttemptItem]
    total: int
    offset: int
    limit: int
