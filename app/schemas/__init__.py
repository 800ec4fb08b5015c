"""Pydantic request/response schemas."""

from app.schemas.auth import (
    CurrentUser,
    LoginRequest,
    LoginResult,
    TokenPair,
    TokenPayload,
    UserDetail,
    UserPublic,
)
from app.schemas.health import HealthResponse

__all__ = [
    "CurrentUser",
    "HealthResponse",
    "LoginRequest",
    "LoginResult",
    "TokenPair",
    "TokenPayload",
    "UserDetail",
    "UserPublic",
]
