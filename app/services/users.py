"""Administrative user management: creation, edits, status changes, deletion, roles, audit listing."""

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import EmailTaken, UsernameTaken, UserNotFound
from app.core.security import normalize_email
from app.crud import login_attempts as attempts_crud
from app.crud import refresh_tokens as tokens_crud
from app.crud import users as users_crud
from app.models.login_attempt import LoginAttempt
from app.models.user import User, UserStatus
from app.schemas.auth import ActiveSessionsSummary
from app.services.auth import create_account, validate_username
from app.services.tokens import TokenService

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _clean_roles(roles: list[str] | None) -> list[str] | None:
    """Stripped, de-duplicated role labels, or None when nothing is left."""
    cleaned = list(dict.fromkeys(r.strip() for r in roles or [] if r and r.strip()))
    return cleaned or None


class UserAdminService:
    def __init__(
        self,
        db: Session,
        settings: "Settings",
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.db = db
        self.settings = settings
        self.clock = clock
        self.tokens = TokenService(db, settings, clock=clock)

    def get_user(self, user_id: str) -> User:
        """Raises UserNotFound."""
        user = users_crud.get_by_id(self.db, user_id)
        if user is None:
            raise UserNotFound()
        return user

    def list_users(self, offset: int = 0, limit: int = 50) -> tuple[list[User], int]:
        return users_crud.list_users(self.db, offset=offset, limit=limit)

    def create_user(
        self,
        username: str,
        email: str,
        password: str,
        roles: list[str] | None = None,
        status: UserStatus = UserStatus.ACTIVE,
    ) -> User:
        """
        Create a user with explicit roles and status, under the same validation
        and uniqueness rules as registration.

        Raises InputValidationError, InvalidEmail, WeakPassword, UsernameTaken, EmailTaken.
        """
        user = create_account(
            self.db,
            self.settings,
            username,
            email,
            password,
            roles=_clean_roles(roles),
            status=UserStatus(status),
        )
        logger.info("User created by admin: user_id=%s username=%s", user.id, user.username)
        return user

    def update_user(
        self,
        user_id: str,
        username: str | None = None,
        email: str | None = None,
        roles: list[str] | None = None,
    ) -> User:
        """
        Change username, email, and/or the whole role set. Fields left as None
        are untouched; keeping a field's current value is not a conflict.

        Raises UserNotFound, InputValidationError, InvalidEmail, UsernameTaken,
        EmailTaken, InvalidStateTransition (empty role set).
        """
        user = self.get_user(user_id)
        if username is not None:
            username = validate_username(username)
            if username != user.username:
                if users_crud.exists_by_username(self.db, username):
                    raise UsernameTaken()
                user.rename(username)
        if email is not None:
            email = normalize_email(email)
            if email != user.email:
                if users_crud.exists_by_email(self.db, email):
                    raise EmailTaken()
                user.change_email(email)
        if roles is not None:
            user.set_roles(roles)
        try:
            user = users_crud.update(self.db, user)
        except IntegrityError:
            self.db.rollback()
            if username is not None and users_crud.exists_by_username(self.db, username):
                raise UsernameTaken()
            raise EmailTaken()
        logger.info("User updated: user_id=%s", user.id)
        return user

    def change_status(self, user_id: str, status: UserStatus) -> User:
        """
        Move a user to status. Leaving ACTIVE revokes every refresh token the
        user holds; the token revocation and the status change commit together.

        Raises UserNotFound, InvalidStateTransition.
        """
        user = self.get_user(user_id)
        user.change_status(status)
        if status != UserStatus.ACTIVE:
            self.tokens.revoke_all_user_refresh_tokens(user.id)
        user = users_crud.update(self.db, user)
        logger.info("User status changed: user_id=%s status=%s", user.id, user.status.value)
        return user

    def delete_user(self, user_id: str) -> None:
        """
        Revoke the user's tokens (best effort) and delete the record.
        Raises UserNotFound.
        """
        user = self.get_user(user_id)
        try:
            self.tokens.revoke_all_user_refresh_tokens(user.id)
        except Exception:
            self.db.rollback()
            logger.exception("Delete user: token revocation failed for user_id=%s; continuing", user_id)
            user = self.get_user(user_id)
        users_crud.delete(self.db, user)
        logger.info("User deleted: user_id=%s", user_id)

    def add_role(self, user_id: str, role: str) -> User:
        """Raises UserNotFound, DuplicateRole."""
        user = self.get_user(user_id)
        user.add_role(role.strip())
        return users_crud.update(self.db, user)

    def remove_role(self, user_id: str, role: str) -> User:
        """Raises UserNotFound, RoleNotFound, InvalidStateTransition (last role)."""
        user = self.get_user(user_id)
        user.remove_role(role.strip())
        return users_crud.update(self.db, user)

    def list_login_attempts(
        self,
        user_id: str | None = None,
        offset: int = 0,
        limit: int = 50,
    ) -> tuple[list[LoginAttempt], int]:
        return attempts_crud.list_attempts(self.db, user_id=user_id, offset=offset, limit=limit)

    def active_sessions(self) -> ActiveSessionsSummary:
        """Live refresh tokens across all users."""
        tokens, users = tokens_crud.count_live(self.db, self.clock())
        return ActiveSessionsSummary(total_active_sessions=tokens, users_with_active_sessions=users)
