"""
Authentication use cases: register, login, refresh, logout.

Login order matters: the lockout check runs before any user lookup, so a
locked identifier never reaches the credential store. Unknown-user and
bad-password failures raise the same InvalidCredentials; account-status
failures are reported distinctly.
"""

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import (
    AccountInactive,
    AccountNotActive,
    AccountSuspended,
    EmailTaken,
    InputValidationError,
    InvalidCredentials,
    InvalidRefreshToken,
    TooManyAttempts,
    UsernameTaken,
    UserNotFound,
)
from app.core.security import (
    USERNAME_MAX_LEN,
    USERNAME_MIN_LEN,
    hash_password,
    normalize_email,
    validate_password,
    verify_password,
)
from app.crud import users as users_crud
from app.models.user import DEFAULT_ROLE, User, UserStatus
from app.schemas.auth import LoginResult, TokenPair, TokenPayload, UserPublic
from app.services.login_attempts import (
    REASON_BAD_PASSWORD,
    REASON_LOCKED_OUT,
    REASON_NOT_FOUND,
    LoginAttemptLedger,
)
from app.services.tokens import TokenService

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def token_payload_for(user: User) -> TokenPayload:
    return TokenPayload(subject_id=user.id, username=user.username, roles=list(user.roles))


def validate_username(username: str | None) -> str:
    """Trimmed username. Raises InputValidationError on a bad length."""
    username = (username or "").strip()
    if not (USERNAME_MIN_LEN <= len(username) <= USERNAME_MAX_LEN):
        raise InputValidationError("Invalid username length.")
    return username


def create_account(
    db: Session,
    settings: "Settings",
    username: str,
    email: str,
    password: str,
    roles: list[str] | None = None,
    status: UserStatus = UserStatus.ACTIVE,
) -> User:
    """
    Validate, check uniqueness (username first), hash, and persist a user.

    Shared by self-registration and admin creation.
    Raises InputValidationError, InvalidEmail, WeakPassword, UsernameTaken, EmailTaken.
    """
    username = validate_username(username)
    normalized_email = normalize_email(email)
    validate_password(password)

    if users_crud.exists_by_username(db, username):
        raise UsernameTaken()
    if users_crud.exists_by_email(db, normalized_email):
        raise EmailTaken()

    user = User.create(
        username=username,
        email=normalized_email,
        password_hash=hash_password(password, rounds=settings.BCRYPT_ROUNDS),
        roles=roles or [DEFAULT_ROLE],
        status=status,
    )
    try:
        return users_crud.create(db, user)
    except IntegrityError:
        # Lost a race with a concurrent registration; report which field collided.
        db.rollback()
        if users_crud.exists_by_username(db, username):
            raise UsernameTaken()
        raise EmailTaken()


class AuthService:
    """Composes the ledger, password hashing, user store, and token service per request."""

    def __init__(
        self,
        db: Session,
        settings: "Settings",
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.db = db
        self.settings = settings
        self.tokens = TokenService(db, settings, clock=clock)
        self.ledger = LoginAttemptLedger(db, clock=clock)

    def register(self, username: str, email: str, password: str) -> UserPublic:
        """
        Create an ACTIVE user with the default role.

        Raises InvalidEmail, WeakPassword, UsernameTaken, EmailTaken.
        """
        user = create_account(self.db, self.settings, username, email, password)
        logger.info("User registered: user_id=%s username=%s", user.id, user.username)
        return UserPublic.model_validate(user)

    def login(
        self,
        identifier: str,
        password: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> LoginResult:
        """
        Authenticate and issue a token pair.

        Raises TooManyAttempts, InvalidCredentials, AccountSuspended,
        AccountInactive, AccountNotActive.
        """
        max_failures = self.settings.LOGIN_MAX_FAILED_ATTEMPTS
        window = self.settings.LOGIN_LOCKOUT_MINUTES

        def record_failure(reason: str, user_id: str | None = None) -> None:
            self.ledger.record_attempt(
                identifier,
                success=False,
                user_id=user_id,
                ip_address=ip_address,
                user_agent=user_agent,
                reason=reason,
            )

        if self.ledger.recent_failure_count(identifier, window) >= max_failures:
            record_failure(REASON_LOCKED_OUT)
            logger.warning("Login locked out: identifier=%s ip=%s", identifier, ip_address)
            raise TooManyAttempts(lockout_minutes=window)

        user = users_crud.get_by_username_or_email(self.db, identifier)
        if user is None:
            record_failure(REASON_NOT_FOUND)
            logger.info("Login failed: identifier=%s reason=%s", identifier, REASON_NOT_FOUND)
            raise InvalidCredentials()

        if not verify_password(password, user.password_hash):
            record_failure(REASON_BAD_PASSWORD, user_id=user.id)
            logger.info("Login failed: identifier=%s reason=%s", identifier, REASON_BAD_PASSWORD)
            raise InvalidCredentials()

        if not user.can_login():
            record_failure(user.status.value, user_id=user.id)
            logger.info("Login refused: user_id=%s status=%s", user.id, user.status.value)
            if user.is_suspended():
                raise AccountSuspended()
            if user.is_inactive():
                raise AccountInactive()
            raise AccountNotActive("Unable to login at this time.")

        user_public = UserPublic.model_validate(user)
        pair = self.tokens.issue_token_pair(
            token_payload_for(user), ip_address=ip_address, user_agent=user_agent
        )
        self.ledger.record_attempt(
            identifier,
            success=True,
            user_id=user_public.id,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        return LoginResult(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            user=user_public,
        )

    def _load_active_subject(self, user_id: str) -> TokenPayload:
        user = users_crud.get_by_id(self.db, user_id)
        if user is None:
            raise InvalidRefreshToken("User not found")
        if not user.can_login():
            logger.info("Refresh refused: user_id=%s status=%s", user.id, user.status.value)
            raise AccountNotActive()
        return token_payload_for(user)

    def refresh(
        self,
        refresh_token: str | None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> TokenPair:
        """
        Rotate a refresh token; the owner must still be allowed to log in.

        Raises InvalidRefreshToken, RefreshTokenExpired,
        RefreshTokenReuseDetected, AccountNotActive.
        """
        if not refresh_token:
            raise InvalidRefreshToken("Refresh token not found")
        return self.tokens.rotate(
            refresh_token,
            self._load_active_subject,
            ip_address=ip_address,
            user_agent=user_agent,
        )

    def logout(self, refresh_token: str | None) -> None:
        """Revoke the refresh token if one is given. Never raises."""
        if not refresh_token:
            return
        try:
            self.tokens.revoke_refresh_token(refresh_token)
        except Exception:
            self.db.rollback()
            logger.exception("Logout: refresh token revocation failed; continuing")

    def verify_access_token(self, token: str) -> TokenPayload:
        """Raises InvalidToken."""
        return self.tokens.verify_access_token(token)

    def get_profile(self, user_id: str) -> UserPublic:
        """Current projection of the authenticated user. Raises UserNotFound."""
        user = users_crud.get_by_id(self.db, user_id)
        if user is None:
            raise UserNotFound()
        return UserPublic.model_validate(user)
