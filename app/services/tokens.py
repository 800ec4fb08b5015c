"""
Token service: access-token signing and verification, refresh-token
persistence, revocation, and rotation with reuse detection.

Access tokens are stateless JWTs signed with JWT_ACCESS_SECRET. Refresh
tokens are JWTs signed with the independent JWT_REFRESH_SECRET and tracked
in the refresh_tokens table by SHA-256 hash. A refresh token can be rotated
at most once: rotation starts with a conditional UPDATE that only one caller
can win, and every later presentation of the same token is treated as reuse.
"""

import logging
import uuid
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import jwt
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import (
    AuthServiceError,
    InvalidRefreshToken,
    InvalidToken,
    RefreshTokenExpired,
    RefreshTokenReuseDetected,
)
from app.core.security import hash_token
from app.crud import refresh_tokens as tokens_crud
from app.models.refresh_token import RefreshToken
from app.schemas.auth import TokenPair, TokenPayload

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class TokenService:
    """Issues and validates tokens against one DB session and explicit settings."""

    def __init__(
        self,
        db: Session,
        settings: "Settings",
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.db = db
        self.clock = clock
        self._algorithm = settings.JWT_ALGORITHM
        self._access_secret = settings.JWT_ACCESS_SECRET.get_secret_value()
        self._refresh_secret = settings.JWT_REFRESH_SECRET.get_secret_value()
        self.access_ttl = timedelta(minutes=settings.JWT_ACCESS_EXPIRE_MINUTES)
        self.refresh_ttl = timedelta(days=settings.JWT_REFRESH_EXPIRE_DAYS)

    # Access tokens

    def generate_access_token(self, payload: TokenPayload, now: datetime | None = None) -> str:
        """Sign a short-lived access token carrying subject id, username, and roles."""
        now = now or self.clock()
        claims: dict[str, Any] = {
            "sub": payload.subject_id,
            "username": payload.username,
            "roles": list(payload.roles),
            "type": ACCESS_TOKEN_TYPE,
            "iat": now,
            "exp": now + self.access_ttl,
        }
        return jwt.encode(claims, self._access_secret, algorithm=self._algorithm)

    def verify_access_token(self, token: str) -> TokenPayload:
        """
        Verify signature and expiry; return the asserted identity.
        Raises InvalidToken on any failure.
        """
        try:
            claims = jwt.decode(
                token,
                self._access_secret,
                algorithms=[self._algorithm],
                options={"require": ["exp", "sub"]},
            )
        except (jwt.PyJWTError, TypeError, AttributeError) as e:
            raise InvalidToken() from e
        if claims.get("type") != ACCESS_TOKEN_TYPE:
            raise InvalidToken()
        try:
            return TokenPayload(
                subject_id=claims["sub"],
                username=claims.get("username"),
                roles=claims.get("roles"),
            )
        except ValidationError as e:
            raise InvalidToken("Invalid token payload") from e

    # Refresh tokens

    def _mint_refresh_token(self, user_id: str, now: datetime) -> tuple[str, datetime]:
        expires_at = now + self.refresh_ttl
        claims: dict[str, Any] = {
            "sub": user_id,
            "type": REFRESH_TOKEN_TYPE,
            # Unique per token so two issued in the same second never collide.
            "jti": uuid.uuid4().hex,
            "iat": now,
            "exp": expires_at,
        }
        return jwt.encode(claims, self._refresh_secret, algorithm=self._algorithm), expires_at

    def generate_refresh_token(self, user_id: str) -> str:
        """Sign a long-lived refresh token for user_id (not persisted)."""
        token, _ = self._mint_refresh_token(user_id, self.clock())
        return token

    def refresh_expiry(self, now: datetime | None = None) -> datetime:
        return (now or self.clock()) + self.refresh_ttl

    def _decode_refresh_token(self, token: str) -> dict[str, Any]:
        """Verify the signature only; expiry is judged against the stored record."""
        try:
            claims = jwt.decode(
                token,
                self._refresh_secret,
                algorithms=[self._algorithm],
                options={"verify_exp": False, "require": ["exp", "sub", "jti"]},
            )
        except (jwt.PyJWTError, TypeError, AttributeError) as e:
            raise InvalidRefreshToken() from e
        if claims.get("type") != REFRESH_TOKEN_TYPE:
            raise InvalidRefreshToken()
        return claims

    def save_refresh_token(
        self,
        user_id: str,
        token: str,
        expires_at: datetime,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> RefreshToken:
        """Persist a live refresh token by hash and commit."""
        record = tokens_crud.create(
            self.db,
            user_id=user_id,
            token_hash=hash_token(token),
            expires_at=expires_at,
            created_at=self.clock(),
            ip_address=ip_address,
            user_agent=user_agent,
        )
        self.db.commit()
        return record

    def find_refresh_token(self, token: str) -> RefreshToken | None:
        return tokens_crud.get_by_hash(self.db, hash_token(token))

    def is_token_revoked(self, token: str) -> bool:
        """Unknown tokens count as revoked."""
        record = self.find_refresh_token(token)
        return record is None or record.revoked

    def revoke_refresh_token(self, token: str) -> None:
        """Idempotent: missing or already revoked tokens are left alone."""
        tokens_crud.revoke_by_hash(self.db, hash_token(token), self.clock())
        self.db.commit()

    def revoke_all_user_refresh_tokens(self, user_id: str) -> int:
        count = tokens_crud.revoke_all_for_user(self.db, user_id, self.clock())
        self.db.commit()
        if count:
            logger.info("Revoked refresh tokens: user_id=%s count=%s", user_id, count)
        return count

    # Issuance and rotation

    def _issue(
        self,
        payload: TokenPayload,
        now: datetime,
        ip_address: str | None,
        user_agent: str | None,
    ) -> TokenPair:
        access_token = self.generate_access_token(payload, now=now)
        refresh_token, expires_at = self._mint_refresh_token(payload.subject_id, now)
        tokens_crud.create(
            self.db,
            user_id=payload.subject_id,
            token_hash=hash_token(refresh_token),
            expires_at=expires_at,
            created_at=now,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        return TokenPair(access_token=access_token, refresh_token=refresh_token)

    def issue_token_pair(
        self,
        payload: TokenPayload,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> TokenPair:
        """Mint an access token and a persisted refresh token in one commit."""
        try:
            pair = self._issue(payload, self.clock(), ip_address, user_agent)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        return pair

    def rotate(
        self,
        old_token: str,
        load_subject: Callable[[str], TokenPayload],
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> TokenPair:
        """
        Exchange a refresh token for a new access/refresh pair, consuming it.

        load_subject(user_id) builds the new access-token payload; any
        AuthServiceError it raises aborts issuance but keeps the old token
        revoked. The claim on the old token and the insert of its replacement
        commit together.

        Raises InvalidRefreshToken, RefreshTokenExpired, RefreshTokenReuseDetected.
        """
        claims = self._decode_refresh_token(old_token)
        now = self.clock()
        token_hash = hash_token(old_token)
        try:
            claimed = tokens_crud.claim(self.db, token_hash, now)
            record = tokens_crud.get_by_hash(self.db, token_hash)

            if not claimed:
                # Absent (including purged) or already revoked.
                owner_id = record.user_id if record is not None else claims["sub"]
                revoked_count = tokens_crud.revoke_all_for_user(self.db, owner_id, now)
                self.db.commit()
                logger.warning(
                    "Refresh token reuse detected: user_id=%s tokens_revoked=%s",
                    owner_id,
                    revoked_count,
                )
                raise RefreshTokenReuseDetected()

            if record.expires_at <= now or claims["exp"] <= now.timestamp():
                self.db.commit()
                raise RefreshTokenExpired()

            try:
                payload = load_subject(record.user_id)
            except AuthServiceError:
                self.db.commit()
                raise

            pair = self._issue(
                payload,
                now,
                ip_address or record.ip_address,
                user_agent or record.user_agent,
            )
            self.db.commit()
            return pair
        except SQLAlchemyError:
            self.db.rollback()
            raise
