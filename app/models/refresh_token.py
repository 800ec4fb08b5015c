"""ORM model for persisted refresh tokens (hash only, never the token itself)."""

import uuid

from sqlalchemy import Boolean, Column, ForeignKey, String, Text

from app.models.base import Base, UTCDateTime


class RefreshToken(Base):
    """
    A revocable refresh capability owned by one user.

    revoked only ever moves from False to True. A token is usable while
    revoked is False and the current time is before expires_at.
    """

    __tablename__ = "refresh_tokens"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    token_hash = Column(String(64), nullable=False, unique=True, index=True)  # SHA-256 hex
    expires_at = Column(UTCDateTime(), nullable=False, index=True)
    revoked = Column(Boolean, nullable=False, default=False, index=True)
    revoked_at = Column(UTCDateTime(), nullable=True)
    created_at = Column(UTCDateTime(), nullable=False)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
