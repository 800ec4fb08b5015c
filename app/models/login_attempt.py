"""ORM model for the append-only login attempt audit log."""

from sqlalchemy import Boolean, Column, Index, Integer, String, Text

from app.models.base import Base, UTCDateTime


class LoginAttempt(Base):
    """
    One login attempt as submitted. Rows are inserted and never updated.

    identifier is the raw username-or-email the client sent; lockout counting
    keys on it. user_id is set only when the identifier resolved to a user.
    """

    __tablename__ = "login_attempts"
    __table_args__ = (
        Index("ix_login_attempts_identifier_timestamp", "identifier", "timestamp"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    # No FK: audit rows outlive deleted users.
    user_id = Column(String(36), nullable=True, index=True)
    identifier = Column(String(255), nullable=False)
    success = Column(Boolean, nullable=False)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    reason = Column(String(255), nullable=True)
    timestamp = Column(UTCDateTime(), nullable=False)
