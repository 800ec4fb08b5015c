"""Login attempt ledger: best-effort audit writes and sliding-window failure counts."""

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.crud import login_attempts as attempts_crud
from app.models.login_attempt import LoginAttempt

logger = logging.getLogger(__name__)

REASON_LOCKED_OUT = "locked out"
REASON_NOT_FOUND = "not found"
REASON_BAD_PASSWORD = "bad password"

# Identifier column width; longer identifiers are keyed on their prefix.
IDENTIFIER_MAX_LEN = 255


def _utcnow() -> datetime:
    return datetime.now(UTC)


class LoginAttemptLedger:
    """Records every login attempt and answers lockout queries keyed by the submitted identifier."""

    def __init__(self, db: Session, clock: Callable[[], datetime] = _utcnow) -> None:
        self.db = db
        self.clock = clock

    def record_attempt(
        self,
        identifier: str,
        success: bool,
        user_id: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        reason: str | None = None,
    ) -> None:
        """
        Append one attempt in a short-lived session of its own, so the write
        commits independently of the caller's transaction. Never raises: a
        storage failure is logged and the caller's authentication outcome stands.
        """
        attempt = LoginAttempt(
            user_id=user_id,
            identifier=identifier[:IDENTIFIER_MAX_LEN],
            success=success,
            ip_address=ip_address,
            user_agent=user_agent,
            reason=reason,
            timestamp=self.clock(),
        )
        try:
            with Session(bind=self.db.get_bind()) as session, session.begin():
                attempts_crud.create(session, attempt)
        except SQLAlchemyError:
            logger.exception(
                "Failed to record login attempt: identifier=%s success=%s", identifier, success
            )

    def recent_failure_count(self, identifier: str, window_minutes: int) -> int:
        """Failed attempts for identifier within [now - window_minutes, now]."""
        since = self.clock() - timedelta(minutes=window_minutes)
        return attempts_crud.count_recent_failures(
            self.db, identifier[:IDENTIFIER_MAX_LEN], since
        )
