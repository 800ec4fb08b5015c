"""Append-only login attempt log."""

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.models.login_attempt import LoginAttempt


def create(db: Session, attempt: LoginAttempt) -> LoginAttempt:
    """Add one attempt (flushed, not committed)."""
    db.add(attempt)
    db.flush()
    return attempt


def count_recent_failures(db: Session, identifier: str, since: datetime) -> int:
    """
    Failed attempts for identifier at or after since. Email-shaped identifiers
    match case-insensitively, the same way the user lookup resolves them.
    """
    if "@" in identifier:
        match = func.lower(func.trim(LoginAttempt.identifier)) == identifier.strip().lower()
    else:
        match = LoginAttempt.identifier == identifier
    stmt = (
        select(func.count())
        .select_from(LoginAttempt)
        .where(
            match,
            LoginAttempt.success.is_(False),
            LoginAttempt.timestamp >= since,
        )
    )
    return db.execute(stmt).scalar_one()


def list_attempts(
    db: Session,
    user_id: str | None = None,
    offset: int = 0,
    limit: int = 50,
) -> tuple[list[LoginAttempt], int]:
    """Newest-first page of attempts, optionally for one user, plus the total count."""
    filters = [LoginAttempt.user_id == user_id] if user_id else []
    total = db.execute(
        select(func.count()).select_from(LoginAttempt).where(*filters)
    ).scalar_one()
    rows = (
        db.execute(
            select(LoginAttempt)
            .where(*filters)
            .order_by(LoginAttempt.timestamp.desc(), LoginAttempt.id.desc())
            .offset(offset)
            .limit(limit)
        )
        .scalars()
        .all()
    )
    return list(rows), total
