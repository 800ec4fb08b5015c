"""
Refresh token storage: creation, lookup by hash, atomic claim, and revocation.

Tokens are addressed by their SHA-256 hash. Functions that mutate leave the
commit to the caller unless noted, so a claim and the insert of its
replacement can share one transaction.
"""

import logging
from datetime import datetime

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from app.models.refresh_token import RefreshToken

logger = logging.getLogger(__name__)


def create(
    db: Session,
    user_id: str,
    token_hash: str,
    expires_at: datetime,
    created_at: datetime,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> RefreshToken:
    """Add a live refresh token record (flushed, not committed)."""
    record = RefreshToken(
        user_id=user_id,
        token_hash=token_hash,
        expires_at=expires_at,
        revoked=False,
        created_at=created_at,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.add(record)
    db.flush()
    return record


def get_by_hash(db: Session, token_hash: str) -> RefreshToken | None:
    # populate_existing: bulk UPDATEs below bypass the identity map.
    return db.execute(
        select(RefreshToken)
        .where(RefreshToken.token_hash == token_hash)
        .execution_options(populate_existing=True)
    ).scalars().first()


def claim(db: Session, token_hash: str, now: datetime) -> bool:
    """
    Atomically flip revoked False -> True for one token.

    Returns True only for the single caller whose UPDATE matched the live
    row; concurrent callers block on the row lock and then match nothing.
    """
    result = db.execute(
        update(RefreshToken)
        .where(RefreshToken.token_hash == token_hash, RefreshToken.revoked.is_(False))
        .values(revoked=True, revoked_at=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def revoke_by_hash(db: Session, token_hash: str, now: datetime) -> bool:
    """Revoke one token if it is live. Revoking a missing or revoked token is a no-op."""
    return claim(db, token_hash, now)


def revoke_all_for_user(db: Session, user_id: str, now: datetime) -> int:
    """Revoke every live token owned by user_id; returns how many were flipped."""
    result = db.execute(
        update(RefreshToken)
        .where(RefreshToken.user_id == user_id, RefreshToken.revoked.is_(False))
        .values(revoked=True, revoked_at=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def count_live(db: Session, now: datetime) -> tuple[int, int]:
    """Unrevoked, unexpired tokens: (token count, distinct owners)."""
    stmt = (
        select(func.count(), func.count(func.distinct(RefreshToken.user_id)))
        .select_from(RefreshToken)
        .where(RefreshToken.revoked.is_(False), RefreshToken.expires_at > now)
    )
    tokens, users = db.execute(stmt).one()
    return tokens, users


def delete_expired(db: Session, cutoff: datetime) -> int:
    """Delete rows whose expiry is before cutoff. Commits."""
    result = db.execute(
        delete(RefreshToken)
        .where(RefreshToken.expires_at < cutoff)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount
