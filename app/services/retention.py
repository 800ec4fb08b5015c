"""Data retention: delete refresh-token rows long past their expiry."""

import logging
from datetime import datetime, timezone, timedelta
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from app.crud import refresh_tokens as tokens_crud

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)


def run_retention(session: Session, settings: "Settings") -> int:
    """
    Delete refresh tokens that expired more than REFRESH_TOKEN_RETENTION_HOURS ago.

    Returns the number of rows deleted. Login attempts are never purged here.
    Idempotent: safe to run repeatedly.
    """
    if not settings.RETENTION_ENABLED:
        logger.info("Retention is disabled (RETENTION_ENABLED=false); skipping.")
        return 0

    cutoff = datetime.now(timezone.utc) - timedelta(hours=settings.REFRESH_TOKEN_RETENTION_HOURS)
    deleted_count = tokens_crud.delete_expired(session, cutoff)

    if deleted_count > 0:
        logger.info(
            "Retention run: cutoff=%s, refresh_tokens_deleted=%s",
            cutoff.isoformat(),
            deleted_count,
        )
    return deleted_count
