from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session as DbSession

from docsign.config import settings
from docsign.models.signing_session import SigningSession
from docsign.services.document_store import DocumentStore, get_document_store


logger = logging.getLogger(__name__)


def signing_session_cutoff(*, now: Optional[datetime] = None, max_age_days: Optional[int] = None) -> datetime:
    days = max_age_days if max_age_days is not None else settings.signing_session_max_age_days
    return (now or datetime.utcnow()) - timedelta(days=max(1, int(days)))


def purge_signing_sessions(
    db: DbSession,
    *,
    now: Optional[datetime] = None,
    max_age_days: Optional[int] = None,
    store: Optional[DocumentStore] = None,
) -> int:
    """Delete signing sessions older than the retention window.

    Purge condition:
    - created_at < now - max_age_days

    Pending and signed sessions are purged alike; stored documents are
    removed before their rows.
    """

    cutoff = signing_session_cutoff(now=now, max_age_days=max_age_days)
    document_store = store or get_document_store()

    expired = db.query(SigningSession).filter(SigningSession.created_at < cutoff).all()
    if not expired:
        return 0

    for session in expired:
        document_store.delete_all(session)

    tokens = [s.token for s in expired]
    deleted = (
        db.query(SigningSession)
        .filter(SigningSession.token.in_(tokens))
        .delete(synchronize_session=False)
    )
    db.commit()
    logger.info(f"Purged {deleted} signing session(s) created before {cutoff.isoformat()}")
    return int(deleted or 0)
