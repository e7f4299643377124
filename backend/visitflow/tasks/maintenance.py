"""
Periodic maintenance tasks.

Each task opens its own session and closes it when done. Work is
idempotent, so broker redelivery or overlapping beats are harmless.
"""

import logging
from typing import Any, Dict, List, Optional

from celery import shared_task
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.database import SessionLocal
from ..services.auth_handoff import AuthHandoffService
from ..services.notifications import PushNotificationService
from ..services.retention import purge_soft_deleted_collections
from ..services.transcription import AssemblyAIClient
from ..services.visit_processing import VisitProcessingService


logger = logging.getLogger(__name__)


def get_db_session() -> Session:
    """Create a new database session for task execution."""
    return SessionLocal()


# =============================================================================
# Transcription Polling
# =============================================================================

@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=60,
    max_retries=2,
)
def poll_pending_transcriptions(self, limit: Optional[int] = None) -> Dict[str, Any]:
    """
    Advance or fail visits stuck in ``transcribing``.

    Backup for missed AssemblyAI callbacks; visits already moved on by the
    webhook are skipped by the guarded transition.
    """
    db = get_db_session()
    try:
        service = VisitProcessingService(
            db,
            transcription_client=AssemblyAIClient(),
            notifier=PushNotificationService(),
        )
        summary = service.poll_pending_transcriptions(
            limit=limit or settings.transcription_poll_limit,
            timeout_minutes=settings.transcription_timeout_minutes,
        )
        return {
            "checked": summary.checked,
            "advanced": summary.advanced,
            "failed": summary.failed,
            "timed_out": summary.timed_out,
            "skipped": summary.skipped,
            "errors": summary.errors,
        }
    finally:
        db.close()


# =============================================================================
# Retention
# =============================================================================

@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=300,
    max_retries=3,
)
def purge_soft_deleted_records(
    self,
    retention_days: Optional[int] = None,
    collections: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """
    Hard-delete tombstones past the retention period.

    Re-queues itself while any collection reports more eligible rows.
    """
    db = get_db_session()
    try:
        result = purge_soft_deleted_collections(
            db,
            retention_days=retention_days,
            page_size=settings.retention_purge_page_size,
            collections=collections,
        )
    finally:
        db.close()

    if result.has_more:
        logger.info("Retention purge has more rows, scheduling another pass")
        purge_soft_deleted_records.apply_async(
            kwargs={"retention_days": retention_days, "collections": collections},
            countdown=5,
        )

    return {
        "scanned": result.total_scanned,
        "purged": result.total_purged,
        "has_more": result.has_more,
        "per_collection": result.per_collection,
        "cutoff": result.cutoff.isoformat() if result.cutoff else None,
    }


# =============================================================================
# Auth Handoff Cleanup
# =============================================================================

@shared_task(bind=True, max_retries=3, retry_backoff=True)
def purge_expired_handoffs(self) -> Dict[str, int]:
    db = get_db_session()
    try:
        purged = AuthHandoffService(db).purge_expired()
        return {"purged": purged}
    finally:
        db.close()
