"""
Hard purge of soft-deleted records past their retention period.

Runs out of band (Celery beat). Each run removes at most ``page_size``
tombstones per collection, oldest first, and reports whether more
remain so the scheduler can simply run it again.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.database import utc_now
from ..core.transactions import transaction
from ..repositories import (
    ActionRepository,
    CareTaskRepository,
    HealthLogRepository,
    InsightRepository,
    MedicationReminderRepository,
    MedicationRepository,
    NudgeRepository,
    VisitRepository,
)


logger = logging.getLogger(__name__)

RETENTION_REPOSITORIES = {
    "actions": ActionRepository,
    "visits": VisitRepository,
    "medications": MedicationRepository,
    "health_logs": HealthLogRepository,
    "medication_reminders": MedicationReminderRepository,
    "care_tasks": CareTaskRepository,
    "nudges": NudgeRepository,
    "insights": InsightRepository,
}

DEFAULT_RETENTION_COLLECTIONS = (
    "actions",
    "visits",
    "medications",
    "health_logs",
    "medication_reminders",
    "care_tasks",
)


@dataclass
class RetentionPurgeResult:
    total_scanned: int = 0
    total_purged: int = 0
    has_more: bool = False
    per_collection: Dict[str, int] = field(default_factory=dict)
    cutoff: Optional[datetime] = None


def purge_soft_deleted_collections(
    db: Session,
    retention_days: Optional[int] = None,
    page_size: Optional[int] = None,
    collections: Optional[Iterable[str]] = None,
    now: Optional[datetime] = None,
) -> RetentionPurgeResult:
    """
    Permanently delete tombstones older than the retention period.

    Args:
        db: Database session
        retention_days: Age a tombstone must exceed (default from settings)
        page_size: Max rows removed per collection in this run
        collections: Collection names to sweep (default: all core collections)
        now: Reference instant

    Returns:
        RetentionPurgeResult with totals and per-collection purge counts

    Raises:
        ValueError: Unknown collection name
    """
    retention_days = retention_days if retention_days is not None else settings.soft_delete_retention_days
    page_size = page_size or settings.retention_purge_page_size
    names = list(collections) if collections else list(DEFAULT_RETENTION_COLLECTIONS)
    now = now or utc_now()
    cutoff = now - timedelta(days=retention_days)

    unknown = [name for name in names if name not in RETENTION_REPOSITORIES]
    if unknown:
        raise ValueError(f"Unknown retention collections: {', '.join(unknown)}")

    result = RetentionPurgeResult(cutoff=cutoff)

    for name in names:
        repo = RETENTION_REPOSITORIES[name](db)
        candidates = repo.list_deleted_before(cutoff, page_size + 1)
        if len(candidates) > page_size:
            result.has_more = True
        batch = candidates[:page_size]
        result.total_scanned += len(batch)
        if not batch:
            result.per_collection[name] = 0
            continue

        with transaction(db):
            purged = repo.hard_delete_ids([record.id for record in batch])
        result.per_collection[name] = purged
        result.total_purged += purged

    logger.info(
        f"Retention purge (>{retention_days}d): scanned={result.total_scanned} "
        f"purged={result.total_purged} has_more={result.has_more}"
    )
    return result
