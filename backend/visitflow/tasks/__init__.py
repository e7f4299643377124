"""
Celery tasks package for periodic maintenance.

Provides background jobs for:
- Polling pending transcriptions
- Purging old soft-deleted records
- Removing expired auth handoff codes
"""

from .celery_app import celery_app
from .maintenance import (
    poll_pending_transcriptions,
    purge_soft_deleted_records,
    purge_expired_handoffs,
)

__all__ = [
    "celery_app",
    "poll_pending_transcriptions",
    "purge_soft_deleted_records",
    "purge_expired_handoffs",
]
