"""
Audit logging for record lifecycle operations.

Soft deletes, restores and medication stops are recorded so support
staff can trace who changed a record's lifecycle and why.
"""

import logging
from typing import Any, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models.audit_log import AuditAction, AuditLog


logger = logging.getLogger(__name__)


class AuditService:
    """
    Service for creating lifecycle audit entries.

    Entries hold ids, reasons and counts only, never record contents.

    Example usage:
        audit = AuditService(db)
        audit.log_restore("medications", med.id, owner_id=user_id, actor_id=user_id)
    """

    def __init__(self, db: Session):
        """
        Initialize audit service with database session.

        Args:
            db: SQLAlchemy session for database operations
        """
        self.db = db

    def _create_log_entry(
        self,
        resource_type: str,
        resource_id: str,
        action: AuditAction,
        owner_id: str,
        actor_id: Optional[str] = None,
        reason: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> AuditLog:
        """
        Create and persist an audit log entry.

        Returns:
            Created AuditLog instance
        """
        audit_log = AuditLog.create_entry(
            resource_type=resource_type,
            resource_id=resource_id,
            action=action,
            owner_id=owner_id,
            actor_id=actor_id,
            reason=reason,
            details=details,
        )

        self.db.add(audit_log)
        self.db.commit()
        self.db.refresh(audit_log)

        return audit_log

    def log_delete(
        self,
        resource_type: str,
        resource_id: str,
        owner_id: str,
        actor_id: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> AuditLog:
        return self._create_log_entry(
            resource_type=resource_type,
            resource_id=resource_id,
            action=AuditAction.DELETE,
            owner_id=owner_id,
            actor_id=actor_id,
            details=details,
        )

    def log_restore(
        self,
        resource_type: str,
        resource_id: str,
        owner_id: str,
        actor_id: Optional[str] = None,
        reason: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> AuditLog:
        """
        Log a RESTORE action (soft-deleted record brought back).

        Args:
            resource_type: Collection of the restored record
            resource_id: Id of the restored record
            owner_id: Owner of the record
            actor_id: User who restored it (may be support staff)
            reason: Optional free-text reason
            details: Optional non-PHI metadata such as cascade counts

        Returns:
            Created AuditLog instance
        """
        return self._create_log_entry(
            resource_type=resource_type,
            resource_id=resource_id,
            action=AuditAction.RESTORE,
            owner_id=owner_id,
            actor_id=actor_id,
            reason=reason,
            details=details,
        )

    def log_stop(
        self,
        resource_type: str,
        resource_id: str,
        owner_id: str,
        actor_id: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> AuditLog:
        return self._create_log_entry(
            resource_type=resource_type,
            resource_id=resource_id,
            action=AuditAction.STOP,
            owner_id=owner_id,
            actor_id=actor_id,
            details=details,
        )

    def history(self, resource_type: str, resource_id: str) -> List[AuditLog]:
        """Entries for one record, oldest first."""
        stmt = (
            select(AuditLog)
            .where(AuditLog.resource_type == resource_type, AuditLog.resource_id == resource_id)
            .order_by(AuditLog.created_at.asc())
        )
        return list(self.db.execute(stmt).scalars().all())
