"""
Audit log database model.

Records destructive and restorative operations on patient records
(soft delete, restore, cascade) so support staff can trace who
changed a record's lifecycle and why.
"""

import enum
from typing import Any, Optional

from sqlalchemy import Column, Enum as SQLEnum, JSON, String, Text

from ..core.database import Base, UTCDateTime, utc_now
from .base import new_id


# =============================================================================
# Enum Definitions
# =============================================================================

class AuditAction(str, enum.Enum):
    """Types of auditable actions."""
    DELETE = "DELETE"
    RESTORE = "RESTORE"
    STOP = "STOP"


# =============================================================================
# Audit Log Model
# =============================================================================

class AuditLog(Base):
    """
    Audit trail entry.

    Attributes:
        id: UUID primary key
        resource_type: Collection of the affected record (e.g. "medications")
        resource_id: Id of the affected record
        action: Type of action performed
        owner_id: Owner of the affected record
        actor_id: User that performed the action
        reason: Free-text reason supplied by the actor
        details: Non-PHI metadata (cascade counts, etc.)
        created_at: Timestamp of action
    """

    __tablename__ = "audit_logs"

    id = Column(String(36), primary_key=True, default=new_id)

    resource_type = Column(String(64), nullable=False, index=True)
    resource_id = Column(String(36), nullable=False, index=True)
    action = Column(
        SQLEnum(AuditAction, name="audit_action", native_enum=False, length=16),
        nullable=False,
        index=True,
    )

    owner_id = Column(String(128), nullable=False, index=True)
    actor_id = Column(String(128), nullable=True)
    reason = Column(Text, nullable=True)

    # Never store PHI values here, only ids and counts
    details = Column(JSON, nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=utc_now, index=True)

    def __repr__(self) -> str:
        return (
            f"<AuditLog(id={self.id}, "
            f"resource={self.resource_type}, "
            f"action={self.action.value}, "
            f"resource_id={self.resource_id})>"
        )

    @classmethod
    def create_entry(
        cls,
        resource_type: str,
        resource_id: str,
        action: AuditAction,
        owner_id: str,
        actor_id: Optional[str] = None,
        reason: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> "AuditLog":
        """
        Factory method to create an audit log entry.

        Returns:
            New AuditLog instance (not saved to DB)
        """
        return cls(
            resource_type=resource_type,
            resource_id=resource_id,
            action=action,
            owner_id=owner_id,
            actor_id=actor_id,
            reason=reason,
            details=details,
        )
