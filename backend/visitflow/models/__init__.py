"""
SQLAlchemy ORM models for VisitFlow.

Contains database table definitions. Records reference each other by id
only; there are no foreign keys between entity tables.
"""

from .base import OwnedRecordMixin
from .visit import Visit, Action, ProcessingStatus
from .medication import Medication, MedicationReminder, Nudge, NudgeStatus, OPEN_NUDGE_STATUSES
from .care import CareTask, HealthLog, Insight
from .auth_handoff import AuthHandoff
from .audit_log import AuditLog, AuditAction

__all__ = [
    "OwnedRecordMixin",
    # Visits
    "Visit",
    "Action",
    "ProcessingStatus",
    # Medications
    "Medication",
    "MedicationReminder",
    "Nudge",
    "NudgeStatus",
    "OPEN_NUDGE_STATUSES",
    # Care
    "CareTask",
    "HealthLog",
    "Insight",
    # Auth
    "AuthHandoff",
    # Audit
    "AuditLog",
    "AuditAction",
]
