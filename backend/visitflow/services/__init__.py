"""
Business logic services for VisitFlow.

Contains the workflow logic separated from the API layer: cascades,
token exchange, visit processing, due-date resolution and retention.
"""

from .audit import AuditService
from .auth_handoff import AuthHandoffService, HandoffExchangeResult, HandoffStatus
from .cascade import CascadeService
from .container import ServiceContainer
from .domain import MedicationDomainService, OwnedRecordService, VisitDomainService
from .due_dates import parse_natural_date, resolve_action_due_date, resolve_visit_reference_date
from .retention import purge_soft_deleted_collections
from .visit_processing import VisitProcessingService

__all__ = [
    "AuditService",
    "AuthHandoffService",
    "HandoffExchangeResult",
    "HandoffStatus",
    "CascadeService",
    "ServiceContainer",
    "MedicationDomainService",
    "OwnedRecordService",
    "VisitDomainService",
    "parse_natural_date",
    "resolve_action_due_date",
    "resolve_visit_reference_date",
    "purge_soft_deleted_collections",
    "VisitProcessingService",
]
