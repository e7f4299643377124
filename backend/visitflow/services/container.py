"""
Per-session service wiring.

Routes and tasks build one container per database session instead of
instantiating services and their collaborators individually.
"""

from typing import Any, Optional

from sqlalchemy.orm import Session

from ..repositories import (
    ActionRepository,
    CareTaskRepository,
    HealthLogRepository,
    InsightRepository,
    NudgeRepository,
)
from .audit import AuditService
from .auth_handoff import AuthHandoffService
from .cascade import CascadeService
from .domain import MedicationDomainService, OwnedRecordService, VisitDomainService
from .notifications import PushNotificationService
from .transcription import AssemblyAIClient
from .visit_processing import VisitProcessingService


class ServiceContainer:
    """
    Services sharing one session.

    Args:
        db: Database session
        transcription_client: Override for the AssemblyAI client
        notifier: Override for the push notification service
    """

    def __init__(
        self,
        db: Session,
        transcription_client: Optional[Any] = None,
        notifier: Optional[Any] = None,
    ):
        self.db = db
        self.transcription_client = transcription_client or AssemblyAIClient()
        self.notifier = notifier or PushNotificationService()

        self.cascade = CascadeService(db)
        self.medications = MedicationDomainService(db, self.cascade)
        self.visits = VisitDomainService(db, self.cascade)
        self.actions = OwnedRecordService(ActionRepository(db))
        self.nudges = OwnedRecordService(NudgeRepository(db))
        self.care_tasks = OwnedRecordService(CareTaskRepository(db))
        self.health_logs = OwnedRecordService(HealthLogRepository(db))
        self.insights = OwnedRecordService(InsightRepository(db))

        self.auth_handoffs = AuthHandoffService(db)
        self.audit = AuditService(db)
        self.visit_processing = VisitProcessingService(
            db,
            transcription_client=self.transcription_client,
            notifier=self.notifier,
        )
