"""
Domain services: the API-facing operations over owner-scoped records.

Each service wraps a repository and adds ownership checks, tombstone
visibility and the unit of work; medication and visit services also
expose their cascades. Routes talk to these, never to repositories.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Generic, List, Optional, TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.database import to_millis, utc_now
from ..core.errors import NotDeletedError, NotFoundError
from ..core.transactions import transaction
from ..models.medication import Medication
from ..repositories import (
    CursorPage,
    ListOptions,
    MedicationRepository,
    OwnedRecordRepository,
    VisitRepository,
)
from .cascade import (
    CascadeService,
    MedicationDeleteCascadeResult,
    MedicationRestoreCascadeResult,
    VisitDeleteCascadeResult,
    VisitRestoreCascadeResult,
)


logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT")


class OwnedRecordService(Generic[RecordT]):
    """
    Generic owner-scoped operations.

    Example usage:
        actions = OwnedRecordService(ActionRepository(db))
        page = actions.list_for_user(user_id, ListOptions(limit=20, cursor=cursor))
    """

    def __init__(self, repository: OwnedRecordRepository):
        self.repository = repository
        self.db: Session = repository.db

    @property
    def collection(self) -> str:
        return self.repository.collection

    def list_for_user(self, user_id: str, options: Optional[ListOptions] = None) -> CursorPage:
        return self.repository.list_by_owner(user_id, options)

    def list_all_for_user(
        self,
        user_id: str,
        include_deleted: bool = False,
        sort_direction: str = "desc",
    ) -> List[RecordT]:
        return self.repository.list_all_by_owner(user_id, include_deleted, sort_direction)

    def get_for_user(
        self,
        user_id: str,
        record_id: str,
        include_deleted: bool = False,
    ) -> Optional[RecordT]:
        """
        Read a record the user owns.

        Returns:
            The record, or None if missing, owned by someone else, or
            soft-deleted while ``include_deleted`` is False
        """
        record = self.repository.get_by_id(record_id)
        if record is None or record.owner_id != user_id:
            return None
        if record.deleted_at is not None and not include_deleted:
            return None
        return record

    def require_for_user(self, user_id: str, record_id: str, include_deleted: bool = False) -> RecordT:
        record = self.get_for_user(user_id, record_id, include_deleted)
        if record is None:
            raise NotFoundError(f"{self.collection} record not found")
        return record

    def create_record(self, user_id: str, data: Dict[str, Any], now: Optional[datetime] = None) -> RecordT:
        with transaction(self.db):
            record = self.repository.create(user_id, data, now)
        return record

    def update_record(
        self,
        user_id: str,
        record_id: str,
        updates: Dict[str, Any],
        now: Optional[datetime] = None,
    ) -> Optional[RecordT]:
        if self.get_for_user(user_id, record_id) is None:
            return None
        with transaction(self.db):
            record = self.repository.update_by_id(record_id, updates, now)
        return record

    def soft_delete_record(
        self,
        user_id: str,
        record_id: str,
        actor_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> RecordT:
        """
        Tombstone a live record.

        Raises:
            NotFoundError: Record missing, foreign, or already deleted
        """
        self.require_for_user(user_id, record_id)
        with transaction(self.db):
            record = self.repository.soft_delete_by_id(record_id, actor_id or user_id, now)
        return record

    def restore_record(self, user_id: str, record_id: str, now: Optional[datetime] = None) -> RecordT:
        """
        Bring back a soft-deleted record.

        Raises:
            NotFoundError: Record missing or foreign
            NotDeletedError: Record is not deleted
        """
        record = self.require_for_user(user_id, record_id, include_deleted=True)
        if record.deleted_at is None:
            raise NotDeletedError(f"{self.collection} record is not deleted")
        with transaction(self.db):
            record = self.repository.restore_by_id(record_id, now)
        return record


class MedicationDomainService(OwnedRecordService[Medication]):
    """Medication operations including delete, restore and stop cascades."""

    def __init__(self, db: Session, cascade: Optional[CascadeService] = None):
        super().__init__(MedicationRepository(db))
        self.cascade = cascade or CascadeService(db)

    def list_active(self, limit: Optional[int] = None) -> List[Medication]:
        """Live, active medications across all owners (reminder scheduling)."""
        stmt = (
            select(Medication)
            .where(Medication.active.is_(True), Medication.deleted_at.is_(None))
            .order_by(Medication.created_at.asc(), Medication.id.asc())
        )
        if limit:
            stmt = stmt.limit(limit)
        return list(self.db.execute(stmt).scalars().all())

    def soft_delete_medication(
        self,
        user_id: str,
        medication_id: str,
        now: Optional[datetime] = None,
    ) -> MedicationDeleteCascadeResult:
        self.require_for_user(user_id, medication_id)
        return self.cascade.soft_delete_medication_cascade(medication_id, user_id, now or utc_now())

    def restore_medication(
        self,
        user_id: str,
        medication_id: str,
        now: Optional[datetime] = None,
    ) -> MedicationRestoreCascadeResult:
        medication = self.require_for_user(user_id, medication_id, include_deleted=True)
        if medication.deleted_at is None:
            raise NotDeletedError("Medication is not deleted")
        return self.cascade.restore_medication_cascade(
            medication_id,
            user_id,
            to_millis(medication.deleted_at),
            now or utc_now(),
        )

    def stop_medication(
        self,
        user_id: str,
        medication_id: str,
        now: Optional[datetime] = None,
    ) -> MedicationDeleteCascadeResult:
        self.require_for_user(user_id, medication_id)
        return self.cascade.stop_medication_cascade(medication_id, user_id, now or utc_now())


class VisitDomainService(OwnedRecordService):
    """Visit operations; deleting or restoring a visit cascades to its actions."""

    def __init__(self, db: Session, cascade: Optional[CascadeService] = None):
        super().__init__(VisitRepository(db))
        self.cascade = cascade or CascadeService(db)

    def soft_delete_visit(
        self,
        user_id: str,
        visit_id: str,
        now: Optional[datetime] = None,
    ) -> VisitDeleteCascadeResult:
        self.require_for_user(user_id, visit_id)
        return self.cascade.soft_delete_visit_cascade(visit_id, user_id, now or utc_now())

    def restore_visit(
        self,
        user_id: str,
        visit_id: str,
        now: Optional[datetime] = None,
    ) -> VisitRestoreCascadeResult:
        visit = self.require_for_user(user_id, visit_id, include_deleted=True)
        if visit.deleted_at is None:
            raise NotDeletedError("Visit is not deleted")
        return self.cascade.restore_visit_cascade(
            visit_id, user_id, now or utc_now(), to_millis(visit.deleted_at))
