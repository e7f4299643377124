"""
Visit and action repositories.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, func, select, update

from ..models.visit import Action, ProcessingStatus, Visit
from .base import OwnedRecordRepository


class VisitRepository(OwnedRecordRepository[Visit]):
    model = Visit

    def find_by_transcription_id(
        self,
        transcription_id: str,
        status: ProcessingStatus = ProcessingStatus.TRANSCRIBING,
    ) -> Optional[Visit]:
        """First live visit bound to ``transcription_id`` in ``status``."""
        stmt = (
            select(Visit)
            .where(
                Visit.transcription_id == transcription_id,
                Visit.processing_status == status,
                Visit.deleted_at.is_(None),
            )
            .order_by(Visit.created_at.asc())
            .limit(1)
        )
        return self.db.execute(stmt).scalars().first()

    def guarded_update(
        self,
        visit_id: str,
        expected_status: ProcessingStatus,
        values: dict,
        transcription_id: Optional[str] = None,
    ) -> bool:
        """
        Conditionally update a visit still in ``expected_status``.

        Concurrent deliveries of the same event race on this statement;
        only the first one sees a matching row.

        Returns:
            True if this call performed the transition
        """
        criteria = [Visit.id == visit_id, Visit.processing_status == expected_status]
        if transcription_id is not None:
            criteria.append(Visit.transcription_id == transcription_id)
        result = self.db.execute(
            update(Visit)
            .where(*criteria)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return (result.rowcount or 0) == 1

    def list_by_status(
        self,
        status: ProcessingStatus,
        limit: int,
        submitted_before: Optional[datetime] = None,
    ) -> List[Visit]:
        """Live visits in ``status``, oldest submission first."""
        stmt = select(Visit).where(
            Visit.processing_status == status,
            Visit.deleted_at.is_(None),
        )
        if submitted_before is not None:
            stmt = stmt.where(Visit.transcription_submitted_at <= submitted_before)
        stmt = stmt.order_by(Visit.transcription_submitted_at.asc(), Visit.id.asc()).limit(limit)
        return list(self.db.execute(stmt).scalars().all())


class ActionRepository(OwnedRecordRepository[Action]):
    model = Action

    def list_by_visit(self, visit_id: str, include_deleted: bool = False) -> List[Action]:
        stmt = select(Action).where(Action.visit_id == visit_id)
        if not include_deleted:
            stmt = stmt.where(Action.deleted_at.is_(None))
        stmt = stmt.order_by(Action.created_at.asc(), Action.id.asc())
        return list(self.db.execute(stmt).scalars().all())

    def delete_by_visit(self, visit_id: str) -> int:
        """Permanently remove every action of a visit, tombstoned ones included."""
        result = self.db.execute(
            delete(Action)
            .where(Action.visit_id == visit_id)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0

    def count_pending(self, owner_id: str) -> int:
        stmt = select(func.count(Action.id)).where(
            Action.owner_id == owner_id,
            Action.completed.is_(False),
            Action.deleted_at.is_(None),
        )
        return int(self.db.execute(stmt).scalar_one())
