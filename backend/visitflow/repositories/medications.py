"""
Medication, reminder and nudge repositories.
"""

from typing import List, Optional

from sqlalchemy import select

from ..models.medication import (
    Medication,
    MedicationReminder,
    Nudge,
    OPEN_NUDGE_STATUSES,
)
from .base import OwnedRecordRepository


class MedicationRepository(OwnedRecordRepository[Medication]):
    model = Medication


class MedicationReminderRepository(OwnedRecordRepository[MedicationReminder]):
    model = MedicationReminder

    def list_by_medication(
        self,
        medication_id: str,
        owner_id: str,
        deleted: Optional[bool] = None,
    ) -> List[MedicationReminder]:
        """
        Reminders of one medication.

        Args:
            deleted: None for all, False for live only, True for tombstones only
        """
        stmt = select(MedicationReminder).where(
            MedicationReminder.medication_id == medication_id,
            MedicationReminder.owner_id == owner_id,
        )
        if deleted is True:
            stmt = stmt.where(MedicationReminder.deleted_at.is_not(None))
        elif deleted is False:
            stmt = stmt.where(MedicationReminder.deleted_at.is_(None))
        stmt = stmt.order_by(MedicationReminder.created_at.asc(), MedicationReminder.id.asc())
        return list(self.db.execute(stmt).scalars().all())


class NudgeRepository(OwnedRecordRepository[Nudge]):
    model = Nudge

    def list_open_by_medication(self, medication_id: str, owner_id: str) -> List[Nudge]:
        """Pending, active or snoozed nudges about one medication."""
        stmt = (
            select(Nudge)
            .where(
                Nudge.medication_id == medication_id,
                Nudge.owner_id == owner_id,
                Nudge.status.in_(OPEN_NUDGE_STATUSES),
            )
            .order_by(Nudge.created_at.asc(), Nudge.id.asc())
        )
        return list(self.db.execute(stmt).scalars().all())
