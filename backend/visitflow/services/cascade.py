"""
Cascading soft delete, restore and dismiss across related records.

Deleting a medication tombstones its reminders and dismisses its open
nudges; restoring it brings back only the reminders that were deleted
together with it. Visits cascade to their actions the same way.

All writes of one cascade are committed as one unit of work. Cascades
larger than ``max_batch_writes`` are committed in sequential chunks.
Deletes commit the owning row first and stamp every dependent with the
owner's tombstone instant, so a re-run after an interrupted delete reuses
that instant and restore still matches every dependent. Restores commit
the owning row last, so an interrupted restore can be run again.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.database import to_millis
from ..core.errors import CascadeOwnershipError, CascadeTargetNotFoundError
from ..core.transactions import chunked, transaction
from ..models.medication import NudgeStatus
from ..repositories.medications import (
    MedicationReminderRepository,
    MedicationRepository,
    NudgeRepository,
)
from ..repositories.visits import ActionRepository, VisitRepository


logger = logging.getLogger(__name__)

MEDICATION_DELETED_REASON = "medication_deleted"
MEDICATION_STOPPED_REASON = "medication_stopped"

Write = Callable[[], None]


# =============================================================================
# Result Types
# =============================================================================

@dataclass
class MedicationDeleteCascadeResult:
    disabled_reminders: int = 0
    dismissed_nudges: int = 0


@dataclass
class MedicationRestoreCascadeResult:
    restored_reminders: int = 0


@dataclass
class VisitDeleteCascadeResult:
    soft_deleted_actions: int = 0


@dataclass
class VisitRestoreCascadeResult:
    restored_actions: int = 0


def within_window(
    dependent_deleted_at: Optional[datetime],
    owner_deleted_at_ms: Optional[int],
    window_ms: int,
) -> bool:
    """
    Whether a dependent's tombstone belongs to the owner's deletion.

    An unknown owner deletion instant matches every tombstoned dependent.
    """
    if dependent_deleted_at is None:
        return False
    if owner_deleted_at_ms is None:
        return True
    return abs(to_millis(dependent_deleted_at) - owner_deleted_at_ms) <= window_ms


# =============================================================================
# Cascade Service
# =============================================================================

class CascadeService:
    """
    Multi-record lifecycle operations.

    Example usage:
        cascade = CascadeService(db)
        result = cascade.soft_delete_medication_cascade(med_id, user_id, now)
    """

    def __init__(
        self,
        db: Session,
        max_batch_writes: Optional[int] = None,
        match_window_ms: Optional[int] = None,
    ):
        self.db = db
        self.max_batch_writes = max_batch_writes or settings.cascade_max_batch_writes
        self.match_window_ms = (
            match_window_ms if match_window_ms is not None else settings.cascade_match_window_ms
        )
        self.medications = MedicationRepository(db)
        self.reminders = MedicationReminderRepository(db)
        self.nudges = NudgeRepository(db)
        self.visits = VisitRepository(db)
        self.actions = ActionRepository(db)

    # =========================================================================
    # Commit Strategy
    # =========================================================================

    def _commit_writes(
        self,
        dependent_writes: List[Write],
        owner_write: Optional[Write],
        owner_first: bool = False,
    ) -> None:
        """
        Apply and commit a cascade's writes.

        Args:
            dependent_writes: Writes to reminders, nudges or actions
            owner_write: Write to the owning row
            owner_first: Apply the owner write before the dependents
                instead of after them
        """
        writes = list(dependent_writes)
        if owner_write is not None:
            if owner_first:
                writes.insert(0, owner_write)
            else:
                writes.append(owner_write)
        if not writes:
            return

        if len(writes) <= self.max_batch_writes:
            with transaction(self.db):
                for write in writes:
                    write()
            return

        chunks = list(chunked(writes, self.max_batch_writes))
        logger.info(f"Cascade of {len(writes)} writes split into {len(chunks)} chunks")
        for chunk in chunks:
            with transaction(self.db):
                for write in chunk:
                    write()

    def _load_owned(self, repo, record_id: str, owner_id: str):
        record = repo.get_by_id(record_id)
        if record is None:
            raise CascadeTargetNotFoundError(f"{repo.collection} record not found")
        if record.owner_id != owner_id:
            logger.warning(f"Cascade on {repo.collection}/{record_id} rejected: owner mismatch")
            raise CascadeOwnershipError(f"{repo.collection} record not found")
        return record

    # =========================================================================
    # Medications
    # =========================================================================

    def soft_delete_medication_cascade(
        self,
        medication_id: str,
        owner_id: str,
        now: datetime,
        actor_id: Optional[str] = None,
    ) -> MedicationDeleteCascadeResult:
        """
        Tombstone a medication with its reminders and dismiss its open nudges.

        Running it again on an already-deleted medication changes nothing
        and reports zero counts.

        Args:
            medication_id: Medication to delete
            owner_id: Owner of the medication
            now: Deletion instant shared by every write
            actor_id: User performing the delete (defaults to the owner)

        Returns:
            Counts of reminders disabled and nudges dismissed

        Raises:
            CascadeTargetNotFoundError: No medication with that id
            CascadeOwnershipError: Medication belongs to another owner
        """
        actor_id = actor_id or owner_id
        medication = self._load_owned(self.medications, medication_id, owner_id)
        reminders = self.reminders.list_by_medication(medication_id, owner_id, deleted=False)
        nudges = self.nudges.list_open_by_medication(medication_id, owner_id)
        # a resumed cascade keeps the instant of the first run
        stamp = medication.deleted_at or now

        dependent_writes: List[Write] = []
        for reminder in reminders:
            def disable(reminder=reminder):
                reminder.enabled = False
                reminder.mark_deleted(actor_id, stamp)
            dependent_writes.append(disable)
        for nudge in nudges:
            dependent_writes.append(self._dismiss_nudge_write(nudge, MEDICATION_DELETED_REASON, stamp))

        owner_write: Optional[Write] = None
        if medication.deleted_at is None:
            def tombstone():
                medication.active = False
                medication.mark_deleted(actor_id, stamp)
            owner_write = tombstone

        self._commit_writes(dependent_writes, owner_write, owner_first=True)

        result = MedicationDeleteCascadeResult(
            disabled_reminders=len(reminders),
            dismissed_nudges=len(nudges),
        )
        logger.info(
            f"Medication {medication_id} deleted: {result.disabled_reminders} reminders, "
            f"{result.dismissed_nudges} nudges"
        )
        return result

    def restore_medication_cascade(
        self,
        medication_id: str,
        owner_id: str,
        medication_deleted_at_ms: Optional[int],
        now: datetime,
    ) -> MedicationRestoreCascadeResult:
        """
        Restore a medication and the reminders deleted with it.

        Reminders deleted independently (outside the match window around
        ``medication_deleted_at_ms``) stay deleted.
        """
        medication = self._load_owned(self.medications, medication_id, owner_id)
        tombstoned = self.reminders.list_by_medication(medication_id, owner_id, deleted=True)
        matching = [
            reminder for reminder in tombstoned
            if within_window(reminder.deleted_at, medication_deleted_at_ms, self.match_window_ms)
        ]

        dependent_writes: List[Write] = []
        for reminder in matching:
            def enable(reminder=reminder):
                reminder.enabled = True
                reminder.mark_restored(now)
            dependent_writes.append(enable)

        owner_write: Optional[Write] = None
        if medication.deleted_at is not None:
            def restore():
                medication.active = True
                medication.mark_restored(now)
            owner_write = restore

        self._commit_writes(dependent_writes, owner_write)
        logger.info(f"Medication {medication_id} restored with {len(matching)} reminders")
        return MedicationRestoreCascadeResult(restored_reminders=len(matching))

    def stop_medication_cascade(
        self,
        medication_id: str,
        owner_id: str,
        now: datetime,
        actor_id: Optional[str] = None,
    ) -> MedicationDeleteCascadeResult:
        """
        Mark a medication stopped, tombstone its reminders and dismiss its nudges.

        The medication itself stays live (visible in history) but inactive.
        """
        actor_id = actor_id or owner_id
        medication = self._load_owned(self.medications, medication_id, owner_id)
        reminders = self.reminders.list_by_medication(medication_id, owner_id, deleted=False)
        nudges = self.nudges.list_open_by_medication(medication_id, owner_id)
        stopped = not medication.active and medication.stopped_at is not None
        stamp = medication.stopped_at if stopped else now

        dependent_writes: List[Write] = []
        for reminder in reminders:
            def disable(reminder=reminder):
                reminder.enabled = False
                reminder.mark_deleted(actor_id, stamp)
            dependent_writes.append(disable)
        for nudge in nudges:
            dependent_writes.append(self._dismiss_nudge_write(nudge, MEDICATION_STOPPED_REASON, stamp))

        owner_write: Optional[Write] = None
        if not stopped:
            def stop():
                medication.active = False
                medication.stopped_at = stamp
                medication.updated_at = stamp
            owner_write = stop

        self._commit_writes(dependent_writes, owner_write, owner_first=True)
        return MedicationDeleteCascadeResult(
            disabled_reminders=len(reminders),
            dismissed_nudges=len(nudges),
        )

    @staticmethod
    def _dismiss_nudge_write(nudge, reason: str, now: datetime) -> Write:
        def dismiss():
            nudge.status = NudgeStatus.DISMISSED
            nudge.dismissed_at = now
            nudge.dismissal_reason = reason
            nudge.updated_at = now
        return dismiss

    # =========================================================================
    # Visits
    # =========================================================================

    def soft_delete_visit_cascade(
        self,
        visit_id: str,
        owner_id: str,
        now: datetime,
        actor_id: Optional[str] = None,
    ) -> VisitDeleteCascadeResult:
        """Tombstone a visit and its live actions."""
        actor_id = actor_id or owner_id
        visit = self._load_owned(self.visits, visit_id, owner_id)
        actions = [a for a in self.actions.list_by_visit(visit_id) if a.owner_id == owner_id]
        stamp = visit.deleted_at or now

        dependent_writes: List[Write] = []
        for action in actions:
            def tombstone_action(action=action):
                action.mark_deleted(actor_id, stamp)
            dependent_writes.append(tombstone_action)

        owner_write: Optional[Write] = None
        if visit.deleted_at is None:
            def tombstone_visit():
                visit.mark_deleted(actor_id, stamp)
            owner_write = tombstone_visit

        self._commit_writes(dependent_writes, owner_write, owner_first=True)
        logger.info(f"Visit {visit_id} deleted with {len(actions)} actions")
        return VisitDeleteCascadeResult(soft_deleted_actions=len(actions))

    def restore_visit_cascade(
        self,
        visit_id: str,
        owner_id: str,
        now: datetime,
        visit_deleted_at_ms: Optional[int] = None,
    ) -> VisitRestoreCascadeResult:
        """Restore a visit and the actions deleted together with it."""
        visit = self._load_owned(self.visits, visit_id, owner_id)
        if visit_deleted_at_ms is None:
            visit_deleted_at_ms = to_millis(visit.deleted_at)

        tombstoned = [
            a for a in self.actions.list_by_visit(visit_id, include_deleted=True)
            if a.owner_id == owner_id and a.deleted_at is not None
        ]
        matching = [
            a for a in tombstoned
            if within_window(a.deleted_at, visit_deleted_at_ms, self.match_window_ms)
        ]

        dependent_writes: List[Write] = []
        for action in matching:
            def restore_action(action=action):
                action.mark_restored(now)
            dependent_writes.append(restore_action)

        owner_write: Optional[Write] = None
        if visit.deleted_at is not None:
            def restore_visit():
                visit.mark_restored(now)
            owner_write = restore_visit

        self._commit_writes(dependent_writes, owner_write)
        return VisitRestoreCascadeResult(restored_actions=len(matching))
