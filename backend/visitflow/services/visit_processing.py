"""
Visit processing state machine.

Visits move ``pending -> processing -> transcribing -> summarizing ->
completed | failed`` as external processors report back. Webhooks are
delivered at least once, so every transition here is safe to replay:

- a summarization result replaces the visit's actions wholesale in one
  transaction, so a redelivery produces the same action set;
- a transcription result only applies to a visit that is still
  ``transcribing`` with a matching transcription id, enforced by a
  conditional update, so duplicates and races with the backup poller
  become "already processed" no-ops.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.database import utc_now
from ..core.errors import VisitNotFoundError
from ..core.transactions import transaction
from ..models.visit import Action, ProcessingStatus, Visit
from ..repositories.visits import ActionRepository, VisitRepository
from .due_dates import DateParser, parse_natural_date, resolve_action_due_date, resolve_visit_reference_date
from .transcription import TranscriptionServiceError
from .visit_transitions import (
    TRANSCRIPTION_COMPLETED,
    TRANSCRIPTION_ERROR,
    build_webhook_visit_update,
    resolve_transcribing_recovery_mode,
)


logger = logging.getLogger(__name__)

ALREADY_PROCESSED_MESSAGE = "Already processed or not found"
MAX_RETRIES_MESSAGE = "Maximum retries exceeded"


def timeout_message(minutes: int) -> str:
    return f"Transcription timed out after {minutes} minutes"


# =============================================================================
# Inputs & Results
# =============================================================================

@dataclass
class NextStep:
    description: str
    timeframe: Optional[str] = None
    due_at: Any = None


@dataclass
class ProcessedVisitUpdate:
    """Fields reported by the summarization processor for one visit."""

    visit_id: str
    processing_status: ProcessingStatus
    transcript: Optional[str] = None
    summary: Optional[str] = None
    diagnoses: Optional[List[str]] = None
    medications: Optional[dict] = None
    imaging: Optional[List[str]] = None
    next_steps: Optional[List[NextStep]] = None


@dataclass
class ProcessedVisitResult:
    visit_id: str
    actions_created: int
    notified: bool = False


@dataclass
class TranscriptionOutcome:
    applied: bool
    message: Optional[str] = None
    visit_id: Optional[str] = None


@dataclass
class PollSummary:
    checked: int = 0
    advanced: int = 0
    failed: int = 0
    timed_out: int = 0
    skipped: int = 0
    errors: int = 0


# =============================================================================
# Service
# =============================================================================

class VisitProcessingService:
    """
    Applies processor results to visits.

    Args:
        db: Database session
        transcription_client: Object with get_transcript/format_transcript
        notifier: Object with notify_visit_ready(user_id, visit_id, pending_actions)
        date_parser: Natural-language date parser used for action due dates
    """

    def __init__(
        self,
        db: Session,
        transcription_client: Any = None,
        notifier: Any = None,
        date_parser: DateParser = parse_natural_date,
    ):
        self.db = db
        self.transcription_client = transcription_client
        self.notifier = notifier
        self.date_parser = date_parser
        self.visits = VisitRepository(db)
        self.actions = ActionRepository(db)

    # =========================================================================
    # Summarization Result
    # =========================================================================

    def apply_processed_result(
        self,
        update: ProcessedVisitUpdate,
        now: Optional[datetime] = None,
    ) -> ProcessedVisitResult:
        """
        Store a summarization result and regenerate the visit's actions.

        Visit fields, deletion of the previous actions and insertion of
        the new ones commit together. The "visit ready" notification runs
        afterwards and cannot fail the call.

        Raises:
            VisitNotFoundError: No visit with ``update.visit_id``
        """
        now = now or utc_now()
        visit = self.visits.get_by_id(update.visit_id)
        if visit is None or visit.deleted_at is not None:
            raise VisitNotFoundError(update.visit_id)

        reference = resolve_visit_reference_date(visit, now)
        next_steps = update.next_steps or []

        with transaction(self.db):
            visit.transcript = update.transcript
            visit.summary = update.summary
            visit.diagnoses = list(update.diagnoses or [])
            visit.medications = dict(update.medications or {"started": [], "stopped": [], "changed": []})
            visit.imaging = list(update.imaging or [])
            visit.next_steps = [step.description for step in next_steps]
            visit.processing_status = update.processing_status
            visit.processing_error = None
            visit.processed_at = now
            visit.updated_at = now
            if update.processing_status == ProcessingStatus.COMPLETED:
                visit.status = "completed"

            replaced = self.actions.delete_by_visit(visit.id)
            for index, step in enumerate(next_steps):
                due_at = resolve_action_due_date(
                    step.description,
                    timeframe=step.timeframe,
                    due_at=step.due_at,
                    reference_date=reference,
                    parser=self.date_parser,
                )
                # microsecond offsets keep listing order equal to next-step order
                created_at = now + timedelta(microseconds=index)
                self.db.add(Action(
                    owner_id=visit.owner_id,
                    visit_id=visit.id,
                    description=step.description,
                    due_at=due_at,
                    completed=False,
                    source="visit",
                    created_at=created_at,
                    updated_at=created_at,
                ))

        logger.info(
            f"Visit {visit.id} processed: status={update.processing_status.value}, "
            f"{len(next_steps)} actions (replaced {replaced})"
        )

        notified = self._notify_visit_ready(visit)
        return ProcessedVisitResult(visit_id=visit.id, actions_created=len(next_steps), notified=notified)

    def _notify_visit_ready(self, visit: Visit) -> bool:
        if self.notifier is None:
            return False
        try:
            pending = self.actions.count_pending(visit.owner_id)
            self.notifier.notify_visit_ready(visit.owner_id, visit.id, pending)
            return True
        except Exception:
            logger.exception(f"Visit-ready notification failed for visit {visit.id}")
            return False

    # =========================================================================
    # Transcription Result
    # =========================================================================

    def apply_transcription_result(
        self,
        transcript_id: str,
        status: str,
        text: Optional[str] = None,
        error: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> TranscriptionOutcome:
        """
        Advance the visit bound to ``transcript_id`` out of ``transcribing``.

        Returns:
            TranscriptionOutcome; ``applied`` is False when no visit is
            waiting on this transcript (duplicate or already handled)
        """
        now = now or utc_now()
        visit = self.visits.find_by_transcription_id(transcript_id)
        if visit is None:
            logger.info(f"No transcribing visit for transcript {transcript_id}")
            return TranscriptionOutcome(applied=False, message=ALREADY_PROCESSED_MESSAGE)

        if status == TRANSCRIPTION_COMPLETED:
            transcript = self.transcription_client.get_transcript(transcript_id)
            formatted = self.transcription_client.format_transcript(
                transcript.utterances, transcript.text)
            values = build_webhook_visit_update(
                TRANSCRIPTION_COMPLETED,
                now,
                formatted_transcript=formatted,
                transcript_text=transcript.text or text or "",
            )
        else:
            values = build_webhook_visit_update(TRANSCRIPTION_ERROR, now, error=error)

        applied = self._transition(visit, values, transcript_id)
        if not applied:
            return TranscriptionOutcome(applied=False, message=ALREADY_PROCESSED_MESSAGE)

        if status == TRANSCRIPTION_COMPLETED:
            logger.info(f"Visit {visit.id} moved to summarizing")
        else:
            logger.error(f"Visit {visit.id} transcription failed: {error}")
        return TranscriptionOutcome(applied=True, visit_id=visit.id)

    def _transition(self, visit: Visit, values: dict, transcript_id: Optional[str]) -> bool:
        with transaction(self.db):
            applied = self.visits.guarded_update(
                visit.id,
                ProcessingStatus.TRANSCRIBING,
                values,
                transcription_id=transcript_id,
            )
        self.db.refresh(visit)
        return applied

    # =========================================================================
    # Backup Polling
    # =========================================================================

    def poll_pending_transcriptions(
        self,
        now: Optional[datetime] = None,
        limit: Optional[int] = None,
        timeout_minutes: Optional[int] = None,
    ) -> PollSummary:
        """
        Check transcribing visits against the vendor.

        Backs up the transcription webhook: completed transcripts move to
        summarizing, vendor errors and stale jobs move to failed. Uses the
        same guarded transition as the webhook, so whichever runs second
        is a no-op.
        """
        now = now or utc_now()
        limit = limit or settings.transcription_poll_limit
        timeout_minutes = timeout_minutes or settings.transcription_timeout_minutes
        summary = PollSummary()

        for visit in self.visits.list_by_status(ProcessingStatus.TRANSCRIBING, limit):
            summary.checked += 1

            if not visit.transcription_id:
                mode = resolve_transcribing_recovery_mode(visit.retry_count, False)
                if mode == "fail_max_retries":
                    self._fail(visit, MAX_RETRIES_MESSAGE, now, summary)
                else:
                    logger.warning(f"Visit {visit.id} is transcribing without a transcription id")
                    summary.skipped += 1
                continue

            try:
                transcript = self.transcription_client.get_transcript(visit.transcription_id)
            except TranscriptionServiceError as e:
                logger.warning(f"Polling transcript for visit {visit.id} failed: {e}")
                summary.errors += 1
                continue

            mode = resolve_transcribing_recovery_mode(visit.retry_count, True, transcript.status)

            if mode == "fail_max_retries":
                self._fail(visit, MAX_RETRIES_MESSAGE, now, summary)
            elif mode == "resume_summarizing":
                formatted = self.transcription_client.format_transcript(
                    transcript.utterances, transcript.text)
                values = build_webhook_visit_update(
                    TRANSCRIPTION_COMPLETED, now,
                    formatted_transcript=formatted, transcript_text=transcript.text,
                )
                values["webhook_triggered"] = False
                if self._transition(visit, values, visit.transcription_id):
                    summary.advanced += 1
                else:
                    summary.skipped += 1
            elif mode == "mark_failed":
                self._fail(visit, transcript.error or "Transcription failed", now, summary)
            else:
                submitted_at = visit.transcription_submitted_at or visit.updated_at
                if submitted_at is not None and now - submitted_at > timedelta(minutes=timeout_minutes):
                    if self._fail(visit, timeout_message(timeout_minutes), now, summary):
                        summary.timed_out += 1
                    logger.warning(f"Visit {visit.id} transcription timed out")
                else:
                    if visit.transcription_status != transcript.status:
                        self._transition(
                            visit,
                            {"transcription_status": transcript.status, "updated_at": now},
                            visit.transcription_id,
                        )
                    summary.skipped += 1

        if summary.checked:
            logger.info(
                f"Transcription poll: checked={summary.checked} advanced={summary.advanced} "
                f"failed={summary.failed} timed_out={summary.timed_out}"
            )
        return summary

    def _fail(self, visit: Visit, message: str, now: datetime, summary: PollSummary) -> bool:
        values = build_webhook_visit_update(TRANSCRIPTION_ERROR, now, error=message)
        values["webhook_triggered"] = False
        applied = self._transition(visit, values, visit.transcription_id)
        if applied:
            summary.failed += 1
        else:
            summary.skipped += 1
        return applied
