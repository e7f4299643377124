"""
Visit and follow-up action models.

A visit moves through the processing pipeline (upload, transcription,
AI summarization). Actions are the follow-up items derived from a
visit's next steps and are replaced wholesale on each processing result.
"""

import enum

from sqlalchemy import Boolean, Column, Enum as SQLEnum, Integer, JSON, String, Text

from ..core.database import Base, UTCDateTime
from .base import OwnedRecordMixin


# =============================================================================
# Enum Definitions
# =============================================================================

class ProcessingStatus(str, enum.Enum):
    """Visit processing pipeline states."""
    PENDING = "pending"
    PROCESSING = "processing"
    TRANSCRIBING = "transcribing"
    SUMMARIZING = "summarizing"
    COMPLETED = "completed"
    FAILED = "failed"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


# =============================================================================
# Visit Model
# =============================================================================

class Visit(OwnedRecordMixin, Base):
    """
    Recorded clinical visit.

    Transcript and summary fields are filled by the processing pipeline;
    ``transcription_id`` links the visit to the vendor job that produced
    its transcript.
    """

    __tablename__ = "visits"

    status = Column(String(32), nullable=True)
    processing_status = Column(
        SQLEnum(
            ProcessingStatus,
            name="processing_status",
            native_enum=False,
            values_callable=_enum_values,
            length=20,
        ),
        nullable=False,
        default=ProcessingStatus.PENDING,
        index=True,
    )

    audio_url = Column(Text, nullable=True)
    transcript = Column(Text, nullable=True)
    transcript_text = Column(Text, nullable=True)
    summary = Column(Text, nullable=True)
    diagnoses = Column(JSON, nullable=False, default=list)
    medications = Column(JSON, nullable=False, default=dict)
    imaging = Column(JSON, nullable=False, default=list)
    next_steps = Column(JSON, nullable=False, default=list)

    transcription_id = Column(String(128), nullable=True, index=True)
    transcription_status = Column(String(32), nullable=True)
    transcription_error = Column(Text, nullable=True)
    transcription_submitted_at = Column(UTCDateTime, nullable=True)
    transcription_completed_at = Column(UTCDateTime, nullable=True)

    processing_error = Column(Text, nullable=True)
    processed_at = Column(UTCDateTime, nullable=True)
    visit_date = Column(UTCDateTime, nullable=True)

    retry_count = Column(Integer, nullable=False, default=0)
    last_retry_at = Column(UTCDateTime, nullable=True)
    webhook_triggered = Column(Boolean, nullable=False, default=False)


# =============================================================================
# Action Model
# =============================================================================

class Action(OwnedRecordMixin, Base):
    """Follow-up item derived from a visit's next steps."""

    __tablename__ = "actions"

    visit_id = Column(String(36), nullable=True, index=True)
    description = Column(Text, nullable=False)
    due_at = Column(UTCDateTime, nullable=True)
    completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(UTCDateTime, nullable=True)
    source = Column(String(32), nullable=False, default="visit")
    notes = Column(Text, nullable=True)
