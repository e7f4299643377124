"""
Medication, reminder and nudge models.

Reminders and nudges reference their medication by id. Their deletion
state only changes as a side effect of the medication lifecycle through
the cascade service.
"""

import enum

from sqlalchemy import Boolean, Column, Enum as SQLEnum, JSON, String, Text

from ..core.database import Base, UTCDateTime
from .base import OwnedRecordMixin


class NudgeStatus(str, enum.Enum):
    """Lifecycle of a nudge."""
    PENDING = "pending"
    ACTIVE = "active"
    SNOOZED = "snoozed"
    COMPLETED = "completed"
    DISMISSED = "dismissed"


OPEN_NUDGE_STATUSES = (NudgeStatus.PENDING, NudgeStatus.ACTIVE, NudgeStatus.SNOOZED)


class Medication(OwnedRecordMixin, Base):
    __tablename__ = "medications"

    name = Column(String(255), nullable=False)
    dose = Column(String(128), nullable=True)
    frequency = Column(String(128), nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    started_at = Column(UTCDateTime, nullable=True)
    stopped_at = Column(UTCDateTime, nullable=True)
    source = Column(String(32), nullable=False, default="manual")
    source_visit_id = Column(String(36), nullable=True, index=True)


class MedicationReminder(OwnedRecordMixin, Base):
    __tablename__ = "medication_reminders"

    medication_id = Column(String(36), nullable=False, index=True)
    medication_name = Column(String(255), nullable=True)
    times = Column(JSON, nullable=False, default=list)
    enabled = Column(Boolean, nullable=False, default=True)


class Nudge(OwnedRecordMixin, Base):
    """
    Time-based prompt shown to the patient.

    Attributes:
        medication_id: Medication the nudge is about, if any
        status: Current lifecycle state
        dismissal_reason: Why the nudge was dismissed (user or cascade)
    """

    __tablename__ = "nudges"

    medication_id = Column(String(36), nullable=True, index=True)
    title = Column(String(255), nullable=False, default="")
    message = Column(Text, nullable=True)
    status = Column(
        SQLEnum(
            NudgeStatus,
            name="nudge_status",
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
            length=20,
        ),
        nullable=False,
        default=NudgeStatus.PENDING,
        index=True,
    )
    scheduled_for = Column(UTCDateTime, nullable=True)
    dismissed_at = Column(UTCDateTime, nullable=True)
    dismissal_reason = Column(String(64), nullable=True)
