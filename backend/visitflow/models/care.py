"""
Caregiver tasks, health logs and insights.

Plain owner-scoped records; they share pagination, soft-delete and
retention behavior with the rest of the data model.
"""

from sqlalchemy import Column, JSON, String, Text

from ..core.database import Base, UTCDateTime
from .base import OwnedRecordMixin


class CareTask(OwnedRecordMixin, Base):
    __tablename__ = "care_tasks"

    patient_id = Column(String(128), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    status = Column(String(32), nullable=False, default="pending")
    due_at = Column(UTCDateTime, nullable=True)


class HealthLog(OwnedRecordMixin, Base):
    __tablename__ = "health_logs"

    type = Column(String(64), nullable=False, index=True)
    value = Column(JSON, nullable=False, default=dict)
    source = Column(String(32), nullable=False, default="manual")
    source_id = Column(String(128), nullable=True, index=True)
    recorded_at = Column(UTCDateTime, nullable=True)


class Insight(OwnedRecordMixin, Base):
    __tablename__ = "insights"

    text = Column(Text, nullable=False)
    category = Column(String(64), nullable=True)
    pattern = Column(String(128), nullable=True)
