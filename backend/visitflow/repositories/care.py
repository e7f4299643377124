"""
Care task, health log and insight repositories.
"""

from ..models.care import CareTask, HealthLog, Insight
from .base import OwnedRecordRepository


class CareTaskRepository(OwnedRecordRepository[CareTask]):
    model = CareTask


class HealthLogRepository(OwnedRecordRepository[HealthLog]):
    model = HealthLog


class InsightRepository(OwnedRecordRepository[Insight]):
    model = Insight
