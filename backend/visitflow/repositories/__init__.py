"""
Data access layer.

One repository per collection plus the shared cursor pagination engine.
"""

from .pagination import CursorPage, ListOptions, paginate_by_owner
from .base import OwnedRecordRepository
from .visits import VisitRepository, ActionRepository
from .medications import MedicationRepository, MedicationReminderRepository, NudgeRepository
from .care import CareTaskRepository, HealthLogRepository, InsightRepository

__all__ = [
    "CursorPage",
    "ListOptions",
    "paginate_by_owner",
    "OwnedRecordRepository",
    "VisitRepository",
    "ActionRepository",
    "MedicationRepository",
    "MedicationReminderRepository",
    "NudgeRepository",
    "CareTaskRepository",
    "HealthLogRepository",
    "InsightRepository",
]
