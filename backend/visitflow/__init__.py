"""
VisitFlow backend.

Persistence and workflow layer for patient health records: visits,
actions, medications and the processing pipeline that fills them.
"""

__version__ = "1.0.0"
