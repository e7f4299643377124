"""
Response schemas for owner-scoped records and cascade results.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..models.visit import ProcessingStatus


class RecordBase(BaseModel):
    id: str
    owner_id: str = Field(..., serialization_alias="userId")
    created_at: datetime = Field(..., serialization_alias="createdAt")
    updated_at: datetime = Field(..., serialization_alias="updatedAt")
    deleted_at: Optional[datetime] = Field(default=None, serialization_alias="deletedAt")

    model_config = {"from_attributes": True}


class ActionResponse(RecordBase):
    visit_id: Optional[str] = Field(default=None, serialization_alias="visitId")
    description: str
    due_at: Optional[datetime] = Field(default=None, serialization_alias="dueAt")
    completed: bool = False


class MedicationResponse(RecordBase):
    name: str
    dose: Optional[str] = None
    frequency: Optional[str] = None
    active: bool = True
    stopped_at: Optional[datetime] = Field(default=None, serialization_alias="stoppedAt")


class VisitResponse(RecordBase):
    processing_status: ProcessingStatus = Field(..., serialization_alias="processingStatus")
    summary: Optional[str] = None
    diagnoses: List[str] = Field(default_factory=list)
    medications: Dict[str, Any] = Field(default_factory=dict)
    imaging: List[str] = Field(default_factory=list)
    next_steps: List[str] = Field(default_factory=list, serialization_alias="nextSteps")
    visit_date: Optional[datetime] = Field(default=None, serialization_alias="visitDate")
    processed_at: Optional[datetime] = Field(default=None, serialization_alias="processedAt")


class CascadeResponse(BaseModel):
    success: bool = True
    id: str
    counts: Dict[str, int] = Field(default_factory=dict)


class RestoreRequest(BaseModel):
    """Optional body of a restore call; the reason lands in the audit log."""
    reason: Optional[str] = Field(default=None, max_length=500)
