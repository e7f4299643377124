"""
Webhook payload schemas.

Processors post camelCase JSON; fields are exposed in snake_case.
"""

from datetime import datetime
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

from ..models.visit import ProcessingStatus
from ..services.visit_processing import NextStep, ProcessedVisitUpdate


# =============================================================================
# Visit Processed
# =============================================================================

class MedicationChanges(BaseModel):
    started: List[str] = Field(default_factory=list)
    stopped: List[str] = Field(default_factory=list)
    changed: List[str] = Field(default_factory=list)


class NextStepItem(BaseModel):
    """Structured next step; plain strings are accepted as well."""

    description: str = Field(..., min_length=1)
    timeframe: Optional[str] = None
    due_at: Optional[Union[datetime, str]] = Field(default=None, alias="dueAt")

    model_config = {"populate_by_name": True}


class VisitProcessedPayload(BaseModel):
    """
    Summarization result for one visit.

    Example:
        {"visitId": "...", "summary": "...", "nextSteps": ["Labs — in 2 weeks"],
         "processingStatus": "completed"}
    """

    visit_id: str = Field(..., alias="visitId", min_length=1)
    transcript: Optional[str] = None
    summary: Optional[str] = None
    diagnoses: List[str] = Field(default_factory=list)
    medications: MedicationChanges = Field(default_factory=MedicationChanges)
    imaging: List[str] = Field(default_factory=list)
    next_steps: List[Union[str, NextStepItem]] = Field(default_factory=list, alias="nextSteps")
    processing_status: ProcessingStatus = Field(
        default=ProcessingStatus.COMPLETED,
        alias="processingStatus",
    )

    model_config = {"populate_by_name": True}

    @field_validator("next_steps")
    @classmethod
    def drop_blank_steps(cls, v):
        return [step for step in v if not (isinstance(step, str) and not step.strip())]

    def to_update(self) -> ProcessedVisitUpdate:
        steps = []
        for step in self.next_steps:
            if isinstance(step, str):
                steps.append(NextStep(description=step.strip()))
            else:
                steps.append(NextStep(
                    description=step.description,
                    timeframe=step.timeframe,
                    due_at=step.due_at,
                ))
        return ProcessedVisitUpdate(
            visit_id=self.visit_id,
            processing_status=self.processing_status,
            transcript=self.transcript,
            summary=self.summary,
            diagnoses=self.diagnoses,
            medications=self.medications.model_dump(),
            imaging=self.imaging,
            next_steps=steps,
        )


# =============================================================================
# Transcription Complete
# =============================================================================

class TranscriptionWebhookPayload(BaseModel):
    transcript_id: str = Field(..., min_length=1)
    status: Literal["completed", "error"]
    text: Optional[str] = None
    error: Optional[str] = None
