"""
Pydantic validation schemas for VisitFlow.

Contains request/response DTOs with validation rules.
These schemas enforce data integrity at API boundaries.
"""

from .common import (
    HealthResponse,
    CursorPageResponse,
)
from .webhooks import (
    MedicationChanges,
    NextStepItem,
    VisitProcessedPayload,
    TranscriptionWebhookPayload,
)
from .auth import (
    HandoffCreateResponse,
    HandoffExchangeRequest,
    HandoffExchangeResponse,
)
from .records import (
    ActionResponse,
    MedicationResponse,
    VisitResponse,
    CascadeResponse,
    RestoreRequest,
)

__all__ = [
    # Common schemas
    "HealthResponse",
    "CursorPageResponse",
    # Webhook schemas
    "MedicationChanges",
    "NextStepItem",
    "VisitProcessedPayload",
    "TranscriptionWebhookPayload",
    # Auth schemas
    "HandoffCreateResponse",
    "HandoffExchangeRequest",
    "HandoffExchangeResponse",
    # Record schemas
    "ActionResponse",
    "MedicationResponse",
    "VisitResponse",
    "CascadeResponse",
    "RestoreRequest",
]
