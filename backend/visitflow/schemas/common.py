"""
Common Pydantic schemas shared across the application.

Contains health check and cursor pagination schemas.
"""

from datetime import datetime
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field


T = TypeVar("T")


# =============================================================================
# Health Check Schemas
# =============================================================================

class HealthResponse(BaseModel):
    """
    Health check response schema.

    Used by monitoring systems to verify service health.
    """

    status: str = Field(
        ...,
        description="Overall health status (healthy, unhealthy)"
    )
    version: str = Field(..., description="Application version")
    timestamp: datetime = Field(..., description="Current server timestamp")
    database: str = Field(..., description="Database connection status")
    environment: str = Field(..., description="Runtime environment")


# =============================================================================
# Cursor Pagination Schemas
# =============================================================================

class CursorPageResponse(BaseModel, Generic[T]):
    """
    Cursor-paginated list wrapper.

    Pass ``next_cursor`` back as ``cursor`` to read the following page.
    """

    items: List[T] = Field(..., description="Items of the current page")
    has_more: bool = Field(..., alias="hasMore", description="More items exist after this page")
    next_cursor: Optional[str] = Field(
        default=None,
        alias="nextCursor",
        description="Cursor for the next page (null on the last page)"
    )

    model_config = {
        "populate_by_name": True,
    }
