"""
Auth handoff request/response schemas.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class HandoffCreateResponse(BaseModel):
    code: str = Field(..., description="Single-use handoff code")
    expires_at: datetime = Field(..., alias="expiresAt")

    model_config = {"populate_by_name": True}


class HandoffExchangeRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=128)


class HandoffExchangeResponse(BaseModel):
    token: str = Field(..., description="Bearer token for the handed-off session")
