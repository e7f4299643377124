"""
Auth handoff endpoints: create-handoff, exchange-handoff.

A signed-in client creates a short-lived single-use code and passes it to
another surface (e.g. from the mobile app to the web portal), which
exchanges it for its own bearer token.
"""

import logging

from fastapi import APIRouter, Depends

from ..core.auth import get_current_user_id
from ..core.database import utc_now, to_millis
from ..core.errors import UnauthorizedError
from ..core.security import create_access_token
from ..schemas.auth import (
    HandoffCreateResponse,
    HandoffExchangeRequest,
    HandoffExchangeResponse,
)
from ..services.auth_handoff import HANDOFF_ERROR_MESSAGES
from ..services.container import ServiceContainer
from .deps import get_services


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/v1/auth", tags=["Authentication"])


@router.post(
    "/create-handoff",
    response_model=HandoffCreateResponse,
    response_model_by_alias=True,
    summary="Create handoff code",
)
def create_handoff(
    user_id: str = Depends(get_current_user_id),
    services: ServiceContainer = Depends(get_services),
) -> HandoffCreateResponse:
    handoff = services.auth_handoffs.issue(user_id)
    return HandoffCreateResponse(code=handoff.code, expires_at=handoff.expires_at)


@router.post(
    "/exchange-handoff",
    response_model=HandoffExchangeResponse,
    summary="Exchange handoff code",
    description="Consumes a handoff code exactly once and returns a bearer token.",
)
def exchange_handoff(
    request: HandoffExchangeRequest,
    services: ServiceContainer = Depends(get_services),
) -> HandoffExchangeResponse:
    """
    Exchange a handoff code for an access token.

    Invalid, already-used and expired codes all answer 401 with a
    message naming the reason.
    """
    now = utc_now()
    result = services.auth_handoffs.exchange(request.code, now, to_millis(now))
    if not result.ok:
        logger.info(f"Handoff exchange rejected: {result.status.value}")
        raise UnauthorizedError(HANDOFF_ERROR_MESSAGES[result.status])

    token = create_access_token({"sub": result.user_id})
    return HandoffExchangeResponse(token=token)
