"""
Owner-scoped record endpoints.

Endpoints:
- GET /v1/actions, /v1/meds, /v1/visits: cursor-paginated listings
- DELETE /v1/meds/{id}, POST /v1/meds/{id}/restore, POST /v1/meds/{id}/stop
- DELETE /v1/visits/{id}, POST /v1/visits/{id}/restore

Restore calls take an optional JSON body `{"reason": "..."}`.

Deletes and restores cascade to dependent records and leave an audit
entry. Audit writes never fail the request.
"""

import logging
from typing import Any, Callable, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query

from ..core.auth import get_current_user_id
from ..core.transactions import safe_rollback
from ..repositories.pagination import ListOptions
from ..schemas.common import CursorPageResponse
from ..schemas.records import (
    ActionResponse,
    CascadeResponse,
    MedicationResponse,
    RestoreRequest,
    VisitResponse,
)
from ..services.container import ServiceContainer
from .deps import get_services


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/v1", tags=["Records"])


# =============================================================================
# Helpers
# =============================================================================

def list_options(
    limit: Optional[int] = Query(default=None, description="Page size (default 50, max 100)"),
    cursor: Optional[str] = Query(default=None, description="nextCursor of the previous page"),
    sort_direction: str = Query(default="desc", alias="sortDirection", pattern="^(asc|desc)$"),
    include_deleted: bool = Query(default=False, alias="includeDeleted"),
) -> ListOptions:
    return ListOptions(
        limit=limit,
        cursor=cursor,
        sort_direction=sort_direction,
        include_deleted=include_deleted,
    )


def _page_body(page, schema) -> Dict[str, Any]:
    response = CursorPageResponse[schema](
        items=[schema.model_validate(item) for item in page.items],
        has_more=page.has_more,
        next_cursor=page.next_cursor,
    )
    return response.model_dump(mode="json", by_alias=True)


def _audit(services: ServiceContainer, log: Callable[..., Any], **kwargs) -> None:
    """Write an audit entry; failures are logged and dropped."""
    try:
        log(**kwargs)
    except Exception:
        safe_rollback(services.db)
        logger.exception(
            f"Audit write failed for {kwargs.get('resource_type')} {kwargs.get('resource_id')}"
        )


# =============================================================================
# Listings
# =============================================================================

@router.get("/actions", summary="List actions")
def list_actions(
    options: ListOptions = Depends(list_options),
    user_id: str = Depends(get_current_user_id),
    services: ServiceContainer = Depends(get_services),
):
    page = services.actions.list_for_user(user_id, options)
    return _page_body(page, ActionResponse)


@router.get("/meds", summary="List medications")
def list_medications(
    options: ListOptions = Depends(list_options),
    user_id: str = Depends(get_current_user_id),
    services: ServiceContainer = Depends(get_services),
):
    page = services.medications.list_for_user(user_id, options)
    return _page_body(page, MedicationResponse)


@router.get("/visits", summary="List visits")
def list_visits(
    options: ListOptions = Depends(list_options),
    user_id: str = Depends(get_current_user_id),
    services: ServiceContainer = Depends(get_services),
):
    page = services.visits.list_for_user(user_id, options)
    return _page_body(page, VisitResponse)


# =============================================================================
# Medications
# =============================================================================

@router.delete("/meds/{medication_id}", response_model=CascadeResponse, summary="Delete medication")
def delete_medication(
    medication_id: str,
    user_id: str = Depends(get_current_user_id),
    services: ServiceContainer = Depends(get_services),
) -> CascadeResponse:
    result = services.medications.soft_delete_medication(user_id, medication_id)
    counts = {
        "disabledReminders": result.disabled_reminders,
        "dismissedNudges": result.dismissed_nudges,
    }
    _audit(
        services,
        services.audit.log_delete,
        resource_type="medications",
        resource_id=medication_id,
        owner_id=user_id,
        actor_id=user_id,
        details=counts,
    )
    return CascadeResponse(id=medication_id, counts=counts)


@router.post("/meds/{medication_id}/restore", response_model=CascadeResponse, summary="Restore medication")
def restore_medication(
    medication_id: str,
    body: Optional[RestoreRequest] = Body(default=None),
    user_id: str = Depends(get_current_user_id),
    services: ServiceContainer = Depends(get_services),
) -> CascadeResponse:
    result = services.medications.restore_medication(user_id, medication_id)
    counts = {"restoredReminders": result.restored_reminders}
    _audit(
        services,
        services.audit.log_restore,
        resource_type="medications",
        resource_id=medication_id,
        owner_id=user_id,
        actor_id=user_id,
        reason=body.reason if body else None,
        details=counts,
    )
    return CascadeResponse(id=medication_id, counts=counts)


@router.post("/meds/{medication_id}/stop", response_model=CascadeResponse, summary="Stop medication")
def stop_medication(
    medication_id: str,
    user_id: str = Depends(get_current_user_id),
    services: ServiceContainer = Depends(get_services),
) -> CascadeResponse:
    result = services.medications.stop_medication(user_id, medication_id)
    counts = {
        "disabledReminders": result.disabled_reminders,
        "dismissedNudges": result.dismissed_nudges,
    }
    _audit(
        services,
        services.audit.log_stop,
        resource_type="medications",
        resource_id=medication_id,
        owner_id=user_id,
        actor_id=user_id,
        details=counts,
    )
    return CascadeResponse(id=medication_id, counts=counts)


# =============================================================================
# Visits
# =============================================================================

@router.delete("/visits/{visit_id}", response_model=CascadeResponse, summary="Delete visit")
def delete_visit(
    visit_id: str,
    user_id: str = Depends(get_current_user_id),
    services: ServiceContainer = Depends(get_services),
) -> CascadeResponse:
    result = services.visits.soft_delete_visit(user_id, visit_id)
    counts = {"deletedActions": result.soft_deleted_actions}
    _audit(
        services,
        services.audit.log_delete,
        resource_type="visits",
        resource_id=visit_id,
        owner_id=user_id,
        actor_id=user_id,
        details=counts,
    )
    return CascadeResponse(id=visit_id, counts=counts)


@router.post("/visits/{visit_id}/restore", response_model=CascadeResponse, summary="Restore visit")
def restore_visit(
    visit_id: str,
    body: Optional[RestoreRequest] = Body(default=None),
    user_id: str = Depends(get_current_user_id),
    services: ServiceContainer = Depends(get_services),
) -> CascadeResponse:
    result = services.visits.restore_visit(user_id, visit_id)
    counts = {"restoredActions": result.restored_actions}
    _audit(
        services,
        services.audit.log_restore,
        resource_type="visits",
        resource_id=visit_id,
        owner_id=user_id,
        actor_id=user_id,
        reason=body.reason if body else None,
        details=counts,
    )
    return CascadeResponse(id=visit_id, counts=counts)
