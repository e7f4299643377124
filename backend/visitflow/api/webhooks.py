"""
Processor webhooks.

Endpoints:
- POST /v1/webhooks/visit-processed: summarization results for a visit
- POST /v1/webhooks/transcription-complete: AssemblyAI transcript callbacks
  (also served at /v1/webhooks/assemblyai/transcription-complete)

Secrets are injected when the router is built. The visit-processed secret
is mandatory; the transcription secret is checked only when configured.
Secret checks run as dependencies, ahead of payload validation.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query

from ..core.errors import UnauthorizedError
from ..core.security import secrets_match
from ..schemas.webhooks import TranscriptionWebhookPayload, VisitProcessedPayload
from ..services.container import ServiceContainer
from .deps import get_services


logger = logging.getLogger(__name__)


def create_webhooks_router(
    visit_secret: Optional[str] = None,
    transcription_secret: Optional[str] = None,
) -> APIRouter:
    """
    Build the webhook router.

    Args:
        visit_secret: Secret expected on visit-processed deliveries
        transcription_secret: Secret expected on transcription callbacks
            (empty disables the check)

    Returns:
        APIRouter mounted under /v1/webhooks
    """
    router = APIRouter(prefix="/v1/webhooks", tags=["Webhooks"])

    def verify_visit_secret(
        x_webhook_secret: Optional[str] = Header(default=None),
        x_webhook_signature: Optional[str] = Header(default=None),
    ) -> None:
        if not secrets_match(x_webhook_secret or x_webhook_signature, visit_secret):
            logger.warning("Rejected visit-processed webhook: bad secret")
            raise UnauthorizedError("Invalid webhook secret")

    def verify_transcription_secret(
        x_assemblyai_secret: Optional[str] = Header(default=None),
        x_webhook_secret: Optional[str] = Header(default=None),
        secret: Optional[str] = Query(default=None),
    ) -> None:
        if not transcription_secret:
            return
        provided = x_assemblyai_secret or x_webhook_secret or secret
        if not secrets_match(provided, transcription_secret):
            logger.warning("Rejected transcription webhook: bad secret")
            raise UnauthorizedError("Invalid webhook secret")

    # =========================================================================
    # Visit Processed
    # =========================================================================

    @router.post(
        "/visit-processed",
        summary="Visit processed",
        description="Stores summarization results and regenerates the visit's actions.",
        dependencies=[Depends(verify_visit_secret)],
    )
    def visit_processed(
        payload: VisitProcessedPayload,
        services: ServiceContainer = Depends(get_services),
    ):
        result = services.visit_processing.apply_processed_result(payload.to_update())
        return {
            "success": True,
            "visitId": result.visit_id,
            "actionsCreated": result.actions_created,
        }

    # =========================================================================
    # Transcription Complete
    # =========================================================================

    def transcription_complete(
        payload: TranscriptionWebhookPayload,
        services: ServiceContainer = Depends(get_services),
    ):
        outcome = services.visit_processing.apply_transcription_result(
            payload.transcript_id,
            payload.status,
            text=payload.text,
            error=payload.error,
        )
        if not outcome.applied:
            return {"success": True, "message": outcome.message}
        return {"success": True, "visitId": outcome.visit_id}

    for path, in_schema in (
        ("/transcription-complete", True),
        ("/assemblyai/transcription-complete", False),
    ):
        router.add_api_route(
            path,
            transcription_complete,
            methods=["POST"],
            summary="Transcription complete",
            dependencies=[Depends(verify_transcription_secret)],
            include_in_schema=in_schema,
        )

    return router
