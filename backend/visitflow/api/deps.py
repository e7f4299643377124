"""
Shared route dependencies.

Vendor clients are separate dependencies so tests (and alternative
deployments) can override them without touching the routes.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from ..core.database import get_db
from ..services.container import ServiceContainer
from ..services.notifications import PushNotificationService
from ..services.transcription import AssemblyAIClient


def get_transcription_client() -> AssemblyAIClient:
    return AssemblyAIClient()


def get_notifier() -> PushNotificationService:
    return PushNotificationService()


def get_services(
    db: Session = Depends(get_db),
    transcription_client=Depends(get_transcription_client),
    notifier=Depends(get_notifier),
) -> ServiceContainer:
    """Build the per-request service container."""
    return ServiceContainer(db, transcription_client=transcription_client, notifier=notifier)
