"""
Push notifications for processed visits.

Delivery goes through an HTTP push gateway. Callers treat notification
as best effort: a failed push never undoes the write that triggered it.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from ..core.config import settings


logger = logging.getLogger(__name__)


class NotificationError(Exception):
    """Push gateway rejected or failed a notification."""
    pass


class PushNotificationService:
    """
    Sends "visit ready" pushes to a user's devices.

    Example usage:
        notifier = PushNotificationService()
        notifier.notify_visit_ready(user_id, visit_id, pending_actions=3)
    """

    def __init__(
        self,
        gateway_url: Optional[str] = None,
        token: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.gateway_url = gateway_url if gateway_url is not None else settings.push_gateway_url
        self.token = token if token is not None else settings.push_gateway_token
        self.transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.gateway_url)

    def notify_visit_ready(self, user_id: str, visit_id: str, pending_actions: int) -> Dict[str, Any]:
        """
        Tell the user their visit summary is ready.

        Returns:
            Dict with delivery status

        Raises:
            NotificationError: Gateway unreachable or returned an error
        """
        if not self.is_configured:
            logger.debug("Push gateway not configured; skipping visit-ready push")
            return {"success": False, "status": "skipped"}

        payload = {
            "userId": user_id,
            "notification": {
                "title": "Your visit summary is ready",
                "body": (
                    f"You have {pending_actions} pending action item"
                    f"{'' if pending_actions == 1 else 's'}."
                ),
            },
            "data": {
                "type": "visit-ready",
                "visitId": visit_id,
                "pendingActions": pending_actions,
            },
        }
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}

        try:
            with httpx.Client(timeout=10.0, transport=self.transport) as client:
                response = client.post(self.gateway_url, json=payload, headers=headers)
        except httpx.RequestError as e:
            raise NotificationError(f"Push gateway unreachable: {e}") from e

        if response.status_code >= 400:
            raise NotificationError(f"Push gateway returned {response.status_code}")

        logger.info(f"Visit-ready push sent for visit {visit_id}")
        return {"success": True, "status": "sent"}
