"""
API route controllers for VisitFlow.

Contains FastAPI routers for different endpoints.
Routes handle HTTP requests and delegate to services for business logic.
"""

from .health import router as health_router
from .auth import router as auth_router
from .records import router as records_router
from .webhooks import create_webhooks_router

__all__ = [
    "health_router",
    "auth_router",
    "records_router",
    "create_webhooks_router",
]
