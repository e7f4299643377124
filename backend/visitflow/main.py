"""
VisitFlow Backend - FastAPI Application Entry Point

Patient health-record API: visit processing webhooks, owner-scoped
record listings, cascading delete/restore and auth handoff.

Every error response uses one envelope:
    {"success": false, "code": "...", "message": "...", "details": ...}
"""

import time
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from .core.config import settings
from .core.database import engine, init_db
from .core.errors import ServiceError
from .core.logging import configure_logging
from .api import health_router, auth_router, records_router, create_webhooks_router


logger = logging.getLogger(__name__)

HTTP_ERROR_CODES = {
    400: "validation_failed",
    401: "unauthorized",
    403: "unauthorized",
    404: "not_found",
    405: "method_not_allowed",
}


# =============================================================================
# Performance Monitoring Middleware
# =============================================================================

class PerformanceMonitoringMiddleware(BaseHTTPMiddleware):
    """
    Track API response times and log slow requests.

    Adds X-Response-Time header to all responses.
    """

    SLOW_REQUEST_THRESHOLD_MS = 500

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        process_time_ms = (time.time() - start_time) * 1000

        response.headers["X-Response-Time"] = f"{process_time_ms:.2f}ms"

        if process_time_ms > self.SLOW_REQUEST_THRESHOLD_MS:
            logger.warning(
                f"Slow request: {request.method} {request.url.path} "
                f"took {process_time_ms:.2f}ms"
            )
        if settings.debug:
            logger.debug(f"{request.method} {request.url.path} - {process_time_ms:.2f}ms")

        return response


# =============================================================================
# Application Lifespan
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan handler.

    Configures logging, refuses insecure production secrets and creates
    tables for local SQLite databases.
    """
    configure_logging()
    logger.info(f"Starting {settings.app_name} v{settings.app_version} ({settings.environment})")

    insecure = []
    if settings.secret_key == "dev-secret-key-change-in-production":
        insecure.append("SECRET_KEY")
    if not settings.visit_webhook_secret:
        insecure.append("VISIT_WEBHOOK_SECRET")

    if insecure and settings.is_production:
        raise RuntimeError(f"Insecure or missing secrets in production: {', '.join(insecure)}")
    elif insecure:
        logger.warning(f"Dev-default or missing secrets in use: {', '.join(insecure)}")

    if settings.is_sqlite:
        init_db()

    yield

    logger.info("Shutting down...")
    engine.dispose()


# =============================================================================
# Exception Handlers
# =============================================================================

def _error_body(code: str, message: str, details=None) -> dict:
    body = {"success": False, "code": code, "message": message}
    if details:
        body["details"] = details
    return body


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Schema failures answer 400 with one entry per offending field."""
    details = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "header", "path")]
        details.append({
            "field": ".".join(loc) or None,
            "message": error.get("msg", "Invalid value"),
            "code": error.get("type"),
        })
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_error_body("validation_failed", "Invalid request", details),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = HTTP_ERROR_CODES.get(exc.status_code, "server_error" if exc.status_code >= 500 else "error")
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(code, str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unhandled exceptions.

    Logs the error type and returns a generic message (never PHI or internals).
    """
    logger.exception(f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content=_error_body("server_error", "An unexpected error occurred. Please try again later."),
    )


# =============================================================================
# Application Factory
# =============================================================================

def create_application(
    visit_webhook_secret: Optional[str] = None,
    transcription_webhook_secret: Optional[str] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        visit_webhook_secret: Overrides settings.visit_webhook_secret
        transcription_webhook_secret: Overrides settings.assemblyai_webhook_secret

    Returns:
        Configured FastAPI application instance
    """
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Visit processing, health records and auth handoff API.",
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
        lifespan=lifespan,
    )

    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(PerformanceMonitoringMiddleware)

    cors_origins = settings.cors_origins_list
    allow_all = "*" in cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else cors_origins,
        allow_credentials=not allow_all,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Response-Time"],
    )

    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(records_router)
    app.include_router(create_webhooks_router(
        visit_secret=visit_webhook_secret if visit_webhook_secret is not None
        else settings.visit_webhook_secret,
        transcription_secret=transcription_webhook_secret if transcription_webhook_secret is not None
        else settings.assemblyai_webhook_secret,
    ))

    return app


app = create_application()


# =============================================================================
# Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "visitflow.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_level="debug" if settings.debug else "info",
    )
