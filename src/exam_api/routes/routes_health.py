"""Health check endpoints for monitoring application status."""

from datetime import datetime
from datetime import timezone

from fastapi import APIRouter
from fastapi import Request
from fastapi import status
from fastapi.responses import JSONResponse
from loguru import logger

ROUTER_HEALTH = APIRouter(tags=["Health"])

SERVICE_NAME = "Examination Portal API"
SERVICE_VERSION = "v1"


@ROUTER_HEALTH.get(
    "/health",
    summary="Health check endpoint",
    description="Basic health check that returns application status and metadata",
    responses={
        status.HTTP_200_OK: {
            "description": "Application is healthy",
            "content": {
                "application/json": {
                    "example": {
                        "status": "healthy",
                        "timestamp": "2026-01-05T12:00:00.000000Z",
                        "service": SERVICE_NAME,
                        "version": SERVICE_VERSION,
                    }
                }
            },
        }
    },
)
async def health_check(request: Request):
    """
    Basic health check endpoint.

    Returns application status and metadata. This endpoint is lightweight
    and does not perform any external dependency checks.
    """
    settings = request.app.state.settings

    response_data = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "portal": settings.portal_name,
    }

    logger.debug("Health check requested", status="healthy")

    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content=response_data,
    )


@ROUTER_HEALTH.get("/health/live", summary="Liveness probe")
async def liveness():
    return JSONResponse(status_code=status.HTTP_200_OK, content={"status": "alive"})


@ROUTER_HEALTH.get(
    "/health/ready",
    summary="Readiness probe",
    description="Checks the portal database and reports which optional integrations are configured",
    responses={
        status.HTTP_200_OK: {"description": "Ready to serve traffic"},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"description": "Database unavailable"},
    },
)
async def readiness(request: Request):
    """
    Readiness probe.

    Blob storage and the email provider are reported but do not fail readiness:
    requests without attachments still work and undelivered notifications are
    retried by the sweep.
    """
    db_healthy = await request.app.state.domain_db_pool.health_check()

    response_data = {
        "status": "ready" if db_healthy else "not_ready",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {
            "database": "healthy" if db_healthy else "unavailable",
            "attachment_storage": "configured" if request.app.state.attachment_store.is_configured else "not_configured",
            "email_provider": "configured" if request.app.state.email_client.is_configured else "not_configured",
        },
    }

    if not db_healthy:
        logger.warning("Readiness check failed", database="unavailable")

    return JSONResponse(
        status_code=status.HTTP_200_OK if db_healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=response_data,
    )
