import asyncio
import contextlib
import os
from pathlib import Path
from textwrap import dedent

import pydantic
from fastapi import FastAPI
from fastapi.routing import APIRoute
from loguru import logger

from exam_api.errors import handle_broad_exceptions
from exam_api.errors import handle_portal_errors
from exam_api.errors import handle_pydantic_validation_errors
from exam_api.exceptions import PortalError
from exam_api.monitoring.logger import configure_logger
from exam_api.monitoring.request_context import RequestContextMiddleware
from exam_api.portal.db.pool import DomainDBPool
from exam_api.portal.db.repository_department import DepartmentRepository
from exam_api.portal.db.repository_notification import NotificationRepository
from exam_api.portal.db.repository_profile import ProfileRepository
from exam_api.portal.db.repository_request import RequestRepository
from exam_api.portal.db.repository_response import ResponseRepository
from exam_api.portal.lifecycle.manager import RequestLifecycleManager
from exam_api.portal.notifications.dispatcher import NotificationDispatcher
from exam_api.portal.notifications.email_client import BrevoEmailClient
from exam_api.portal.notifications.sweeper import start_notification_sweeper
from exam_api.portal.profiles import ProfileService
from exam_api.portal.storage.attachment_store import AttachmentStore
from exam_api.routes.routes_departments import ROUTER_DEPARTMENTS
from exam_api.routes.routes_health import ROUTER_HEALTH
from exam_api.routes.routes_notifications import ROUTER_NOTIFICATIONS
from exam_api.routes.routes_profiles import ROUTER_PROFILES
from exam_api.routes.routes_requests import ROUTER_REQUESTS
from exam_api.settings import Settings


def _detect_environment() -> str:
    """Detect if running in Azure Web App or locally."""
    # Azure Web App sets WEBSITE_INSTANCE_ID
    if os.getenv("WEBSITE_INSTANCE_ID"):
        return "azure-web-app"
    # Check if .env file exists (local development)
    elif Path(".env").exists():
        return "local-env-file"
    else:
        return "local-env-vars"


def build_email_client(settings: Settings) -> BrevoEmailClient:
    return BrevoEmailClient(
        api_key=settings.brevo_api_key,
        sender_email=settings.notification_sender_email,
        sender_name=settings.notification_sender_name,
        api_url=settings.brevo_api_url,
        timeout=settings.email_timeout_seconds,
    )


def build_notification_dispatcher(settings: Settings, pool, email_client: BrevoEmailClient) -> NotificationDispatcher:
    return NotificationDispatcher(
        notifications=NotificationRepository(pool),
        email_client=email_client,
        portal_name=settings.portal_name,
        sweep_limit=settings.notification_sweep_limit,
        claim_seconds=settings.notification_claim_seconds,
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create a FastAPI application.

    Configuration is loaded directly from environment variables via pydantic-settings.
    - Azure Web App: Set variables as App Settings (Configuration > Application settings)
    - Local development: Use a .env file in the repository root
    """
    settings = settings or Settings()

    configure_logger(level=settings.log_level, json_logs=settings.log_json)

    logger.info(
        "Configuration loaded successfully",
        environment=_detect_environment(),
        attachment_storage_configured=bool(
            settings.azure_storage_connection_string or settings.azure_storage_account_url
        ),
        email_provider_configured=bool(settings.brevo_api_key),
        gateway_secret_set=bool(settings.gateway_shared_secret),
        notification_sweeper=settings.enable_notification_sweeper,
    )

    app = FastAPI(
        title="Examination Portal API",
        version="v1",
        description=dedent(
            """
        Examination support portal: students submit requests, department admins
        resolve, escalate or close them, and escalations go to the super admin tier.
        Students are emailed on every status change.

        Callers are identified by the gateway through `X-Identity-Subject` and
        `X-Identity-Email`.
        """
        ),
        generate_unique_id_function=custom_generate_unique_id,
        swagger_ui_parameters={
            "defaultModelsExpandDepth": -1,  # Hide schemas section
            "defaultModelExpandDepth": 1,  # Keep models collapsed if shown
        },
    )
    app.state.settings = settings

    # Portal services (connections are opened lazily or on startup)
    domain_db_pool = DomainDBPool(settings.domain_db_connection_string)
    attachment_store = AttachmentStore(
        connection_string=settings.azure_storage_connection_string,
        account_url=settings.azure_storage_account_url,
    )
    email_client = build_email_client(settings)
    dispatcher = build_notification_dispatcher(settings, domain_db_pool, email_client)
    departments = DepartmentRepository(domain_db_pool)

    app.state.domain_db_pool = domain_db_pool
    app.state.attachment_store = attachment_store
    app.state.email_client = email_client
    app.state.notification_dispatcher = dispatcher
    app.state.lifecycle_manager = RequestLifecycleManager(
        pool=domain_db_pool,
        requests=RequestRepository(domain_db_pool),
        responses=ResponseRepository(domain_db_pool),
        departments=departments,
        store=attachment_store,
        dispatcher=dispatcher,
        institution_name=settings.institution_name,
    )
    app.state.profile_service = ProfileService(
        profiles=ProfileRepository(domain_db_pool),
        departments=departments,
        store=attachment_store,
        allowed_email_domains=settings.allowed_email_domains,
    )

    if not attachment_store.is_configured:
        logger.warning("Attachment storage not configured - uploads will fail with StorageFailure")
    if not email_client.is_configured:
        logger.warning("Email provider not configured - notifications will be marked failed")

    @app.on_event("startup")
    async def startup_portal():
        """Initialize the portal database and start the notification sweeper."""
        await app.state.domain_db_pool.initialize()
        logger.success("Portal database initialized")

        if settings.enable_notification_sweeper:
            app.state.notification_sweeper_task = asyncio.create_task(
                start_notification_sweeper(
                    app.state.notification_dispatcher,
                    settings.notification_sweep_interval_seconds,
                )
            )
            logger.success("Notification sweeper started")

    @app.on_event("shutdown")
    async def shutdown_portal():
        """Stop the sweeper and close external connections."""
        sweeper_task = getattr(app.state, "notification_sweeper_task", None)
        if sweeper_task is not None:
            sweeper_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sweeper_task

        await app.state.attachment_store.close()
        await app.state.domain_db_pool.close()
        logger.info("Portal connections closed")

    # Add request context middleware for tracking who/where requests come from
    app.add_middleware(RequestContextMiddleware)
    app.include_router(ROUTER_HEALTH, prefix="/api")
    app.include_router(ROUTER_DEPARTMENTS, prefix="/api")
    app.include_router(ROUTER_PROFILES, prefix="/api")
    app.include_router(ROUTER_REQUESTS, prefix="/api")
    app.include_router(ROUTER_NOTIFICATIONS, prefix="/api")

    app.add_exception_handler(
        exc_class_or_status_code=pydantic.ValidationError,
        handler=handle_pydantic_validation_errors,
    )
    app.add_exception_handler(
        exc_class_or_status_code=PortalError,
        handler=handle_portal_errors,
    )

    app.middleware("http")(handle_broad_exceptions)

    return app


def custom_generate_unique_id(route: APIRoute):
    """
    Generate prettier `operationId`s in the OpenAPI schema.

    These become the function names in generated client SDKs.
    """
    if route.tags:
        return f"{route.tags[0]}-{route.name}"
    return route.name


if __name__ == "__main__":
    import uvicorn

    app = create_app()
    uvicorn.run(app, host="0.0.0.0", port=8000)
