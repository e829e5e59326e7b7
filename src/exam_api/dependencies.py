"""FastAPI dependencies for accessing app state and the caller identity."""

import hmac
from uuid import UUID

from fastapi import Depends
from fastapi import Header
from fastapi import Request
from fastapi import UploadFile
from loguru import logger

from exam_api.exceptions import Unauthorized
from exam_api.exceptions import ValidationError
from exam_api.portal.db.pool import DomainDBPool
from exam_api.portal.lifecycle.manager import RequestLifecycleManager
from exam_api.portal.models import Actor
from exam_api.portal.models import FileUpload
from exam_api.portal.models import Identity
from exam_api.portal.notifications.dispatcher import NotificationDispatcher
from exam_api.portal.profiles import ProfileService
from exam_api.settings import Settings


def get_settings(request: Request) -> Settings:
    """
    Get application settings from request state.

    Parameters
    ----------
    request : Request
        FastAPI request object

    Returns
    -------
    Settings
        Application settings instance
    """
    return request.app.state.settings


def get_db_pool(request: Request) -> DomainDBPool:
    return request.app.state.domain_db_pool


def get_lifecycle_manager(request: Request) -> RequestLifecycleManager:
    return request.app.state.lifecycle_manager


def get_profile_service(request: Request) -> ProfileService:
    return request.app.state.profile_service


def get_dispatcher(request: Request) -> NotificationDispatcher:
    return request.app.state.notification_dispatcher


async def get_identity(
    settings: Settings = Depends(get_settings),
    x_identity_subject: str = Header(
        ...,
        alias="X-Identity-Subject",
        description="<small>*Identity-provider subject (UUID) set by the gateway*</small>",
    ),
    x_identity_email: str = Header(
        ...,
        alias="X-Identity-Email",
        description="<small>*Verified email address set by the gateway*</small>",
    ),
    x_gateway_secret: str
    | None = Header(
        None,
        alias="X-Gateway-Secret",
        description="<small>*Shared secret proving the call came through the gateway*</small>",
    ),
) -> Identity:
    """
    Extract the authenticated identity forwarded by the identity gateway.

    Parameters
    ----------
    settings : Settings
        Application settings (gateway secret)
    x_identity_subject : str
        Subject UUID from X-Identity-Subject header
    x_identity_email : str
        Email from X-Identity-Email header
    x_gateway_secret : str | None
        Shared secret from X-Gateway-Secret header

    Returns
    -------
    Identity
        Caller identity

    Raises
    ------
    Unauthorized
        Gateway secret configured but missing or wrong
    ValidationError
        Subject is not a UUID or email is empty
    """
    if settings.gateway_shared_secret:
        if not x_gateway_secret or not hmac.compare_digest(x_gateway_secret, settings.gateway_shared_secret):
            logger.warning("Rejected call without a valid gateway secret")
            raise Unauthorized("Direct access not allowed.")

    try:
        subject = UUID(x_identity_subject.strip())
    except ValueError as e:
        raise ValidationError("X-Identity-Subject must be a UUID.") from e

    email = x_identity_email.strip()
    if not email:
        raise ValidationError("X-Identity-Email header is required.")

    return Identity(subject=subject, email=email)


async def get_actor(
    identity: Identity = Depends(get_identity),
    profile_service: ProfileService = Depends(get_profile_service),
) -> Actor:
    """Allow-listed identity with a completed profile, as the explicit caller context."""
    return await profile_service.get_actor(identity)


async def read_upload(upload: UploadFile | None) -> FileUpload | None:
    """Read an optional multipart file into a FileUpload (empty file fields count as absent)."""
    if upload is None or not upload.filename:
        return None
    content = await upload.read()
    return FileUpload(filename=upload.filename, content=content, content_type=upload.content_type)
