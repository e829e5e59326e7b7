"""
Profile API Routes

First-login profile setup and the caller's own profile.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter
from fastapi import BackgroundTasks
from fastapi import Depends
from fastapi import File
from fastapi import Form
from fastapi import UploadFile
from fastapi import status
from loguru import logger

from exam_api.dependencies import get_dispatcher
from exam_api.dependencies import get_identity
from exam_api.dependencies import get_profile_service
from exam_api.dependencies import read_upload
from exam_api.portal.enums import ADMIN_ROLES
from exam_api.portal.models import Identity
from exam_api.portal.notifications.dispatcher import NotificationDispatcher
from exam_api.portal.notifications.sweeper import run_sweep_once
from exam_api.portal.profiles import ProfileService
from exam_api.schemas.schemas_portal import ProfileResponse

ROUTER_PROFILES = APIRouter(tags=["Profiles"], prefix="/profiles")


@ROUTER_PROFILES.post(
    "/setup",
    response_model=ProfileResponse,
    status_code=status.HTTP_200_OK,
    summary="Create or complete the caller's profile",
    responses={
        400: {"description": "Missing name or inactive department"},
        403: {"description": "Email domain not allowed"},
        415: {"description": "Avatar file type not supported"},
        503: {"description": "Avatar storage unavailable"},
    },
)
async def setup_profile(
    full_name: str = Form(..., description="Full name"),
    department_id: UUID = Form(..., description="Active department id"),
    student_id: Optional[str] = Form(None, description="Institutional student id"),
    phone: Optional[str] = Form(None, description="Contact phone number"),
    avatar: Optional[UploadFile] = File(None, description="Optional avatar image"),
    identity: Identity = Depends(get_identity),
    profile_service: ProfileService = Depends(get_profile_service),
):
    """New profiles are created with the student role; admin roles are provisioned out-of-band."""
    profile = await profile_service.setup_profile(
        identity,
        full_name=full_name,
        department_id=department_id,
        student_id=student_id,
        phone=phone,
        avatar=await read_upload(avatar),
    )
    return ProfileResponse.from_profile(profile)


@ROUTER_PROFILES.get(
    "/me",
    response_model=ProfileResponse,
    summary="Get the caller's profile",
    responses={
        403: {"description": "Email domain not allowed"},
        404: {"description": "Profile setup not completed"},
    },
)
async def get_my_profile(
    background_tasks: BackgroundTasks,
    identity: Identity = Depends(get_identity),
    profile_service: ProfileService = Depends(get_profile_service),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """
    Return the caller's profile.

    When an admin or super_admin loads their profile, pending notifications are
    swept in the background after the response is sent.
    """
    profile = await profile_service.get_profile(identity)

    if profile.role in ADMIN_ROLES:
        logger.debug("Scheduling opportunistic notification sweep", profile_id=str(profile.id))
        background_tasks.add_task(run_sweep_once, dispatcher, "admin_profile_load")

    return ProfileResponse.from_profile(profile)
