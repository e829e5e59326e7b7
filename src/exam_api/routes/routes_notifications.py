"""Notification maintenance endpoints."""

from typing import Optional

from fastapi import APIRouter
from fastapi import Depends
from fastapi import Query

from exam_api.dependencies import get_actor
from exam_api.dependencies import get_dispatcher
from exam_api.exceptions import Unauthorized
from exam_api.portal.models import Actor
from exam_api.portal.notifications.dispatcher import NotificationDispatcher
from exam_api.schemas.schemas_portal import SweepResponse

ROUTER_NOTIFICATIONS = APIRouter(tags=["Notifications"], prefix="/notifications")


@ROUTER_NOTIFICATIONS.post(
    "/sweep",
    response_model=SweepResponse,
    summary="Retry pending email notifications",
    responses={
        403: {"description": "Admin roles only"},
        503: {"description": "Database unavailable"},
    },
)
async def sweep_notifications(
    limit: Optional[int] = Query(None, ge=1, le=100, description="Maximum notifications to process"),
    actor: Actor = Depends(get_actor),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Deliver pending notifications oldest first, one at a time."""
    if not actor.is_admin:
        raise Unauthorized("Only administrators can run a notification sweep.")

    result = await dispatcher.sweep(limit)
    return SweepResponse(
        Message=f"Processed {result.processed} pending notifications",
        Processed=result.processed,
        Sent=result.sent,
        Failed=result.failed,
    )
