"""
Request API Routes

Submission, role-scoped listing and lifecycle transitions of examination requests.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter
from fastapi import Depends
from fastapi import File
from fastapi import Form
from fastapi import Query
from fastapi import UploadFile
from fastapi import status

from exam_api.dependencies import get_actor
from exam_api.dependencies import get_lifecycle_manager
from exam_api.dependencies import read_upload
from exam_api.portal.enums import Priority
from exam_api.portal.enums import RequestStatus
from exam_api.portal.enums import RequestType
from exam_api.portal.lifecycle.manager import RequestLifecycleManager
from exam_api.portal.models import Actor
from exam_api.schemas.schemas_portal import RequestDetailResponse
from exam_api.schemas.schemas_portal import RequestListResponse
from exam_api.schemas.schemas_portal import ResponseItem
from exam_api.schemas.schemas_portal import ResponseListResponse

ROUTER_REQUESTS = APIRouter(tags=["Requests"], prefix="/requests")

TRANSITION_RESPONSES = {
    400: {"description": "Empty response text"},
    403: {"description": "Role or department not allowed"},
    404: {"description": "Request not found"},
    409: {"description": "Request already handled"},
    415: {"description": "Attachment file type not supported"},
    503: {"description": "Storage or database unavailable"},
}


@ROUTER_REQUESTS.post(
    "",
    response_model=RequestDetailResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit an examination request",
    responses={
        400: {"description": "Missing fields or inactive department"},
        403: {"description": "Only students can submit requests"},
        415: {"description": "Attachment file type not supported"},
        503: {"description": "Storage or database unavailable"},
    },
)
async def submit_request(
    title: str = Form(..., description="Short summary"),
    description: str = Form(..., description="Full description of the issue"),
    request_type: RequestType = Form(..., description="Kind of request"),
    department_id: UUID = Form(..., description="Department the request is filed with"),
    priority: Priority = Form(Priority.MEDIUM, description="Request priority"),
    attachment: Optional[UploadFile] = File(None, description="PDF, image or Excel file"),
    actor: Actor = Depends(get_actor),
    manager: RequestLifecycleManager = Depends(get_lifecycle_manager),
):
    request = await manager.submit_request(
        actor,
        title=title,
        description=description,
        request_type=request_type,
        department_id=department_id,
        priority=priority,
        attachment=await read_upload(attachment),
    )
    return RequestDetailResponse.from_request(request)


@ROUTER_REQUESTS.get(
    "",
    response_model=RequestListResponse,
    summary="List requests visible to the caller",
)
async def list_requests(
    status_filter: Optional[RequestStatus] = Query(None, alias="status", description="Status tab"),
    search: Optional[str] = Query(None, description="Substring of the request id"),
    actor: Actor = Depends(get_actor),
    manager: RequestLifecycleManager = Depends(get_lifecycle_manager),
):
    """
    Students see their own requests, admins their department's requests and
    super admins the escalated requests of every department. Newest first.
    """
    requests = await manager.list_visible_requests(actor, status=status_filter, search=search)
    return RequestListResponse(
        Message=f"Found {len(requests)} requests",
        Count=len(requests),
        Requests=[RequestDetailResponse.from_request(r) for r in requests],
    )


@ROUTER_REQUESTS.get(
    "/{request_id}",
    response_model=RequestDetailResponse,
    summary="Get one request",
    responses={404: {"description": "Request not found"}},
)
async def get_request(
    request_id: UUID,
    actor: Actor = Depends(get_actor),
    manager: RequestLifecycleManager = Depends(get_lifecycle_manager),
):
    return RequestDetailResponse.from_request(await manager.get_request(actor, request_id))


@ROUTER_REQUESTS.get(
    "/{request_id}/responses",
    response_model=ResponseListResponse,
    summary="Get the response history of a request",
    responses={404: {"description": "Request not found"}},
)
async def list_responses(
    request_id: UUID,
    actor: Actor = Depends(get_actor),
    manager: RequestLifecycleManager = Depends(get_lifecycle_manager),
):
    responses = await manager.list_responses(actor, request_id)
    return ResponseListResponse(
        Message=f"Found {len(responses)} responses",
        RequestId=request_id,
        Count=len(responses),
        Responses=[ResponseItem.from_response(r) for r in responses],
    )


@ROUTER_REQUESTS.post(
    "/{request_id}/resolve",
    response_model=RequestDetailResponse,
    summary="Resolve a request",
    responses=TRANSITION_RESPONSES,
)
async def resolve_request(
    request_id: UUID,
    response_text: str = Form(..., description="Resolution sent to the student"),
    attachment: Optional[UploadFile] = File(None, description="PDF, image or Excel file"),
    actor: Actor = Depends(get_actor),
    manager: RequestLifecycleManager = Depends(get_lifecycle_manager),
):
    request = await manager.resolve(request_id, actor, response_text, await read_upload(attachment))
    return RequestDetailResponse.from_request(request)


@ROUTER_REQUESTS.post(
    "/{request_id}/escalate",
    response_model=RequestDetailResponse,
    summary="Escalate a request to the super admin tier",
    responses=TRANSITION_RESPONSES,
)
async def escalate_request(
    request_id: UUID,
    response_text: str = Form(..., description="Reason for escalation"),
    attachment: Optional[UploadFile] = File(None, description="PDF, image or Excel file"),
    actor: Actor = Depends(get_actor),
    manager: RequestLifecycleManager = Depends(get_lifecycle_manager),
):
    request = await manager.escalate(request_id, actor, response_text, await read_upload(attachment))
    return RequestDetailResponse.from_request(request)


@ROUTER_REQUESTS.post(
    "/{request_id}/terminate",
    response_model=RequestDetailResponse,
    summary="Close a request without resolution",
    responses=TRANSITION_RESPONSES,
)
async def terminate_request(
    request_id: UUID,
    response_text: str = Form(..., description="Reason for closing"),
    attachment: Optional[UploadFile] = File(None, description="PDF, image or Excel file"),
    actor: Actor = Depends(get_actor),
    manager: RequestLifecycleManager = Depends(get_lifecycle_manager),
):
    request = await manager.terminate(request_id, actor, response_text, await read_upload(attachment))
    return RequestDetailResponse.from_request(request)
