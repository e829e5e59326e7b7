"""Department catalogue endpoints."""

from fastapi import APIRouter
from fastapi import Depends
from fastapi import status

from exam_api.dependencies import get_profile_service
from exam_api.portal.profiles import ProfileService
from exam_api.schemas.schemas_portal import DepartmentItem
from exam_api.schemas.schemas_portal import DepartmentListResponse

ROUTER_DEPARTMENTS = APIRouter(tags=["Departments"], prefix="/departments")


@ROUTER_DEPARTMENTS.get(
    "",
    response_model=DepartmentListResponse,
    status_code=status.HTTP_200_OK,
    summary="List active departments",
)
async def list_departments(profile_service: ProfileService = Depends(get_profile_service)):
    """Active departments, used by profile setup and request submission forms."""
    departments = await profile_service.list_departments()
    return DepartmentListResponse(
        Message=f"Found {len(departments)} active departments",
        Count=len(departments),
        Departments=[DepartmentItem.from_department(d) for d in departments],
    )
