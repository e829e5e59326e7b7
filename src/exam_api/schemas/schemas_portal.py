"""
Portal API Response Schemas

Response models for portal API endpoints (PascalCase fields per existing pattern).
"""

from datetime import datetime
from typing import List
from typing import Optional
from uuid import UUID

from pydantic import BaseModel
from pydantic import Field

from exam_api.portal.models import Department
from exam_api.portal.models import ExamRequest
from exam_api.portal.models import Profile
from exam_api.portal.models import RequestResponse

# ════════════════════════════════════════════════════════════════════════════
# Department / Profile Schemas
# ════════════════════════════════════════════════════════════════════════════


class DepartmentItem(BaseModel):
    """Active department."""

    DepartmentId: UUID
    Name: str
    Code: str

    @classmethod
    def from_department(cls, department: Department) -> "DepartmentItem":
        return cls(DepartmentId=department.id, Name=department.name, Code=department.code)


class DepartmentListResponse(BaseModel):
    """List of active departments."""

    Message: str
    Count: int
    Departments: List[DepartmentItem]


class ProfileResponse(BaseModel):
    """Caller profile."""

    ProfileId: UUID
    Email: str
    FullName: str
    Role: str  # student, admin, super_admin
    DepartmentId: Optional[UUID] = None
    StudentId: Optional[str] = None
    Phone: Optional[str] = None
    AvatarUrl: Optional[str] = None
    IsProfileComplete: bool

    @classmethod
    def from_profile(cls, profile: Profile) -> "ProfileResponse":
        return cls(
            ProfileId=profile.id,
            Email=profile.email,
            FullName=profile.full_name,
            Role=profile.role.value,
            DepartmentId=profile.department_id,
            StudentId=profile.student_id,
            Phone=profile.phone,
            AvatarUrl=profile.avatar_url,
            IsProfileComplete=profile.is_profile_complete,
        )


# ════════════════════════════════════════════════════════════════════════════
# Request Schemas
# ════════════════════════════════════════════════════════════════════════════


class RequestDetailResponse(BaseModel):
    """Examination request details."""

    RequestId: UUID
    StudentId: UUID
    StudentName: Optional[str] = None
    StudentEmail: Optional[str] = None
    Title: str
    Description: str
    RequestType: str
    Priority: str
    DepartmentId: UUID
    Status: str  # pending, resolved, escalated, terminated
    Attachments: List[str] = Field(default_factory=list)
    AssignedAdminId: Optional[UUID] = None
    ResolutionNotes: Optional[str] = None
    CreatedAt: datetime
    ResolvedAt: Optional[datetime] = None

    @classmethod
    def from_request(cls, request: ExamRequest) -> "RequestDetailResponse":
        return cls(
            RequestId=request.id,
            StudentId=request.student_id,
            StudentName=request.student_name,
            StudentEmail=request.student_email,
            Title=request.title,
            Description=request.description,
            RequestType=request.request_type.value,
            Priority=request.priority.value,
            DepartmentId=request.department_id,
            Status=request.status.value,
            Attachments=request.attachments,
            AssignedAdminId=request.assigned_admin_id,
            ResolutionNotes=request.resolution_notes,
            CreatedAt=request.created_at,
            ResolvedAt=request.resolved_at,
        )


class RequestListResponse(BaseModel):
    """List of visible requests, newest first."""

    Message: str
    Count: int
    Requests: List[RequestDetailResponse]


class ResponseItem(BaseModel):
    """Audit response entry."""

    ResponseId: UUID
    ResponderId: UUID
    ResponseText: str
    ResponseType: str  # resolution, escalation, termination
    Attachments: List[str] = Field(default_factory=list)
    CreatedAt: datetime

    @classmethod
    def from_response(cls, response: RequestResponse) -> "ResponseItem":
        return cls(
            ResponseId=response.id,
            ResponderId=response.responder_id,
            ResponseText=response.response_text,
            ResponseType=response.response_type.value,
            Attachments=response.attachments,
            CreatedAt=response.created_at,
        )


class ResponseListResponse(BaseModel):
    """Audit thread of one request, oldest first."""

    Message: str
    RequestId: UUID
    Count: int
    Responses: List[ResponseItem]


# ════════════════════════════════════════════════════════════════════════════
# Notification Schemas
# ════════════════════════════════════════════════════════════════════════════


class SweepResponse(BaseModel):
    """Outcome of a manual notification sweep."""

    Message: str
    Processed: int
    Sent: int
    Failed: int
