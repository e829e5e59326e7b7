"""
Portal Models

Pydantic models for the five portal entities plus the explicit actor/identity
passed into every core operation.
"""

from datetime import datetime
from typing import List
from typing import Optional
from uuid import UUID

from pydantic import BaseModel
from pydantic import Field

from exam_api.portal.enums import EmailType
from exam_api.portal.enums import NotificationStatus
from exam_api.portal.enums import Priority
from exam_api.portal.enums import RequestStatus
from exam_api.portal.enums import RequestType
from exam_api.portal.enums import ResponseType
from exam_api.portal.enums import Role

# ════════════════════════════════════════════════════════════════════════════
# Reference Data
# ════════════════════════════════════════════════════════════════════════════


class Department(BaseModel):
    """Department reference data (immutable from this service)."""

    id: UUID
    name: str
    code: str
    is_active: bool = True

    class Config:
        from_attributes = True


class Profile(BaseModel):
    """Profile database model. One per identity-provider subject."""

    id: UUID
    email: str
    full_name: str
    role: Role
    department_id: Optional[UUID] = None  # NULL for super_admin
    student_id: Optional[str] = None
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    is_profile_complete: bool = False
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ════════════════════════════════════════════════════════════════════════════
# Request / Response / Notification
# ════════════════════════════════════════════════════════════════════════════


class ExamRequest(BaseModel):
    """Examination request database model."""

    id: UUID
    student_id: UUID
    title: str
    description: str
    request_type: RequestType
    priority: Priority = Priority.MEDIUM
    department_id: UUID
    status: RequestStatus = RequestStatus.PENDING
    attachments: List[str] = Field(default_factory=list)
    assigned_admin_id: Optional[UUID] = None
    resolution_notes: Optional[str] = None
    created_at: datetime
    resolved_at: Optional[datetime] = None

    # Joined student contact details (read-side only)
    student_name: Optional[str] = None
    student_email: Optional[str] = None

    class Config:
        from_attributes = True


class RequestResponse(BaseModel):
    """Immutable audit entry written by a lifecycle transition."""

    id: UUID
    request_id: UUID
    responder_id: UUID
    response_text: str
    response_type: ResponseType
    attachments: List[str] = Field(default_factory=list)
    created_at: datetime

    class Config:
        from_attributes = True


class Notification(BaseModel):
    """Queued outbound email record."""

    id: UUID
    recipient_email: str
    recipient_name: Optional[str] = None
    request_id: Optional[UUID] = None
    email_type: EmailType
    subject: str
    content: str
    attachments: List[str] = Field(default_factory=list)
    status: NotificationStatus = NotificationStatus.PENDING
    created_at: datetime
    sent_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ════════════════════════════════════════════════════════════════════════════
# Caller Context
# ════════════════════════════════════════════════════════════════════════════


class Identity(BaseModel):
    """Authenticated identity as vouched for by the identity provider."""

    subject: UUID
    email: str


class Actor(BaseModel):
    """Explicit caller context for core operations."""

    id: UUID
    email: str
    full_name: str = ""
    role: Role
    department_id: Optional[UUID] = None

    @classmethod
    def from_profile(cls, profile: Profile) -> "Actor":
        return cls(
            id=profile.id,
            email=profile.email,
            full_name=profile.full_name,
            role=profile.role,
            department_id=profile.department_id,
        )

    @property
    def is_admin(self) -> bool:
        return self.role in (Role.ADMIN, Role.SUPER_ADMIN)


class FileUpload(BaseModel):
    """Binary payload handed to the attachment store."""

    filename: str
    content: bytes
    content_type: Optional[str] = None
