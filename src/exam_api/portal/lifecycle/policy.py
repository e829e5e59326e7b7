"""
Access/Visibility Policy

Role and department scoping for reading and mutating examination requests.

Authorization table:

    target      roles                   scoping
    resolved    admin, super_admin      admin: request department only
    escalated   admin                   admin: request department only
    terminated  admin, super_admin      admin: request department only

Admins act on pending requests. A super_admin acts on pending or escalated
requests (no de-escalation). Students never mutate.
"""

from typing import FrozenSet
from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from exam_api.exceptions import Unauthorized
from exam_api.portal.enums import RequestStatus
from exam_api.portal.enums import Role
from exam_api.portal.models import Actor
from exam_api.portal.models import ExamRequest

TRANSITION_ROLES = {
    RequestStatus.RESOLVED: frozenset({Role.ADMIN, Role.SUPER_ADMIN}),
    RequestStatus.ESCALATED: frozenset({Role.ADMIN}),
    RequestStatus.TERMINATED: frozenset({Role.ADMIN, Role.SUPER_ADMIN}),
}

SOURCE_STATUSES = {
    Role.ADMIN: frozenset({RequestStatus.PENDING}),
    Role.SUPER_ADMIN: frozenset({RequestStatus.PENDING, RequestStatus.ESCALATED}),
}


class RequestFilters(BaseModel):
    """Repository filters describing what an actor may list."""

    student_id: Optional[UUID] = None
    department_id: Optional[UUID] = None
    status: Optional[RequestStatus] = None


def allowed_source_statuses(actor: Actor, target_status: RequestStatus) -> FrozenSet[RequestStatus]:
    """Statuses from which `actor` may move a request to `target_status`."""
    if actor.role not in TRANSITION_ROLES.get(target_status, frozenset()):
        return frozenset()
    return SOURCE_STATUSES.get(actor.role, frozenset())


def can_mutate(actor: Actor, request: ExamRequest, target_status: RequestStatus) -> bool:
    """Role and department check only; the current status is checked separately."""
    if actor.role not in TRANSITION_ROLES.get(target_status, frozenset()):
        return False
    if actor.role == Role.ADMIN:
        return actor.department_id is not None and actor.department_id == request.department_id
    return True


def authorize_transition(actor: Actor, request: ExamRequest, target_status: RequestStatus) -> None:
    """Raise Unauthorized unless `actor` may move `request` to `target_status`."""
    if can_mutate(actor, request, target_status):
        return

    if actor.role == Role.SUPER_ADMIN and target_status == RequestStatus.ESCALATED:
        raise Unauthorized("Super admins cannot escalate requests.")
    if actor.role == Role.ADMIN:
        raise Unauthorized("You can only act on requests filed with your department.")
    raise Unauthorized()


def visible_request_filters(actor: Actor, status: Optional[RequestStatus] = None) -> Optional[RequestFilters]:
    """
    Filters for the requests `actor` may list, narrowed by an optional status tab.

    Returns None when nothing can match (a super_admin asking for a status other
    than escalated, or an admin without a department).
    """
    if actor.role == Role.STUDENT:
        return RequestFilters(student_id=actor.id, status=status)

    if actor.role == Role.ADMIN:
        if actor.department_id is None:
            return None
        return RequestFilters(department_id=actor.department_id, status=status)

    # super_admin inbox is escalations across every department
    if status is not None and status != RequestStatus.ESCALATED:
        return None
    return RequestFilters(status=RequestStatus.ESCALATED)


def can_view(actor: Actor, request: ExamRequest) -> bool:
    if actor.role == Role.STUDENT:
        return request.student_id == actor.id
    if actor.role == Role.ADMIN:
        return actor.department_id is not None and request.department_id == actor.department_id
    # super_admin keeps sight of requests they closed after leaving the escalated inbox
    return request.status == RequestStatus.ESCALATED or request.assigned_admin_id == actor.id
