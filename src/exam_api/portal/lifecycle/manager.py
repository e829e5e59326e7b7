"""
Request Lifecycle Manager

Owns the examination request state machine:

    pending ──► resolved    (terminal)
       │
       ├──────► terminated  (terminal)
       │
       └──────► escalated ──► resolved | terminated   (super_admin only)

apply_transition() is the only caller of RequestRepository.transition(), the
single writer of the status column. The conditional update, the audit Response
and the Notification row commit together; delivery runs after commit.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from datetime import timezone
from typing import AsyncIterator
from typing import List
from typing import Optional
from uuid import UUID

import asyncpg
from loguru import logger

from exam_api.exceptions import Conflict
from exam_api.exceptions import InvalidTransition
from exam_api.exceptions import NotFound
from exam_api.exceptions import PersistenceFailure
from exam_api.exceptions import Unauthorized
from exam_api.exceptions import ValidationError
from exam_api.portal.db.repository_base import DATABASE_ERRORS
from exam_api.portal.db.repository_department import DepartmentRepository
from exam_api.portal.db.repository_request import RequestRepository
from exam_api.portal.db.repository_response import ResponseRepository
from exam_api.portal.enums import TRANSITION_OUTCOMES
from exam_api.portal.enums import Priority
from exam_api.portal.enums import RequestStatus
from exam_api.portal.enums import RequestType
from exam_api.portal.enums import Role
from exam_api.portal.enums import StorageArea
from exam_api.portal.lifecycle import policy
from exam_api.portal.models import Actor
from exam_api.portal.models import ExamRequest
from exam_api.portal.models import FileUpload
from exam_api.portal.models import RequestResponse
from exam_api.portal.notifications.dispatcher import NotificationDispatcher
from exam_api.portal.notifications.templates import build_transition_message
from exam_api.portal.storage.attachment_store import AttachmentStore
from exam_api.portal.storage.attachment_store import validate_attachment_name
from exam_api.portal.validation import require_text

# Targets that close the request and stamp resolved_at / resolution_notes
CLOSING_STATUSES = frozenset({RequestStatus.RESOLVED, RequestStatus.TERMINATED})


class RequestLifecycleManager:
    """Submission, transitions and reads of examination requests."""

    def __init__(
        self,
        pool,
        requests: RequestRepository,
        responses: ResponseRepository,
        departments: DepartmentRepository,
        store: AttachmentStore,
        dispatcher: NotificationDispatcher,
        institution_name: str,
    ):
        self.pool = pool
        self.requests = requests
        self.responses = responses
        self.departments = departments
        self.store = store
        self.dispatcher = dispatcher
        self.institution_name = institution_name

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[asyncpg.Connection]:
        try:
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    yield conn
        except DATABASE_ERRORS as e:
            logger.error(f"Transition transaction failed: {e}", exc_info=True)
            raise PersistenceFailure("Could not save the request update") from e

    # ════════════════════════════════════════════════════════════════════════
    # Submission
    # ════════════════════════════════════════════════════════════════════════

    async def submit_request(
        self,
        actor: Actor,
        title: str,
        description: str,
        request_type: RequestType,
        department_id: UUID,
        priority: Priority = Priority.MEDIUM,
        attachment: Optional[FileUpload] = None,
    ) -> ExamRequest:
        """
        Create a pending request owned by the calling student.

        Raises:
            Unauthorized: caller is not a student
            ValidationError: empty title/description or inactive department
            UnsupportedFileType: attachment extension outside the allow-list
            StorageFailure: attachment upload failed (no request written)
            PersistenceFailure: request insert failed
        """
        if actor.role != Role.STUDENT:
            raise Unauthorized("Only students can submit requests.")

        title = require_text(title, "Title")
        description = require_text(description, "Description")
        if attachment is not None:
            validate_attachment_name(attachment.filename)

        department = await self.departments.get(department_id)
        if department is None or not department.is_active:
            raise ValidationError("Please choose an active department.")

        attachments: List[str] = []
        if attachment is not None:
            attachments.append(await self.store.store(attachment, actor.id, StorageArea.REQUEST_ATTACHMENTS))

        request = await self.requests.create(
            student_id=actor.id,
            title=title,
            description=description,
            request_type=request_type,
            priority=priority,
            department_id=department_id,
            attachments=attachments,
        )
        logger.info(
            "Request submitted",
            request_id=str(request.id),
            student_id=str(actor.id),
            department_id=str(department_id),
            request_type=request_type.value,
            priority=priority.value,
        )
        return request

    # ════════════════════════════════════════════════════════════════════════
    # Transitions
    # ════════════════════════════════════════════════════════════════════════

    async def apply_transition(
        self,
        request_id: UUID,
        actor: Actor,
        target_status: RequestStatus,
        response_text: str,
        attachment: Optional[FileUpload] = None,
    ) -> ExamRequest:
        """
        Move a request to resolved, escalated or terminated.

        Validation and authorization run before any side effect. The attachment
        is uploaded before the database unit; a later database failure leaves it
        orphaned in storage.

        Raises:
            ValidationError: empty response text or pending as target
            UnsupportedFileType: attachment extension outside the allow-list
            NotFound: no such request
            Unauthorized: role or department mismatch
            InvalidTransition: request is not in a status the actor may act on
            Conflict: another actor transitioned the request first
            StorageFailure: attachment upload failed (nothing written)
            PersistenceFailure: the database unit failed (nothing written)
        """
        if target_status not in TRANSITION_OUTCOMES:
            raise ValidationError(f"Cannot move a request to {target_status.value}.")
        response_text = require_text(response_text, "Response text")
        if attachment is not None:
            validate_attachment_name(attachment.filename)

        request = await self.requests.get(request_id)
        if request is None:
            raise NotFound("Request not found.")

        policy.authorize_transition(actor, request, target_status)

        if request.status not in policy.allowed_source_statuses(actor, target_status):
            logger.info(
                "Transition rejected",
                request_id=str(request_id),
                current_status=request.status.value,
                target_status=target_status.value,
                actor_id=str(actor.id),
            )
            raise InvalidTransition(f"Request is already {request.status.value}.")

        attachments: List[str] = []
        if attachment is not None:
            attachments.append(await self.store.store(attachment, actor.id, StorageArea.REQUEST_RESPONSES))

        response_type, email_type = TRANSITION_OUTCOMES[target_status]
        closing = target_status in CLOSING_STATUSES

        async with self._transaction() as conn:
            updated = await self.requests.transition(
                conn,
                request_id=request_id,
                expected_status=request.status,
                target_status=target_status,
                admin_id=actor.id,
                resolution_notes=response_text if closing else None,
                resolved_at=datetime.now(timezone.utc) if closing else None,
            )
            if updated is None:
                raise Conflict()

            await self.responses.create(
                request_id=request_id,
                responder_id=actor.id,
                response_text=response_text,
                response_type=response_type,
                attachments=attachments,
                conn=conn,
            )

            subject, content = build_transition_message(email_type, request, response_text, self.institution_name)
            notification = await self.dispatcher.stage(
                recipient_email=request.student_email,
                recipient_name=request.student_name,
                request_id=request_id,
                email_type=email_type,
                subject=subject,
                content=content,
                attachments=attachments,
                conn=conn,
            )

        logger.info(
            "Request transitioned",
            request_id=str(request_id),
            from_status=request.status.value,
            to_status=target_status.value,
            actor_id=str(actor.id),
            actor_role=actor.role.value,
        )

        await self.dispatcher.dispatch(notification)
        return updated.model_copy(update={"student_name": request.student_name, "student_email": request.student_email})

    async def resolve(self, request_id: UUID, actor: Actor, response_text: str, attachment: Optional[FileUpload] = None):
        return await self.apply_transition(request_id, actor, RequestStatus.RESOLVED, response_text, attachment)

    async def escalate(self, request_id: UUID, actor: Actor, response_text: str, attachment: Optional[FileUpload] = None):
        return await self.apply_transition(request_id, actor, RequestStatus.ESCALATED, response_text, attachment)

    async def terminate(self, request_id: UUID, actor: Actor, response_text: str, attachment: Optional[FileUpload] = None):
        return await self.apply_transition(request_id, actor, RequestStatus.TERMINATED, response_text, attachment)

    # ════════════════════════════════════════════════════════════════════════
    # Reads
    # ════════════════════════════════════════════════════════════════════════

    async def get_request(self, actor: Actor, request_id: UUID) -> ExamRequest:
        """Return one request visible to `actor`; invisible requests are NotFound."""
        request = await self.requests.get(request_id)
        if request is None or not policy.can_view(actor, request):
            raise NotFound("Request not found.")
        return request

    async def list_visible_requests(
        self,
        actor: Actor,
        status: Optional[RequestStatus] = None,
        search: Optional[str] = None,
    ) -> List[ExamRequest]:
        """Requests `actor` may see, newest first, narrowed by status tab and id search."""
        filters = policy.visible_request_filters(actor, status)
        if filters is None:
            return []
        return await self.requests.list_requests(
            student_id=filters.student_id,
            department_id=filters.department_id,
            status=filters.status,
            search=search,
        )

    async def list_responses(self, actor: Actor, request_id: UUID) -> List[RequestResponse]:
        """Audit thread of a visible request, oldest first."""
        await self.get_request(actor, request_id)
        return await self.responses.list_for_request(request_id)
