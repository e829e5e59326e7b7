"""
Request Repository

Repository for examination requests. The conditional transition update is the
only statement in the service that writes the status column.
"""

from datetime import datetime
from typing import List
from typing import Optional
from uuid import UUID
from uuid import uuid4

import asyncpg

from exam_api.portal.db.repository_base import BaseRepository
from exam_api.portal.enums import Priority
from exam_api.portal.enums import RequestStatus
from exam_api.portal.enums import RequestType
from exam_api.portal.models import ExamRequest

REQUEST_SELECT = """
    SELECT r.id, r.student_id, r.title, r.description, r.request_type, r.priority,
           r.department_id, r.status, r.attachments, r.assigned_admin_id,
           r.resolution_notes, r.created_at, r.resolved_at,
           p.full_name AS student_name, p.email AS student_email
    FROM exam_portal.examination_requests r
    LEFT JOIN exam_portal.profiles p ON p.id = r.student_id
"""

REQUEST_RETURNING = """
    RETURNING id, student_id, title, description, request_type, priority,
              department_id, status, attachments, assigned_admin_id,
              resolution_notes, created_at, resolved_at
"""


class RequestRepository(BaseRepository):
    """Request repository with domain-specific queries."""

    def __init__(self, pool):
        super().__init__(pool, "examination_requests")

    async def create(
        self,
        student_id: UUID,
        title: str,
        description: str,
        request_type: RequestType,
        priority: Priority,
        department_id: UUID,
        attachments: List[str],
        conn: Optional[asyncpg.Connection] = None,
    ) -> ExamRequest:
        """Insert a new request in pending status."""
        async with self._connection(conn) as c:
            row = await c.fetchrow(
                f"""
                INSERT INTO exam_portal.examination_requests
                    (id, student_id, title, description, request_type, priority,
                     department_id, status, attachments, created_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7, 'pending', $8::text[], NOW())
                {REQUEST_RETURNING}
                """,
                uuid4(),
                student_id,
                title,
                description,
                request_type.value,
                priority.value,
                department_id,
                attachments,
            )
        return ExamRequest.model_validate(dict(row))

    async def get(self, request_id: UUID, conn: Optional[asyncpg.Connection] = None) -> Optional[ExamRequest]:
        """Get a request with its student's contact details."""
        async with self._connection(conn) as c:
            row = await c.fetchrow(f"{REQUEST_SELECT} WHERE r.id = $1", request_id)
        return ExamRequest.model_validate(dict(row)) if row else None

    async def list_requests(
        self,
        student_id: Optional[UUID] = None,
        department_id: Optional[UUID] = None,
        status: Optional[RequestStatus] = None,
        search: Optional[str] = None,
    ) -> List[ExamRequest]:
        """
        List requests matching every given filter, newest first.

        Args:
            student_id: Only requests owned by this student
            department_id: Only requests filed with this department
            status: Only requests in this status
            search: Case-insensitive substring of the request id
        """
        clauses = []
        params: list = []

        if student_id is not None:
            params.append(student_id)
            clauses.append(f"r.student_id = ${len(params)}")
        if department_id is not None:
            params.append(department_id)
            clauses.append(f"r.department_id = ${len(params)}")
        if status is not None:
            params.append(status.value)
            clauses.append(f"r.status = ${len(params)}")
        if search:
            params.append(search.strip().lower())
            clauses.append(f"r.id::text LIKE '%' || ${len(params)} || '%'")

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        async with self._connection() as conn:
            rows = await conn.fetch(f"{REQUEST_SELECT} {where} ORDER BY r.created_at DESC", *params)
        return [ExamRequest.model_validate(dict(row)) for row in rows]

    async def transition(
        self,
        conn: asyncpg.Connection,
        request_id: UUID,
        expected_status: RequestStatus,
        target_status: RequestStatus,
        admin_id: UUID,
        resolution_notes: Optional[str],
        resolved_at: Optional[datetime],
    ) -> Optional[ExamRequest]:
        """
        Atomically move a request from expected_status to target_status.

        Returns the updated request, or None when the row was no longer in
        expected_status (another actor won the race).
        """
        async with self._connection(conn) as c:
            row = await c.fetchrow(
                f"""
                UPDATE exam_portal.examination_requests
                SET status = $3,
                    assigned_admin_id = $4,
                    resolution_notes = COALESCE($5, resolution_notes),
                    resolved_at = COALESCE($6, resolved_at)
                WHERE id = $1 AND status = $2
                {REQUEST_RETURNING}
                """,
                request_id,
                expected_status.value,
                target_status.value,
                admin_id,
                resolution_notes,
                resolved_at,
            )
        return ExamRequest.model_validate(dict(row)) if row else None
