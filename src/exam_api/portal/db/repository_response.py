"""
Response Repository

Repository for request responses (append-only audit trail, never updated or deleted).
"""

from typing import List
from typing import Optional
from uuid import UUID
from uuid import uuid4

import asyncpg

from exam_api.portal.db.repository_base import BaseRepository
from exam_api.portal.enums import ResponseType
from exam_api.portal.models import RequestResponse


class ResponseRepository(BaseRepository):
    """Response repository (append-only)."""

    def __init__(self, pool):
        super().__init__(pool, "request_responses")

    async def create(
        self,
        request_id: UUID,
        responder_id: UUID,
        response_text: str,
        response_type: ResponseType,
        attachments: List[str],
        conn: Optional[asyncpg.Connection] = None,
    ) -> RequestResponse:
        async with self._connection(conn) as c:
            row = await c.fetchrow(
                """
                INSERT INTO exam_portal.request_responses
                    (id, request_id, responder_id, response_text, response_type, attachments, created_at)
                VALUES ($1, $2, $3, $4, $5, $6::text[], NOW())
                RETURNING id, request_id, responder_id, response_text, response_type, attachments, created_at
                """,
                uuid4(),
                request_id,
                responder_id,
                response_text,
                response_type.value,
                attachments,
            )
        return RequestResponse.model_validate(dict(row))

    async def list_for_request(self, request_id: UUID) -> List[RequestResponse]:
        """List a request's responses, oldest first."""
        async with self._connection() as conn:
            rows = await conn.fetch(
                """
                SELECT id, request_id, responder_id, response_text, response_type, attachments, created_at
                FROM exam_portal.request_responses
                WHERE request_id = $1
                ORDER BY created_at ASC
                """,
                request_id,
            )
        return [RequestResponse.model_validate(dict(row)) for row in rows]
