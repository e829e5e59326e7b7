"""
Notification Repository

Repository for queued email notifications. Status only ever moves
pending -> sent or pending -> failed.
"""

from typing import List
from typing import Optional
from uuid import UUID
from uuid import uuid4

import asyncpg

from exam_api.portal.db.repository_base import BaseRepository
from exam_api.portal.enums import EmailType
from exam_api.portal.models import Notification

NOTIFICATION_COLUMNS = """
    id, recipient_email, recipient_name, request_id, email_type, subject,
    content, attachments, status, created_at, sent_at
"""


class NotificationRepository(BaseRepository):
    """Notification repository (no deletes)."""

    def __init__(self, pool):
        super().__init__(pool, "email_notifications")

    async def create(
        self,
        recipient_email: str,
        recipient_name: Optional[str],
        request_id: Optional[UUID],
        email_type: EmailType,
        subject: str,
        content: str,
        attachments: List[str],
        conn: Optional[asyncpg.Connection] = None,
    ) -> Notification:
        """Create a new notification (pending status)."""
        async with self._connection(conn) as c:
            row = await c.fetchrow(
                f"""
                INSERT INTO exam_portal.email_notifications
                    (id, recipient_email, recipient_name, request_id, email_type,
                     subject, content, attachments, status, created_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8::text[], 'pending', NOW())
                RETURNING {NOTIFICATION_COLUMNS}
                """,
                uuid4(),
                recipient_email,
                recipient_name,
                request_id,
                email_type.value,
                subject,
                content,
                attachments,
            )
        return Notification.model_validate(dict(row))

    async def get(self, notification_id: UUID) -> Optional[Notification]:
        async with self._connection() as conn:
            row = await conn.fetchrow(
                f"SELECT {NOTIFICATION_COLUMNS} FROM exam_portal.email_notifications WHERE id = $1",
                notification_id,
            )
        return Notification.model_validate(dict(row)) if row else None

    async def claim(self, notification_id: UUID, lease_seconds: float) -> bool:
        """
        Lease one pending notification for delivery.

        Returns False when the row is no longer pending or another sender holds
        an unexpired lease on it.
        """
        async with self._connection() as conn:
            row = await conn.fetchrow(
                """
                UPDATE exam_portal.email_notifications
                SET claimed_until = NOW() + make_interval(secs => $2)
                WHERE id = $1
                  AND status = 'pending'
                  AND (claimed_until IS NULL OR claimed_until < NOW())
                RETURNING id
                """,
                notification_id,
                float(lease_seconds),
            )
        return row is not None

    async def claim_pending(self, limit: int, lease_seconds: float) -> List[Notification]:
        """
        Lease up to `limit` unclaimed pending notifications, oldest first.

        Rows locked or leased by a concurrent sweep are skipped. A lease that
        expires without a status write (crash mid-send) makes the row eligible again.
        """
        async with self._connection() as conn:
            rows = await conn.fetch(
                f"""
                UPDATE exam_portal.email_notifications
                SET claimed_until = NOW() + make_interval(secs => $2)
                WHERE id IN (
                    SELECT id
                    FROM exam_portal.email_notifications
                    WHERE status = 'pending'
                      AND (claimed_until IS NULL OR claimed_until < NOW())
                    ORDER BY created_at ASC, id ASC
                    LIMIT $1
                    FOR UPDATE SKIP LOCKED
                )
                RETURNING {NOTIFICATION_COLUMNS}
                """,
                limit,
                float(lease_seconds),
            )
        notifications = [Notification.model_validate(dict(row)) for row in rows]
        # RETURNING order is unspecified
        return sorted(notifications, key=lambda n: (n.created_at, str(n.id)))

    async def mark_sent(self, notification_id: UUID) -> bool:
        """Mark a pending notification as sent. Returns False if it was not pending."""
        async with self._connection() as conn:
            result = await conn.execute(
                """
                UPDATE exam_portal.email_notifications
                SET status = 'sent', sent_at = NOW()
                WHERE id = $1 AND status = 'pending'
                """,
                notification_id,
            )
        return result.endswith(" 1")

    async def mark_failed(self, notification_id: UUID, error_message: str) -> bool:
        """Mark a pending notification as failed, appending the error to its content."""
        async with self._connection() as conn:
            result = await conn.execute(
                """
                UPDATE exam_portal.email_notifications
                SET status = 'failed', content = content || E'\\n\\nError: ' || $2
                WHERE id = $1 AND status = 'pending'
                """,
                notification_id,
                error_message,
            )
        return result.endswith(" 1")
