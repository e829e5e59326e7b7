"""
Notification Dispatcher

Store-then-send delivery of lifecycle notifications:

1. enqueue() persists a pending notification and immediately attempts delivery
   (stage() + dispatch() when the row must join a caller-owned transaction)
2. deliver() renders and sends one claimed notification, then flips it to sent or failed
3. sweep() claims and retries the oldest unclaimed pending notifications in creation order

Every send is preceded by a time-limited claim on the row, so overlapping
dispatches and sweeps never deliver the same notification twice. A claim that
expires without a status write (crash mid-send) is picked up by a later sweep.

Delivery is fire-and-forget for lifecycle callers: a failed send never reverses
the transition that produced the notification. At-least-once, not exactly-once.
"""

from typing import List
from typing import Optional
from uuid import UUID

import asyncpg
from loguru import logger
from pydantic import BaseModel

from exam_api.exceptions import DeliveryFailure
from exam_api.exceptions import PortalError
from exam_api.portal.db.repository_notification import NotificationRepository
from exam_api.portal.enums import EmailType
from exam_api.portal.enums import NotificationStatus
from exam_api.portal.models import Notification
from exam_api.portal.notifications.email_client import BrevoEmailClient
from exam_api.portal.notifications.templates import render_email_html


class SweepResult(BaseModel):
    """Outcome of one sweep pass."""

    processed: int = 0
    sent: int = 0
    failed: int = 0


class NotificationDispatcher:
    """Persists, delivers and retries email notifications."""

    def __init__(
        self,
        notifications: NotificationRepository,
        email_client: BrevoEmailClient,
        portal_name: str,
        sweep_limit: int = 10,
        claim_seconds: float = 300.0,
    ):
        self.notifications = notifications
        self.email_client = email_client
        self.portal_name = portal_name
        self.sweep_limit = sweep_limit
        self.claim_seconds = claim_seconds

    async def enqueue(
        self,
        recipient_email: str,
        recipient_name: Optional[str],
        request_id: Optional[UUID],
        email_type: EmailType,
        subject: str,
        content: str,
        attachments: Optional[List[str]] = None,
    ) -> Notification:
        """
        Persist a pending notification, then attempt delivery.

        Raises:
            PersistenceFailure: the notification row could not be written
        """
        notification = await self.stage(
            recipient_email=recipient_email,
            recipient_name=recipient_name,
            request_id=request_id,
            email_type=email_type,
            subject=subject,
            content=content,
            attachments=attachments,
        )
        status = await self.dispatch(notification)
        return notification.model_copy(update={"status": status})

    async def stage(
        self,
        recipient_email: str,
        recipient_name: Optional[str],
        request_id: Optional[UUID],
        email_type: EmailType,
        subject: str,
        content: str,
        attachments: Optional[List[str]] = None,
        conn: Optional[asyncpg.Connection] = None,
    ) -> Notification:
        """Persist a pending notification without sending it."""
        notification = await self.notifications.create(
            recipient_email=recipient_email,
            recipient_name=recipient_name,
            request_id=request_id,
            email_type=email_type,
            subject=subject,
            content=content,
            attachments=attachments or [],
            conn=conn,
        )
        logger.info("Notification enqueued", notification_id=str(notification.id), email_type=email_type.value)
        return notification

    async def dispatch(self, notification: Notification) -> NotificationStatus:
        """
        Best-effort delivery of a freshly stored notification followed by a sweep.

        Never raises: failures are recorded on the notification row or logged.
        When a concurrent sweep already holds the claim, delivery is left to it
        and PENDING is returned.
        """
        status = notification.status
        try:
            if await self.notifications.claim(notification.id, self.claim_seconds):
                status = await self.deliver(notification)
            else:
                logger.debug("Notification claimed by a concurrent sweep", notification_id=str(notification.id))
            await self.sweep()
        except PortalError as e:
            logger.warning(
                f"Notification dispatch incomplete, left for the next sweep: {e}",
                notification_id=str(notification.id),
                error_type=type(e).__name__,
            )
        return status

    async def deliver(self, notification: Notification) -> NotificationStatus:
        """
        Send one notification and record the outcome.

        The caller must hold the claim on the row (see claim/claim_pending).

        Returns:
            SENT on provider success, FAILED otherwise (error appended to content)

        Raises:
            PersistenceFailure: the status write failed
        """
        html_body = render_email_html(notification, self.portal_name)

        try:
            await self.email_client.send(
                recipient_email=notification.recipient_email,
                recipient_name=notification.recipient_name,
                subject=notification.subject,
                html_body=html_body,
                attachments=notification.attachments,
            )
        except DeliveryFailure as e:
            logger.warning(
                f"Notification delivery failed: {e.detail}",
                notification_id=str(notification.id),
                recipient=notification.recipient_email,
            )
            await self.notifications.mark_failed(notification.id, e.detail)
            return NotificationStatus.FAILED

        await self.notifications.mark_sent(notification.id)
        logger.info(
            "Notification sent",
            notification_id=str(notification.id),
            recipient=notification.recipient_email,
            email_type=notification.email_type.value,
        )
        return NotificationStatus.SENT

    async def sweep(self, limit: Optional[int] = None) -> SweepResult:
        """
        Claim and deliver up to `limit` pending notifications, oldest first, one at a time.

        Raises:
            PersistenceFailure: pending notifications could not be claimed
        """
        limit = self.sweep_limit if limit is None else limit
        result = SweepResult()
        if limit <= 0:
            return result

        pending = await self.notifications.claim_pending(limit, self.claim_seconds)
        if pending:
            logger.info(f"Processing {len(pending)} pending email notifications")

        for notification in pending:
            result.processed += 1
            try:
                status = await self.deliver(notification)
            except PortalError as e:
                # status write failed; the row stays pending until its claim expires
                logger.error(
                    f"Could not record delivery outcome: {e}",
                    notification_id=str(notification.id),
                )
                continue

            if status == NotificationStatus.SENT:
                result.sent += 1
            else:
                result.failed += 1

        return result
