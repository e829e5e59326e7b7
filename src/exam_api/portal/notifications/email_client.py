"""
Transactional Email Client

Sends rendered notifications through the Brevo HTTPS JSON API. The API key is
server-side configuration and never leaves this process.
"""

from typing import Any
from typing import Dict
from typing import List
from typing import Optional

import httpx
from loguru import logger

from exam_api.exceptions import DeliveryFailure
from exam_api.portal.notifications.templates import file_name_from_url


class BrevoEmailClient:
    """Async client for the Brevo transactional email endpoint."""

    def __init__(
        self,
        api_key: Optional[str],
        sender_email: str,
        sender_name: str,
        api_url: str = "https://api.brevo.com/v3/smtp/email",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.sender_email = sender_email
        self.sender_name = sender_name
        self.api_url = api_url
        self.timeout = timeout
        self.transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def build_payload(
        self,
        recipient_email: str,
        recipient_name: Optional[str],
        subject: str,
        html_body: str,
        attachments: List[str],
    ) -> Dict[str, Any]:
        """Build the provider request body."""
        recipient: Dict[str, str] = {"email": recipient_email}
        if recipient_name:
            recipient["name"] = recipient_name

        payload: Dict[str, Any] = {
            "sender": {"name": self.sender_name, "email": self.sender_email},
            "to": [recipient],
            "subject": subject,
            "htmlContent": html_body,
        }
        if attachments:
            payload["attachment"] = [{"url": url, "name": file_name_from_url(url)} for url in attachments]
        return payload

    async def send(
        self,
        recipient_email: str,
        recipient_name: Optional[str],
        subject: str,
        html_body: str,
        attachments: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """
        Send one email synchronously from the caller's point of view.

        Returns:
            Provider response body (contains messageId on success)

        Raises:
            DeliveryFailure: client not configured, transport error, timeout or non-2xx reply
        """
        if not self.is_configured:
            raise DeliveryFailure("Email provider API key is not configured")

        payload = self.build_payload(recipient_email, recipient_name, subject, html_body, attachments or [])
        headers = {
            "api-key": self.api_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.api_url, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            raise DeliveryFailure(f"Email provider timed out after {self.timeout}s") from e
        except httpx.RequestError as e:
            raise DeliveryFailure(f"Email provider request failed: {e}") from e

        if not response.is_success:
            raise DeliveryFailure(f"Brevo API error {response.status_code}: {response.text}")

        logger.debug("Email accepted by provider", recipient=recipient_email, status_code=response.status_code)
        try:
            return response.json()
        except ValueError:
            return {}
