"""Request context middleware for logging."""
import time
import uuid
from typing import Any
from typing import Callable

from fastapi import Request
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_ID_HEADER = "X-Request-ID"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Middleware to capture and log request context information."""

    async def dispatch(self, request: Request, call_next: Callable) -> Any:
        """
        Capture request context and add to logging.

        Captures:
        - Request ID (from header or generated)
        - Client IP (real IP from proxy headers or direct)
        - Caller identity (as forwarded by the identity gateway)
        - Request path and method

        Request bodies are not captured: most portal calls are multipart uploads.
        """
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        client_ip = self._get_client_ip(request)
        user_identity = self._get_user_identity(request)
        request_path = f"{request.method} {request.url.path}"

        with logger.contextualize(
            request_id=request_id,
            client_ip=client_ip,
            user_identity=user_identity,
            request_path=request_path,
        ):
            start_time = time.time()
            response = await call_next(request)
            duration_ms = (time.time() - start_time) * 1000

            response.headers[REQUEST_ID_HEADER] = request_id

            logger.info(
                f"{request.method} {request.url.path} - {response.status_code}",
                event_type="http_request",
                http_method=request.method,
                url_path=str(request.url.path),
                url_query=str(request.query_params) if request.query_params else None,
                status_code=response.status_code,
                response_time_ms=round(duration_ms, 2),
            )

            return response

    def _get_client_ip(self, request: Request) -> str:
        """Get real client IP address, honouring X-Forwarded-For from the gateway."""
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            # X-Forwarded-For can contain multiple IPs, take the first one
            return forwarded_for.split(",")[0].strip()

        if request.client:
            return request.client.host

        return "unknown"

    def _get_user_identity(self, request: Request) -> str:
        """Get the caller identity forwarded by the identity gateway, or anonymous."""
        email = request.headers.get("X-Identity-Email")
        subject = request.headers.get("X-Identity-Subject")
        if email:
            return f"{email} ({subject})" if subject else email
        return "anonymous"
