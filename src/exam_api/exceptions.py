"""
Portal exception taxonomy.

Every core operation fails with one of these. Each class carries the HTTP status
used by the API layer and a human-readable message the UI can show as-is.
"""

from typing import Optional


class PortalError(Exception):
    """Base class for all portal errors."""

    http_status: int = 500
    user_message: str = "Something went wrong. Please try again."

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.user_message
        super().__init__(self.detail)


class ValidationError(PortalError):
    """Bad input shape. Recoverable: re-prompt the user."""

    http_status = 400
    user_message = "Invalid input. Please check the form and try again."


class UnsupportedFileType(ValidationError):
    """Attachment extension is outside the allow-list."""

    http_status = 415
    user_message = "File type not supported. Please upload PDF, Image, or Excel files only."


class Unauthorized(PortalError):
    """Role or department mismatch. No state was changed."""

    http_status = 403
    user_message = "You are not allowed to perform this action."


class NotFound(PortalError):
    """Referenced entity does not exist or is not visible to the caller."""

    http_status = 404
    user_message = "The requested item was not found."


class InvalidTransition(PortalError):
    """Request is not in a state the transition may leave from."""

    http_status = 409
    user_message = "Someone has already handled this request."


class Conflict(PortalError):
    """Lost a transition race. Refetch and retry."""

    http_status = 409
    user_message = "Someone has already handled this request. Please refresh and try again."


class ExternalServiceFailure(PortalError):
    """A dependent service failed. Surfaced as retryable."""

    http_status = 503
    user_message = "A dependent service is unavailable. Please try again."


class StorageFailure(ExternalServiceFailure):
    """Blob store upload failed."""


class PersistenceFailure(ExternalServiceFailure):
    """Relational store write failed."""


class DeliveryFailure(ExternalServiceFailure):
    """Email provider rejected or did not answer."""
