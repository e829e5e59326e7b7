"""Error handling for the FastAPI application and portal exceptions."""

import pydantic
from fastapi import Request
from fastapi import status
from fastapi.responses import JSONResponse
from loguru import logger

from exam_api.exceptions import ExternalServiceFailure
from exam_api.exceptions import PortalError
from exam_api.monitoring.logger import log_response_info

# Explicit exports
__all__ = [
    "handle_broad_exceptions",
    "handle_portal_errors",
    "handle_pydantic_validation_errors",
]


# fastapi docs on middlewares: https://fastapi.tiangolo.com/tutorial/middleware/
async def handle_broad_exceptions(request: Request, call_next):
    """Handle any exception that goes unhandled by a more specific exception handler."""
    try:
        return await call_next(request)
    except Exception as err:  # pylint: disable=broad-except
        error_response = {"detail": "Internal server error", "error_type": type(err).__name__}

        logger.error(
            f"Unhandled exception: {type(err).__name__}: {str(err)}",
            http_status=500,
            http_method=request.method,
            url_path=str(request.url.path),
            error_type=type(err).__name__,
            error_message=str(err),
            response_body=error_response,
            exc_info=True,
        )

        response = JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_response,
        )
        log_response_info(response)
        return response


# fastapi docs on error handlers: https://fastapi.tiangolo.com/tutorial/handling-errors/
async def handle_pydantic_validation_errors(request: Request, exc: pydantic.ValidationError) -> JSONResponse:
    """Handle Pydantic validation errors."""
    errors = exc.errors()
    error_response = {
        "detail": [
            {
                "msg": error["msg"],
                "input": error["input"],
            }
            for error in errors
        ]
    }

    logger.warning(
        f"Validation error: {len(errors)} validation errors",
        http_status=422,
        http_method=request.method,
        url_path=str(request.url.path),
        error_type="ValidationError",
        validation_errors=errors,
        response_body=error_response,
    )

    response = JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
        content=error_response,
    )
    log_response_info(response)

    return response


async def handle_portal_errors(request: Request, exc: PortalError) -> JSONResponse:
    """
    Convert portal exceptions into HTTP responses.

    Maps the portal taxonomy to HTTP status codes:
    - ValidationError -> 400 Bad Request
    - UnsupportedFileType -> 415 Unsupported Media Type
    - Unauthorized -> 403 Forbidden
    - NotFound -> 404 Not Found
    - InvalidTransition / Conflict -> 409 Conflict
    - StorageFailure / PersistenceFailure / DeliveryFailure -> 503 Service Unavailable

    Parameters
    ----------
    request : Request
        FastAPI request object
    exc : PortalError
        Portal exception raised by a core operation

    Returns
    -------
    JSONResponse
        HTTP response with the exception's status code and user-facing message
    """
    http_status = exc.http_status
    error_type = type(exc).__name__
    error_response = {"detail": exc.detail, "error_type": error_type}

    if isinstance(exc, ExternalServiceFailure):
        # internal detail stays in the log; callers get the retryable message
        error_response["detail"] = exc.user_message
        logger.error(
            f"Dependent service failure: {error_type}: {exc.detail}",
            http_status=http_status,
            http_method=request.method,
            url_path=str(request.url.path),
            error_type=error_type,
            error_message=exc.detail,
            response_body=error_response,
        )
    else:
        logger.warning(
            f"Request rejected: {error_type}: {exc.detail}",
            http_status=http_status,
            http_method=request.method,
            url_path=str(request.url.path),
            error_type=error_type,
            response_body=error_response,
        )

    response = JSONResponse(status_code=http_status, content=error_response)
    log_response_info(response)
    return response
