"""Application errors and the handlers that render them as JSend-style envelopes."""

import logging
import traceback
from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import settings

logger = logging.getLogger(__name__)


class AppError(Exception):
    """
    Base class for errors that map to a known HTTP response.

    Client errors (4xx) render with ``status: "fail"``, server errors (5xx)
    with ``status: "error"``.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        extensions: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize an application error.

        Args:
            message: Human-readable explanation returned to the client
            status_code: HTTP status code
            extensions: Additional error-specific information, shown in development only
        """
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.extensions = extensions or {}

    @property
    def status(self) -> str:
        return "fail" if 400 <= self.status_code < 500 else "error"

    def to_envelope(self, include_detail: bool = False) -> Dict[str, Any]:
        """Render the error as a response body."""
        body: Dict[str, Any] = {"status": self.status, "message": self.message}
        if include_detail:
            body["error"] = {
                "name": type(self).__name__,
                "statusCode": self.status_code,
                **self.extensions,
            }
            body["stack"] = "".join(traceback.format_exception(self))
        return body


class ValidationError(AppError):
    """A tour violates a schema constraint on create or update."""

    def __init__(self, errors: Optional[list[str]] = None, detail: Optional[str] = None):
        self.errors = errors or []
        if not detail:
            detail = "Invalid input data."
            if self.errors:
                detail = f"{detail} {'. '.join(self.errors)}"
        super().__init__(detail, status_code=400, extensions={"errors": self.errors})


class CastError(AppError):
    """A path or query value cannot be converted to the type it is compared with."""

    def __init__(self, path: str, value: Any):
        self.path = path
        self.value = value
        super().__init__(
            f"Invalid {path}: {value}.",
            status_code=400,
            extensions={"path": path, "value": str(value)},
        )


class BadQueryError(AppError):
    """The query string references an unknown field or operator."""

    def __init__(self, detail: str, parameter: Optional[str] = None):
        extensions = {"parameter": parameter} if parameter else {}
        super().__init__(detail, status_code=400, extensions=extensions)


class DuplicateFieldError(AppError):
    """A unique field already holds the submitted value."""

    def __init__(self, field: str, value: Any):
        self.field = field
        self.value = value
        super().__init__(
            f"Duplicate field value: {value}. Please use another value!",
            status_code=400,
            extensions={"field": field},
        )


class NotFoundError(AppError):
    """Exception for resource not found errors."""

    def __init__(
        self,
        resource_type: str = "resource",
        resource_id: Optional[str] = None,
        detail: Optional[str] = None,
    ):
        if not detail:
            detail = f"No {resource_type} found"
            if resource_id:
                detail += f" with ID '{resource_id}'"
        extensions = {"resource_type": resource_type}
        if resource_id:
            extensions["resource_id"] = resource_id
        super().__init__(detail, status_code=404, extensions=extensions)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """
    Exception handler for application errors.

    Args:
        request: FastAPI request object
        exc: Application error

    Returns:
        JSONResponse: Error envelope
    """
    logger.info(
        "Request failed",
        extra={
            "path": request.url.path,
            "error_type": type(exc).__name__,
            "status_code": exc.status_code,
            "error_message": exc.message,
        },
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_envelope(include_detail=settings.debug),
    )


def describe_validation_errors(errors) -> list[str]:
    """Flatten pydantic error dicts into 'field: message' strings."""
    messages = []
    for error in errors:
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        message = error.get("msg", "invalid value")
        messages.append(f"{location}: {message}" if location else message)
    return messages


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render FastAPI body/path validation failures as a 400 ValidationError."""
    return await app_error_handler(request, ValidationError(describe_validation_errors(exc.errors())))


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """
    Render router-level HTTP errors, including unmatched routes.

    Unmatched paths and methods become a NotFound envelope.
    """
    if exc.status_code in (404, 405):
        error = NotFoundError(detail=f"Can't find {request.url.path} on this server")
    else:
        error = AppError(str(exc.detail), status_code=exc.status_code)
    response = await app_error_handler(request, error)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Generic exception handler for unexpected errors.

    The raw error is echoed back only in development.

    Args:
        request: FastAPI request object
        exc: Unhandled exception

    Returns:
        JSONResponse: Error envelope
    """
    logger.error(
        "Unhandled error",
        extra={"path": request.url.path, "error": repr(exc)},
        exc_info=exc,
    )
    if settings.debug:
        error = AppError(str(exc) or type(exc).__name__, status_code=500)
        content = error.to_envelope(include_detail=True)
        content["error"]["name"] = type(exc).__name__
        content["stack"] = "".join(traceback.format_exception(exc))
    else:
        content = {"status": "error", "message": "Something went very wrong!"}
    return JSONResponse(status_code=500, content=content)
