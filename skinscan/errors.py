"""
Error taxonomy for the SkinScan backend and its mapping onto HTTP responses.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class SkinScanError(Exception):
    """Base class for failures that are reported to API callers."""

    status_code = 500
    code = "InternalError"
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(SkinScanError):
    status_code = 401
    code = "Unauthenticated"
    default_message = "Unauthorized: Invalid token"


class Forbidden(SkinScanError):
    status_code = 403
    code = "Forbidden"
    default_message = "Forbidden"


class ValidationError(SkinScanError):
    status_code = 400
    code = "ValidationError"
    default_message = "Invalid request"


class NotFound(SkinScanError):
    status_code = 404
    code = "NotFound"
    default_message = "Not found"


class Conflict(SkinScanError):
    status_code = 409
    code = "Conflict"
    default_message = "Resource already exists"


class ServiceMisconfigured(SkinScanError):
    status_code = 503
    code = "ServiceMisconfigured"
    default_message = "Service not configured"


class IdentityProviderError(SkinScanError):
    """
    The identity provider rejected a request (400) or could not be reached
    (502).
    """

    status_code = 502
    code = "IdentityProviderError"
    default_message = "Identity provider unavailable"

    def __init__(self, message: str | None = None, status_code: int | None = None):
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code


class UpstreamFetchError(SkinScanError):
    status_code = 502
    code = "UpstreamFetchError"
    default_message = "Failed to fetch image from storage"


class UpstreamStorageError(SkinScanError):
    status_code = 502
    code = "UpstreamStorageError"
    default_message = "Failed to upload image"


class ClassificationServiceError(SkinScanError):
    status_code = 502
    code = "ClassificationServiceError"
    default_message = "ML analysis failed"


class InternalError(SkinScanError):
    pass


def _error_response(
    status_code: int, code: str, message: str, headers: dict | None = None
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": message, "code": code},
        headers=headers,
    )


_STATUS_CODES = {
    400: ValidationError,
    401: Unauthenticated,
    403: Forbidden,
    404: NotFound,
    409: Conflict,
}


async def handle_skinscan_error(request: Request, exc: SkinScanError) -> JSONResponse:
    headers = None
    if isinstance(exc, Unauthenticated):
        headers = {"WWW-Authenticate": "Bearer"}
    if exc.status_code >= 500:
        logger.warning(
            "%s %s failed with %s: %s",
            request.method,
            request.url.path,
            exc.code,
            exc.message,
        )
    return _error_response(exc.status_code, exc.code, exc.message, headers)


async def handle_request_validation(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        problems.append(f"{location}: {error.get('msg')}" if location else error.get("msg"))
    message = "; ".join(problems) or ValidationError.default_message
    return _error_response(400, ValidationError.code, message)


async def handle_http_exception(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    error_cls = _STATUS_CODES.get(exc.status_code)
    if error_cls is NotFound:
        return _error_response(404, NotFound.code, NotFound.default_message)
    code = error_cls.code if error_cls else "HTTPError"
    return _error_response(exc.status_code, code, str(exc.detail), exc.headers)


async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(500, InternalError.code, InternalError.default_message)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SkinScanError, handle_skinscan_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(Exception, handle_unexpected)
