"""
Exception handlers for the routing layer

The services raise the taxonomy in app.exceptions and know nothing about
HTTP. A FastAPI app serving them calls register_exception_handlers() so that
every failure, whether a service error, a framework HTTPException or a request
validation failure, is rendered with one body shape:

    {"error": {"status_code": 404, "error_code": "RESOURCE_LIST_NOT_FOUND",
               "message": "...", "type": "Not Found",
               "details": {...}, "path": "/lists/12"}}

Retryable errors (TransientStorageError) add a Retry-After header.
"""

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.exceptions import CatalogError, ErrorCode

logger = logging.getLogger(__name__)

RETRY_AFTER_SECONDS = 1

ERROR_TYPES = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    409: "Conflict",
    422: "Validation Error",
    500: "Internal Server Error",
    503: "Service Unavailable",
}

# Error codes for framework-raised HTTPExceptions, which carry none of their own
HTTP_ERROR_CODES = {
    400: ErrorCode.VALIDATION_FAILED,
    401: ErrorCode.AUTH_FAILED,
    403: ErrorCode.AUTH_PERMISSION_DENIED,
    404: ErrorCode.RESOURCE_NOT_FOUND,
    409: ErrorCode.VALIDATION_DUPLICATE_RESOURCE,
    422: ErrorCode.VALIDATION_FAILED,
    500: ErrorCode.INTERNAL_ERROR,
    503: ErrorCode.SERVICE_UNAVAILABLE,
}


def get_error_type(status_code: int) -> str:
    return ERROR_TYPES.get(status_code, "Error")


def get_http_error_code(status_code: int) -> ErrorCode:
    return HTTP_ERROR_CODES.get(status_code, ErrorCode.UNKNOWN_ERROR)


def create_error_response(
    status_code: int,
    message: str,
    error_code: ErrorCode | str | None = None,
    details: dict[str, Any] | None = None,
    path: str | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Build the JSON error body; empty details and path are omitted."""
    body: dict[str, Any] = {
        "status_code": status_code,
        "message": message,
        "type": get_error_type(status_code),
    }
    if error_code:
        body["error_code"] = error_code.value if isinstance(error_code, ErrorCode) else error_code
    if details:
        body["details"] = details
    if path:
        body["path"] = path
    return JSONResponse(status_code=status_code, content={"error": body}, headers=headers)


async def catalog_exception_handler(request: Request, exc: CatalogError) -> JSONResponse:
    """Render an error raised by one of the services."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "%s on %s: %s",
        exc.error_code.value,
        request.url.path,
        exc.message,
        extra={"status_code": exc.status_code, "error_code": exc.error_code.value, "path": request.url.path},
    )

    headers = {"Retry-After": str(RETRY_AFTER_SECONDS)} if getattr(exc, "retryable", False) else None
    return create_error_response(
        exc.status_code,
        exc.message,
        error_code=exc.error_code,
        details=exc.details,
        path=request.url.path,
        headers=headers,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    logger.warning(
        "HTTP %d on %s: %s",
        exc.status_code,
        request.url.path,
        exc.detail,
        extra={"status_code": exc.status_code, "path": request.url.path},
    )
    return create_error_response(
        exc.status_code,
        str(exc.detail),
        error_code=get_http_error_code(exc.status_code),
        path=request.url.path,
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.warning("Request validation failed on %s", request.url.path, extra={"path": request.url.path})

    return create_error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Validation error",
        error_code=ErrorCode.VALIDATION_FAILED,
        details={"validation_errors": errors},
        path=request.url.path,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    # Internal details only go to the log
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, extra={"path": request.url.path})
    return create_error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "An unexpected error occurred. Please try again later.",
        error_code=ErrorCode.INTERNAL_ERROR,
        path=request.url.path,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CatalogError, catalog_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
    logger.debug("Exception handlers registered")
