"""
Shared API Middleware
======================

Common middleware and exception handlers for the FastAPI application.

Every error leaves the service as the same JSON document:

    {
        "status": 403,
        "error": "Access Forbidden",
        "message": "...",
        "error_code": "ERR_FORBIDDEN",
        "path": "/users/7",
        "correlation_id": "5f0c...",
        "timestamp": "2024-01-15T10:00:00+00:00"
    }
"""

import time
import uuid
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.middleware.base import BaseHTTPMiddleware

from src.core.exceptions import ApplicationException
from src.shared.infrastructure.logging import (
    get_logger,
    reset_correlation_id,
    set_correlation_id,
)

logger = get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Adds correlation ID to requests for tracing.

    The ID is taken from the incoming header or generated, stored on
    ``request.state``, bound to the logging context for the lifetime of the
    request and echoed in the response header.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER, str(uuid.uuid4()))
        request.state.correlation_id = correlation_id

        token = set_correlation_id(correlation_id)
        try:
            response = await call_next(request)
        finally:
            reset_correlation_id(token)

        response.headers[CORRELATION_HEADER] = correlation_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs all requests and responses.

    Provides audit trail and debugging information.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = getattr(request.state, "correlation_id", "unknown")
        start_time = time.perf_counter()

        logger.info(
            "Request started",
            extra={
                "correlation_id": correlation_id,
                "method": request.method,
                "url": str(request.url),
                "client": request.client.host if request.client else None
            }
        )

        try:
            response = await call_next(request)
        except Exception as e:
            response_time = time.perf_counter() - start_time
            logger.error(
                "Request failed",
                extra={
                    "correlation_id": correlation_id,
                    "method": request.method,
                    "url": str(request.url),
                    "error": str(e),
                    "response_time_ms": int(response_time * 1000)
                }
            )
            raise

        response_time = time.perf_counter() - start_time
        logger.info(
            "Request completed",
            extra={
                "correlation_id": correlation_id,
                "method": request.method,
                "url": str(request.url),
                "status_code": response.status_code,
                "response_time_ms": int(response_time * 1000)
            }
        )
        return response


def error_response(
    request: Request,
    status_code: int,
    error: str,
    message: str,
    error_code: str,
    correlation_id: Optional[str] = None
) -> JSONResponse:
    """Build the structured error document shared by all handlers."""
    correlation_id = correlation_id or getattr(request.state, "correlation_id", None) or str(uuid.uuid4())
    return JSONResponse(
        status_code=status_code,
        content={
            "status": status_code,
            "error": error,
            "message": message,
            "error_code": error_code,
            "path": request.url.path,
            "correlation_id": correlation_id,
            "timestamp": datetime.now(timezone.utc).isoformat()
        },
        headers={CORRELATION_HEADER: correlation_id}
    )


async def application_exception_handler(request: Request, exc: ApplicationException) -> JSONResponse:
    """Render any ApplicationException with its own status and error code."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"{exc.title}: {exc.message}",
        extra={
            "path": request.url.path,
            "error_code": exc.error_code,
            "error_type": type(exc).__name__
        }
    )
    return error_response(request, exc.status_code, exc.title, exc.message, exc.error_code)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Flatten pydantic validation errors into ``field: message; ...``."""
    errors = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()) if part != 'body')}: {err.get('msg')}"
        for err in exc.errors()
    )
    logger.warning(f"Validation failed: {errors}", extra={"path": request.url.path})
    return error_response(request, 400, "Validation Failed", errors, "ERR_VALIDATION")


def _integrity_message(detail: str) -> str:
    upper = detail.upper()
    if "UNIQUE" in upper:
        return "A resource with this value already exists"
    if "FOREIGN" in upper:
        return "Cannot perform operation due to foreign key constraints"
    if "NOT NULL" in upper:
        return "A required field is missing"
    return "Database constraint violation"


async def integrity_exception_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    """Database constraint violations surface as conflicts."""
    logger.error("Data integrity violation", extra={"path": request.url.path})
    return error_response(
        request, 409, "Data Integrity Violation",
        _integrity_message(str(exc.orig)), "ERR_DATA_INTEGRITY"
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global exception handler for unhandled exceptions.

    Returns consistent error responses for all exceptions.
    """
    correlation_id = getattr(request.state, "correlation_id", "unknown")

    logger.error(
        "Unhandled exception",
        extra={
            "correlation_id": correlation_id,
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__,
            "error_message": str(exc)
        }
    )

    return error_response(
        request, 500, "Internal Error", "Internal server error", "ERR_INTERNAL",
        correlation_id=correlation_id
    )
