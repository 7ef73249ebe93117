"""Global exception handlers for consistent error responses.

Every error body is ``{"error": "<short message>"}``. Handlers re-attach the
rate limit triad when the limiter already saw the request, so clients can
self-throttle on failures too.

Design:
- ValidationAppError → 400
- RateLimitedAppError → 429 (JSON, or plain text for the greeting route)
- UpstreamAppError → upstream status when it is an error status, else 500
- ClientDisconnectedAppError → 499 (nobody reads it; keeps access logs honest)
- other AppError → 500
- Starlette HTTPException (405 from routing) → its status, headers kept
- Unexpected Exception → generic 500 (safety net, nothing leaked)
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from grammar_gateway.core.config import settings
from grammar_gateway.core.errors import (
    AppError,
    ClientDisconnectedAppError,
    RateLimitedAppError,
    UpstreamAppError,
    ValidationAppError,
)
from grammar_gateway.core.logging import get_request_id
from grammar_gateway.core.rate_limit import headers_from_state

logger = logging.getLogger(__name__)

CLIENT_CLOSED_REQUEST = 499
GENERIC_ERROR_MESSAGE = "Internal Server Error"


class UTF8JSONResponse(JSONResponse):
    """JSON response advertising its charset explicitly."""

    media_type = "application/json; charset=utf-8"


def status_for(exc: AppError) -> int:
    """Map a domain error to its HTTP status code."""

    if isinstance(exc, ValidationAppError):
        return 400
    if isinstance(exc, RateLimitedAppError):
        return 429
    if isinstance(exc, UpstreamAppError):
        if exc.status_code is not None and 400 <= exc.status_code <= 599:
            return exc.status_code
        return 500
    if isinstance(exc, ClientDisconnectedAppError):
        return CLIENT_CLOSED_REQUEST
    return 500


async def app_error_handler(request: Request, exc: AppError) -> Response:
    """Handle domain application errors with the ``{"error": ...}`` body.

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        Response with appropriate status code, quota headers when known.
    """
    status_code = status_for(exc)
    headers = dict(headers_from_state(request))

    log = logger.error if status_code >= 500 else logger.warning
    log(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_kind": exc.kind.value,
            "error_message": exc.message,
            "status_code": status_code,
            "details": exc.details or {},
            "request_path": request.url.path,
            "request_id": get_request_id(),
        },
    )

    if isinstance(exc, RateLimitedAppError):
        retry_after = (exc.details or {}).get("retry_after")
        if settings.app.rate_limit_include_retry_after and retry_after is not None:
            headers["Retry-After"] = str(retry_after)
        if exc.plain_text:
            return PlainTextResponse(
                settings.app.greeting_throttled_text,
                status_code=status_code,
                headers=headers,
            )

    return UTF8JSONResponse(
        status_code=status_code,
        content={"error": exc.message},
        headers=headers,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> Response:
    """Render framework HTTP errors (405, 404) in the gateway's error format.

    Routing raises these before any dependency runs, so a wrong method never
    consumes quota. ``Allow`` and other headers set by Starlette are kept.
    """
    headers = dict(exc.headers or {})
    headers.update(headers_from_state(request))

    logger.info(
        "http_error_handled",
        extra={
            "status_code": exc.status_code,
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    return UTF8JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=headers,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs detailed information for debugging while returning a generic
    message. No stack traces or exception text reach the client.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
            "request_id": get_request_id(),
        },
    )

    return UTF8JSONResponse(
        status_code=500,
        content={"error": GENERIC_ERROR_MESSAGE},
        headers=dict(headers_from_state(request)),
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance.
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(StarletteHTTPException)(http_exception_handler)
    app.exception_handler(Exception)(general_exception_handler)
