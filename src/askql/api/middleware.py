"""
Middleware and exception handlers for the AskQL FastAPI application.

This module contains:
- Trace-id propagation (X-Trace-ID header in, same header out)
- Request logging with duration
- Exception handlers turning every failure into an ErrorResponse body

Workflow failures never reach these handlers: AskQLService reports them in
the AskResponse body. What lands here are request validation errors,
unavailable dependencies (no database, no workflow) and genuine bugs.

Usage in main.py:
    app.middleware("http")(logging_middleware)
    app.middleware("http")(trace_id_middleware)
    register_exception_handlers(app)
"""

import time
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Any, Callable, Dict, Optional

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..domain.errors import AskQLException
from ..domain.responses import ErrorResponse
from ..utils.logging import get_module_logger
from ..utils.tracing import current_trace_id, generate_trace_id, set_trace_id, trace_context

logger = get_module_logger()

# Requests polled by load balancers; logged at debug level only
QUIET_PATHS = frozenset({"/health"})


# =============================================================================
# Middleware Functions
# =============================================================================


async def trace_id_middleware(request: Request, call_next: Callable) -> Response:
    """
    Give every request a trace id.

    The id comes from the X-Trace-ID header when the caller sends one,
    is bound into the structlog context for the request, and is echoed
    back in the response header.
    """
    trace_id = request.headers.get("X-Trace-ID") or generate_trace_id()
    set_trace_id(trace_id)

    with trace_context():
        response = await call_next(request)

    response.headers["X-Trace-ID"] = trace_id
    return response


async def logging_middleware(request: Request, call_next: Callable) -> Response:
    """Log each request and its outcome; adds X-Process-Time in milliseconds."""
    start = time.perf_counter()
    log = logger.debug if request.url.path in QUIET_PATHS else logger.info

    log(
        "HTTP request started",
        method=request.method,
        path=request.url.path,
        client_ip=request.client.host if request.client else None,
        trace_id=current_trace_id(),
    )

    response = await call_next(request)

    duration_ms = round((time.perf_counter() - start) * 1000, 2)
    response.headers["X-Process-Time"] = str(duration_ms)

    log(
        "HTTP request completed",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=duration_ms,
        trace_id=current_trace_id(),
    )

    return response


# =============================================================================
# Exception Handlers
# =============================================================================


def _status_code_name(status_code: int) -> str:
    """HTTP status as an error code, e.g. 405 -> "method_not_allowed"."""
    try:
        return HTTPStatus(status_code).name.lower()
    except ValueError:
        return "http_error"


def _error_response(
    status_code: int,
    error_code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    """
    Build the JSON body shared by every error:
    {"error", "message", "details"?, "trace_id", "timestamp"}
    """
    body = ErrorResponse(
        error=error_code.lower(),
        message=message,
        details=details or None,
        trace_id=current_trace_id(),
        timestamp=datetime.now(timezone.utc),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json", exclude_none=True))


async def askql_exception_handler(request: Request, exc: AskQLException) -> JSONResponse:
    """Map an AskQLException to its own status code and error code."""
    log = logger.warning if exc.http_status < 500 else logger.error
    log(
        exc.message,
        error_code=exc.error_code,
        http_status=exc.http_status,
        details=exc.details,
        path=request.url.path,
        trace_id=current_trace_id(),
    )
    return _error_response(exc.http_status, exc.error_code, exc.message, exc.details)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """422 with one entry per invalid field."""
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]

    logger.warning(
        "Request validation failed",
        errors=errors,
        path=request.url.path,
        trace_id=current_trace_id(),
    )

    return _error_response(422, "VALIDATION_ERROR", "Request validation failed", {"errors": errors})


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Framework HTTP errors (404 route, 405 method, ...) in the common body."""
    error_code = _status_code_name(exc.status_code)

    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        f"HTTP {exc.status_code}: {exc.detail}",
        error_code=error_code,
        path=request.url.path,
        trace_id=current_trace_id(),
    )

    message = str(exc.detail) if exc.detail else f"HTTP {exc.status_code} error"
    return _error_response(exc.status_code, error_code, message)


async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    """ValueError raised below the API layer means bad input: 400."""
    logger.warning("ValueError", error=str(exc), path=request.url.path, trace_id=current_trace_id())
    return _error_response(400, "BAD_REQUEST", str(exc))


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback: log with stack trace, return a generic 500 without internals."""
    logger.error(
        "Unhandled exception occurred",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        trace_id=current_trace_id(),
        exc_info=True,
    )
    return _error_response(500, "INTERNAL_ERROR", "An internal server error occurred. Please try again later.")


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register all exception handlers with the FastAPI application.

    Starlette picks the handler of the most specific matching class, so
    AskQLException subclasses never fall through to the generic handler.
    """
    # FastAPI's add_exception_handler typing does not accept subclass-specific handlers
    app.add_exception_handler(AskQLException, askql_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(ValueError, value_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, general_exception_handler)  # type: ignore[arg-type]


# =============================================================================
# OpenAPI Error Response Examples
# =============================================================================


def _documented_error(description: str, error: str, message: str, **extra: Any) -> Dict[str, Any]:
    example = {
        "error": error,
        "message": message,
        **extra,
        "trace_id": "550e8400-e29b-41d4-a716-446655440000",
        "timestamp": "2024-01-15T10:30:00Z",
    }
    return {"description": description, "content": {"application/json": {"example": example}}}


# Used in route decorators, e.g. responses={k: v for k, v in ERROR_RESPONSES.items() if k in [422, 503]}
ERROR_RESPONSES = {
    400: _documented_error("Bad Request", "bad_request", "Invalid request format"),
    422: _documented_error(
        "Validation Error",
        "validation_error",
        "Request validation failed",
        details={"errors": [{"field": "body.question", "message": "Field required", "type": "missing"}]},
    ),
    500: _documented_error(
        "Internal Server Error",
        "internal_error",
        "An internal server error occurred. Please try again later.",
    ),
    503: _documented_error(
        "Service Unavailable - database or workflow not initialized",
        "service_unavailable",
        "AskQL workflow not initialized",
    ),
}
