"""API middleware: CORS, request logging, rate limiting and error handling.

Starlette middleware is a stack (last added runs first).  ``create_app``
adds them so a request flows

    Client -> CORS -> RequestLogging -> ErrorHandling -> RateLimit -> route

and RequestLoggingMiddleware records the final status code, including
statuses produced by the error handler.  Each middleware implements
``dispatch`` with explicit code before and after ``call_next``.
"""

from __future__ import annotations

import time
import traceback
from datetime import datetime, timezone

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from plantops.api.rate_limit import FixedWindowRateLimiter
from plantops.api.schemas import ErrorResponse
from plantops.utils.errors import PlantOpsError, RateLimitExceededError
from plantops.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


def client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def error_response(
    exc: Exception,
    status_code: int,
    detail: str,
    include_stack: bool = False,
) -> JSONResponse:
    """Build the sanitized JSON error body shared by every error path."""
    retry_after = exc.retry_after if isinstance(exc, RateLimitExceededError) else None
    body = ErrorResponse(
        error=type(exc).__name__ if isinstance(exc, PlantOpsError) else _reason(status_code),
        detail=detail,
        status_code=status_code,
        timestamp=datetime.now(tz=timezone.utc),
        retry_after=retry_after,
        stack=traceback.format_exception(exc) if include_stack else None,
    )
    headers = {"Retry-After": str(retry_after)} if retry_after is not None else None
    return JSONResponse(status_code=status_code, content=body.to_content(), headers=headers)


def _reason(status_code: int) -> str:
    return {
        404: "Not Found",
        405: "Method Not Allowed",
        422: "Unprocessable Entity",
        500: "Internal Server Error",
    }.get(status_code, "HTTP Error")


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------


def configure_cors(app: FastAPI, *, allowed_origins: list[str] | None = None) -> None:
    """Add CORS middleware; defaults to ``["*"]`` when no origins are given."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Retry-After"],
    )


# ---------------------------------------------------------------------------
# Request Logging
# ---------------------------------------------------------------------------


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every HTTP request with method, path, status code and duration."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            method=request.method,
            path=str(request.url.path),
            client=client_key(request),
        )
        start = time.perf_counter()
        response: Response | None = None

        try:
            response = await call_next(request)
            return response
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            status_code = response.status_code if response else 500
            _logger.info(
                "http_request",
                status=status_code,
                duration_ms=duration_ms,
                user_agent=request.headers.get("user-agent"),
            )
            structlog.contextvars.clear_contextvars()


# ---------------------------------------------------------------------------
# Rate Limiting
# ---------------------------------------------------------------------------


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Reject over-budget clients with 429 before the route runs.

    Uploads (``POST`` under *upload_prefix*) draw on the stricter upload
    budget only; everything else under ``/api`` draws on the general
    budget.  Health probes are never limited.
    """

    def __init__(
        self,
        app: ASGIApp,
        general: FixedWindowRateLimiter,
        upload: FixedWindowRateLimiter,
        upload_prefix: str = "/api/documents",
        exempt_prefix: str = "/api/health",
    ) -> None:
        super().__init__(app)
        self._general = general
        self._upload = upload
        self._upload_prefix = upload_prefix
        self._exempt_prefix = exempt_prefix

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        path = request.url.path
        if path.startswith("/api") and not path.startswith(self._exempt_prefix):
            limiter = (
                self._upload
                if request.method == "POST" and path.startswith(self._upload_prefix)
                else self._general
            )
            try:
                remaining = limiter.hit(client_key(request))
            except RateLimitExceededError as exc:
                return error_response(exc, exc.status_code, exc.message)

            response = await call_next(request)
            response.headers["X-RateLimit-Limit"] = str(limiter.max_requests)
            response.headers["X-RateLimit-Remaining"] = str(remaining)
            return response

        return await call_next(request)


# ---------------------------------------------------------------------------
# Error Handling
# ---------------------------------------------------------------------------


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Translate exceptions into sanitized JSON error responses.

    ``PlantOpsError`` subclasses map to their declared ``status_code``;
    anything else becomes a 500 with a generic message.  Full details are
    logged server-side.  Stack traces reach the client only when
    *include_stack* is set (non-production).
    """

    def __init__(self, app: ASGIApp, include_stack: bool = False) -> None:
        super().__init__(app)
        self._include_stack = include_stack

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except PlantOpsError as exc:
            log = _logger.warning if exc.status_code < 500 else _logger.error
            log(
                "application_error",
                error_type=type(exc).__name__,
                message=exc.message,
                provider=exc.provider_name,
                status=exc.status_code,
                path=str(request.url.path),
            )
            return error_response(exc, exc.status_code, exc.message, self._include_stack)
        except Exception as exc:
            _logger.exception(
                "unhandled_error",
                error_type=type(exc).__name__,
                path=str(request.url.path),
            )
            return error_response(exc, 500, "Internal Server Error", self._include_stack)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render framework HTTP errors (unknown route, wrong method) in the shared shape."""
    detail = exc.detail if isinstance(exc.detail, str) else _reason(exc.status_code)
    if exc.status_code == 404 and detail == "Not Found":
        detail = f"Route {request.method} {request.url.path} not found"
    return error_response(exc, exc.status_code, detail)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render request-body validation failures in the shared shape.

    Only field locations and messages are reported; the offending input is
    never echoed back.
    """
    problems: list[str] = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        message = error.get("msg", "invalid")
        problems.append(f"{location}: {message}" if location else message)
    _logger.info("request_validation_failed", path=str(request.url.path), errors=len(problems))
    return error_response(exc, 422, "; ".join(problems) or "invalid request")
