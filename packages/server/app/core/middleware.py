"""
HTTP boundary middleware: CORS headers, pre-flight answers, security headers,
and the last-resort internal error handler.
"""

from __future__ import annotations

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from app.core.errors import InternalError, error_body

log = structlog.get_logger()

PREFLIGHT_ALLOW_HEADERS = "Content-Type, Authorization"

# ---------------------------------------------------------------------------
# Security Headers
# ---------------------------------------------------------------------------

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Cache-Control": "no-store",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Attach security headers to every response."""

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        return response


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------

class CORSHeadersMiddleware(BaseHTTPMiddleware):
    """Advertise the allowed origin on every response, errors included."""

    def __init__(self, app, allow_origin: str = "*"):
        super().__init__(app)
        self.allow_origin = allow_origin

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        response.headers["Access-Control-Allow-Origin"] = self.allow_origin
        return response


def preflight_response(methods: str) -> Response:
    """Empty 204 answer to an OPTIONS pre-flight for one endpoint."""
    return Response(
        status_code=204,
        headers={
            "Access-Control-Allow-Methods": methods,
            "Access-Control-Allow-Headers": PREFLIGHT_ALLOW_HEADERS,
        },
    )


# ---------------------------------------------------------------------------
# Unexpected failures
# ---------------------------------------------------------------------------

class InternalErrorMiddleware(BaseHTTPMiddleware):
    """
    Collapse any unhandled exception into a generic 500.

    The exception is logged with request context; nothing about it reaches
    the caller.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        try:
            return await call_next(request)
        except Exception:
            log.exception(
                "request.failed",
                method=request.method,
                path=request.url.path,
            )
            error = InternalError()
            return JSONResponse(
                status_code=error.status,
                content=error_body(error.code, error.message, error.status),
            )
