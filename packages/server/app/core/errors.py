"""
Error taxonomy and the JSON error envelope.

Services raise these; the handlers registered in ``app.main`` render them as
``{"error": {"code", "message", "status"}, ...extra}``.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import HTTPException

from notegen_shared.schemas.common import ErrorCode


class APIError(HTTPException):
    """An expected failure with a stable machine-readable code."""

    status: int = 500
    code: ErrorCode = ErrorCode.INTERNAL
    default_message: str = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        headers: Optional[dict[str, str]] = None,
        **extra: Any,
    ):
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(status_code=self.status, detail=self.message, headers=headers)


class Unauthenticated(APIError):
    status = 401
    code = ErrorCode.UNAUTHENTICATED
    default_message = "Unauthorized"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message, headers={"WWW-Authenticate": "Bearer"})


class InvalidRequest(APIError):
    status = 400
    code = ErrorCode.INVALID_REQUEST
    default_message = "Missing required fields"


class Forbidden(APIError):
    status = 403
    code = ErrorCode.FORBIDDEN
    default_message = "Forbidden"


class NotFound(APIError):
    status = 404
    code = ErrorCode.NOT_FOUND
    default_message = "Not found"


class MethodNotAllowed(APIError):
    status = 405
    code = ErrorCode.METHOD_NOT_ALLOWED
    default_message = "Method not allowed"


class QuotaExceeded(APIError):
    status = 429
    code = ErrorCode.RATE_LIMIT_EXCEEDED
    default_message = "Rate limit exceeded"

    def __init__(self, limit: int, reset_time: str):
        self.limit = limit
        self.reset_time = reset_time
        super().__init__(limit=limit, resetTime=reset_time)


class InternalError(APIError):
    pass


# Framework-raised HTTPExceptions (unknown route, wrong verb, bad body) carry no code.
FRAMEWORK_ERRORS: dict[int, type[APIError]] = {
    400: InvalidRequest,
    403: Forbidden,
    404: NotFound,
    405: MethodNotAllowed,
}


def error_body(code: ErrorCode, message: str, status: int, **extra: Any) -> dict:
    """Build the error envelope used by every non-2xx response."""
    return {
        "error": {
            "code": code.value,
            "message": message,
            "status": status,
        },
        **extra,
    }
