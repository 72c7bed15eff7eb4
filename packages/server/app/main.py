"""
Note Generation API Server

Entry point for the FastAPI application.
"""

import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core import hooks  # noqa: F401  (registers note change hooks)
from app.core.config import get_settings
from app.core.database import dispose_engine, get_session
from app.core.errors import FRAMEWORK_ERRORS, APIError, InvalidRequest, error_body
from app.core.logs import configure_logging
from app.core.middleware import (
    CORSHeadersMiddleware,
    InternalErrorMiddleware,
    SecurityHeadersMiddleware,
)
from app.core.redis import close_redis, ping_redis
from app.api.v1 import router as api_v1_router
from notegen_shared.schemas.common import ErrorCode

settings = get_settings()
log = structlog.get_logger()


def _render(error: APIError) -> JSONResponse:
    return JSONResponse(
        status_code=error.status_code,
        content=error_body(error.code, error.message, error.status_code, **error.extra),
        headers=error.headers,
    )


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error("request.api_error", path=request.url.path, code=exc.code.value)
    return _render(exc)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    error_cls = FRAMEWORK_ERRORS.get(exc.status_code)
    if error_cls is not None:
        return _render(error_cls(str(exc.detail), headers=getattr(exc, "headers", None)))
    code = ErrorCode.INTERNAL if exc.status_code >= 500 else ErrorCode.INVALID_REQUEST
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(code, str(exc.detail), exc.status_code),
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    log.info("request.invalid", path=request.url.path, errors=len(exc.errors()))
    return _render(InvalidRequest("Invalid request body"))


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    configure_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="Note Generation API",
        description="Admission, quota enforcement and status polling for note generation.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # Middleware (order matters — the last added is outermost)
    app.add_middleware(InternalErrorMiddleware)
    app.add_middleware(CORSHeadersMiddleware, allow_origin=settings.cors_allow_origin)
    app.add_middleware(SecurityHeadersMiddleware)

    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    # API routes
    app.include_router(api_v1_router, prefix="/api/v1")

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for liveness probes."""
        return {"status": "ok"}

    @app.get("/ready", tags=["System"])
    async def readiness_check(session: AsyncSession = Depends(get_session)):
        """Readiness check: the record store and Redis both answer."""
        try:
            await session.execute(text("SELECT 1"))
            await ping_redis()
        except Exception:
            log.exception("readiness.failed")
            return JSONResponse(status_code=503, content={"status": "unavailable"})
        return {"status": "ready"}

    @app.on_event("startup")
    async def on_startup():
        log.info("Note generation API starting", quota_timezone=settings.quota_timezone or "local")

    @app.on_event("shutdown")
    async def on_shutdown():
        log.info("Note generation API shutting down")
        await close_redis()
        await dispose_engine()

    return app


app = create_app()
