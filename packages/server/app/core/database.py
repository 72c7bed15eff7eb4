"""
Record store: async engine and session scopes for requests, workers and scripts.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

from app.core.config import get_settings

settings = get_settings()
log = structlog.get_logger()


def _engine_options(url: str) -> dict:
    # Server connections are checked before reuse.
    if make_url(url).get_backend_name() == "postgresql":
        return {"pool_pre_ping": True}
    return {}


engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    **_engine_options(settings.database_url),
)

async_session_factory = sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def init_db():
    """Create the profile and note tables (development only)."""
    import app.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def dispose_engine():
    await engine.dispose()
    log.info("database.disposed")


@asynccontextmanager
async def get_session_context():
    """Unit of work outside a request: commit on success, roll back on error.

    Used by the expiry worker and the dev-token script.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency; services that must be durable commit themselves."""
    async with get_session_context() as session:
        yield session
