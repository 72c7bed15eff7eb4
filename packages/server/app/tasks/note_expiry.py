"""
ARQ background task: delete archived notes past the retention window.

Scheduled to run once a day.
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from arq import cron
from arq.connections import RedisSettings

from app.core import hooks  # noqa: F401  (deletions are logged per note)
from app.core.config import get_settings
from app.core.database import dispose_engine, get_session_context
from app.core.logs import configure_logging
from app.services.notes import delete_expired_notes

log = structlog.get_logger()
settings = get_settings()


async def expire_archived_notes(ctx: dict) -> int:
    """Delete archived notes older than ``archive_retention_days``.

    The whole sweep is one transaction. Failures are logged and re-raised so
    ARQ's retry policy applies. Returns the number of notes deleted.
    """
    now = datetime.now(timezone.utc)
    try:
        async with get_session_context() as session:
            count = await delete_expired_notes(session, now)
    except Exception:
        log.exception("note_expiry.failed")
        raise

    log.info(
        "note_expiry.completed",
        count=count,
        retention_days=settings.archive_retention_days,
    )
    return count


async def on_startup(ctx: dict) -> None:
    configure_logging(settings.log_level, settings.log_format)
    log.info("note_expiry.worker_started")


async def on_shutdown(ctx: dict) -> None:
    await dispose_engine()


# ARQ worker settings
class WorkerSettings:
    """ARQ worker configuration."""

    functions = [expire_archived_notes]
    cron_jobs = [
        cron(
            expire_archived_notes,
            hour={settings.expiry_hour_utc},
            minute={settings.expiry_minute},
        ),
    ]
    on_startup = on_startup
    on_shutdown = on_shutdown
    redis_settings = RedisSettings.from_dsn(settings.redis_url)
