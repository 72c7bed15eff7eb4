"""
Quota ledger — daily per-subject admission limits.

A subject's usage is the number of notes it created since the start of the
current calendar day. The day boundary follows the server's local clock
unless ``quota_timezone`` names an IANA zone.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

import structlog
from sqlalchemy import func, text
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import get_settings
from app.core.errors import QuotaExceeded
from app.models.note import Note
from app.models.profile import UserProfile
from notegen_shared.schemas.common import QuotaTier

log = structlog.get_logger()
settings = get_settings()


@dataclass(frozen=True)
class QuotaStatus:
    limit: int
    used: int
    reset_at: datetime

    @property
    def remaining(self) -> int:
        return max(self.limit - self.used, 0)


# ---------------------------------------------------------------------------
# Day boundaries
# ---------------------------------------------------------------------------

def _zone() -> Optional[ZoneInfo]:
    return ZoneInfo(settings.quota_timezone) if settings.quota_timezone else None


def _local(now: Optional[datetime]) -> datetime:
    now = now or datetime.now(timezone.utc)
    zone = _zone()
    # A naive datetime is taken as server local time by astimezone().
    return now.astimezone(zone) if zone else now.astimezone()


def _midnight(day: date) -> datetime:
    zone = _zone()
    if zone:
        return datetime.combine(day, time.min, tzinfo=zone)
    return datetime.combine(day, time.min).astimezone()


def start_of_day(now: Optional[datetime] = None) -> datetime:
    """00:00:00.000 of the calendar day containing ``now``."""
    return _midnight(_local(now).date())


def next_reset(now: Optional[datetime] = None) -> datetime:
    """00:00:00.000 of the calendar day after ``now``."""
    return _midnight(_local(now).date() + timedelta(days=1))


def format_reset_time(moment: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision, e.g. 2026-10-20T00:00:00.000Z."""
    utc = moment.astimezone(timezone.utc)
    return utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


# ---------------------------------------------------------------------------
# Limits and usage
# ---------------------------------------------------------------------------

def daily_limits() -> dict[QuotaTier, int]:
    return {
        QuotaTier.FREE: settings.free_daily_limit,
        QuotaTier.PREMIUM: settings.premium_daily_limit,
    }


def tier_for(profile: Optional[UserProfile]) -> QuotaTier:
    # No profile yet (first request before createUserProfile) counts as free.
    if profile is not None and profile.is_premium:
        return QuotaTier.PREMIUM
    return QuotaTier.FREE


def limit_for(profile: Optional[UserProfile]) -> int:
    return daily_limits()[tier_for(profile)]


async def usage_since(subject: str, since: datetime, session: AsyncSession) -> int:
    """Count the subject's notes created at or after ``since``."""
    result = await session.execute(
        select(func.count())
        .select_from(Note)
        .where(
            Note.user_id == subject,
            Note.created_at >= since.astimezone(timezone.utc),
        )
    )
    return result.scalar_one()


def _lock_key(subject: str) -> int:
    digest = hashlib.blake2b(subject.encode(), digest_size=8).digest()
    return int.from_bytes(digest, "big", signed=True)


async def acquire_admission_lock(subject: str, session: AsyncSession) -> bool:
    """Serialize admissions for one subject until the transaction ends.

    Without it, two concurrent submissions can both read usage below the
    limit and both insert. PostgreSQL only; returns False elsewhere.
    """
    if session.get_bind().dialect.name != "postgresql":
        return False
    await session.execute(
        text("SELECT pg_advisory_xact_lock(:key)"), {"key": _lock_key(subject)}
    )
    return True


async def check_quota(
    subject: str,
    session: AsyncSession,
    now: Optional[datetime] = None,
) -> QuotaStatus:
    """Raise QuotaExceeded unless the subject may create another note today."""
    profile = await session.get(UserProfile, subject)
    limit = limit_for(profile)
    used = await usage_since(subject, start_of_day(now), session)
    reset_at = next_reset(now)

    if used >= limit:
        log.info("quota.exceeded", user_id=subject, used=used, limit=limit)
        raise QuotaExceeded(limit=limit, reset_time=format_reset_time(reset_at))

    return QuotaStatus(limit=limit, used=used, reset_at=reset_at)
